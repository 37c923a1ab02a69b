from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gov2private.db.base import Base, TimestampMixin


class RunRecord(TimestampMixin, Base):
    __tablename__ = "runs"
    __table_args__ = (Index("ix_runs_user_updated", "user_id", "updated_at"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    status: Mapped[str] = mapped_column(String(40), default="queued", nullable=False)
    background: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_role: Mapped[str | None] = mapped_column(String(255), nullable=True)
    selected_role_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    job_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_description_source: Mapped[str | None] = mapped_column(String(32), nullable=True)
    phases_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
