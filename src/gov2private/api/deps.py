from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from gov2private.config import get_settings
from gov2private.core.orchestrator import RunOrchestrator
from gov2private.db.session import get_db_session
from gov2private.llm.gateway import ModelGateway


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    user_id = (x_user_id or "").strip()
    return user_id[:128] or get_settings().default_user_id


def get_gateway() -> ModelGateway:
    return ModelGateway(get_settings())


def get_orchestrator(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    gateway: ModelGateway = Depends(get_gateway),
) -> RunOrchestrator:
    return RunOrchestrator(db, user_id=user_id, gateway=gateway)
