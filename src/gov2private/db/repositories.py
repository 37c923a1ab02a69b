from __future__ import annotations

import copy
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from gov2private.config import Settings, get_settings
from gov2private.core.errors import RunNotFoundError
from gov2private.core.status import RUN_STATUSES
from gov2private.db.models import RunRecord
from gov2private.types import Run, RunSummary, canonical_status

SCALAR_FIELDS = (
    "status",
    "background",
    "target_role",
    "selected_role_id",
    "job_description",
    "job_description_source",
)


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Merge ``patch`` into a copy of ``base``.

    Dict values merge recursively; any other value, lists included,
    replaces what was there.
    """
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        existing = merged.get(key)
        if isinstance(value, dict) and isinstance(existing, dict):
            merged[key] = deep_merge(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _now() -> datetime:
    return datetime.now(UTC)


class RunStore:
    """Run ledger for a single user."""

    def __init__(self, session: Session, user_id: str, settings: Settings | None = None):
        self.session = session
        self.user_id = user_id
        self.settings = settings or get_settings()

    def create_run(self, run_id: str, init: dict[str, Any] | None = None) -> Run:
        init = dict(init or {})
        self._check_fields(init)
        now = _now()

        record = self._get_record(run_id)
        if record is None:
            record = RunRecord(
                id=run_id,
                user_id=self.user_id,
                status="queued",
                phases_json={},
                created_at=now,
                updated_at=now,
            )
            self.session.add(record)

        self._apply(record, init, now)
        self.session.commit()
        self.session.refresh(record)
        return self._to_run(record)

    def patch_run(self, run_id: str, patch: dict[str, Any]) -> Run:
        patch = dict(patch)
        self._check_fields(patch)
        now = _now()

        record = self._get_record(run_id)
        if record is None:
            if patch.get("status") is None:
                raise RunNotFoundError(f"run {run_id} not found")
            record = RunRecord(
                id=run_id,
                user_id=self.user_id,
                status=patch["status"],
                phases_json={},
                created_at=now,
                updated_at=now,
            )
            self.session.add(record)

        self._apply(record, patch, now)
        self.session.commit()
        self.session.refresh(record)
        return self._to_run(record)

    def find_run(self, run_id: str) -> Run | None:
        record = self._get_record(run_id)
        return self._to_run(record) if record else None

    def get_run(self, run_id: str) -> Run:
        run = self.find_run(run_id)
        if run is None:
            raise RunNotFoundError(f"run {run_id} not found")
        return run

    def list_recent(self, limit: int | None = None) -> list[RunSummary]:
        cap = self.settings.run_history_max
        limit = cap if limit is None else max(0, min(limit, cap))
        statement = (
            select(RunRecord)
            .where(RunRecord.user_id == self.user_id)
            .order_by(RunRecord.updated_at.desc(), RunRecord.created_at.desc())
            .limit(limit)
        )
        return [
            RunSummary(
                id=row.id,
                created_at=row.created_at,
                updated_at=row.updated_at,
                status=canonical_status(row.status),
                target_role=row.target_role,
            )
            for row in self.session.scalars(statement).all()
        ]

    def _get_record(self, run_id: str) -> RunRecord | None:
        statement = select(RunRecord).where(RunRecord.id == run_id, RunRecord.user_id == self.user_id)
        return self.session.scalar(statement)

    def _apply(self, record: RunRecord, patch: dict[str, Any], now: datetime) -> None:
        for field in SCALAR_FIELDS:
            value = patch.get(field)
            if value is None:
                continue
            if field == "status":
                value = canonical_status(value)
            setattr(record, field, value)

        phases = patch.get("phases")
        if phases:
            record.phases_json = deep_merge(record.phases_json or {}, phases)
        record.updated_at = now

    @staticmethod
    def _check_fields(patch: dict[str, Any]) -> None:
        unknown = set(patch) - set(SCALAR_FIELDS) - {"phases"}
        if unknown:
            raise ValueError(f"unsupported run fields: {sorted(unknown)}")
        status = patch.get("status")
        if status is not None and canonical_status(status) not in RUN_STATUSES:
            raise ValueError(f"unsupported run status '{status}'")
        phases = patch.get("phases")
        if phases is not None and not isinstance(phases, dict):
            raise ValueError("phases must be a mapping")

    @staticmethod
    def _to_run(record: RunRecord) -> Run:
        return Run(
            id=record.id,
            created_at=record.created_at,
            updated_at=record.updated_at,
            status=record.status,
            background=record.background,
            target_role=record.target_role,
            selected_role_id=record.selected_role_id,
            job_description=record.job_description,
            job_description_source=record.job_description_source,
            phases=copy.deepcopy(record.phases_json or {}),
        )


class RunStoreRegistry:
    """One ``RunStore`` per user id; stores never share state across users."""

    def __init__(self, session: Session, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self._stores: dict[str, RunStore] = {}

    def for_user(self, user_id: str) -> RunStore:
        if user_id not in self._stores:
            self._stores[user_id] = RunStore(self.session, user_id, self.settings)
        return self._stores[user_id]
