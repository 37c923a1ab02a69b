from __future__ import annotations

from gov2private.config import get_settings
from gov2private.db.base import Base
from gov2private.db.session import engine
from gov2private.db import models  # noqa: F401


def ensure_data_directories() -> None:
    get_settings().data_dir.mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, list[str]]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)
    return {"tables": sorted(Base.metadata.tables)}
