# Rev 0.2.0

"""Pytest fixtures for scheduleZ (Rev 0.2.0)"""
from __future__ import annotations
import pytest
from pathlib import Path

from schedule_helper.repositories.db import Database
from schedule_helper.services.schedule_data_service import ScheduleDataService
from schedule_helper.utils.config import StoreConfig


@pytest.fixture()
def store_config(tmp_path: Path) -> StoreConfig:
    return StoreConfig(database=str(tmp_path / "test.db"))


@pytest.fixture()
def db(store_config: StoreConfig):
    database = Database(store_config)
    try:
        yield database
    finally:
        database.close()


@pytest.fixture()
def events() -> list:
    return []


@pytest.fixture()
def service(db: Database, events: list) -> ScheduleDataService:
    svc = ScheduleDataService(db, event_sink=events.append)
    svc.initialize_store()
    return svc


@pytest.fixture()
def db_conn(service: ScheduleDataService, db: Database):
    return db.conn


@pytest.fixture()
def tree(service: ScheduleDataService) -> dict:
    """
    root
    ├── a
    │   ├── a1
    │   └── a2
    └── b
    """
    root = service.create_task("root")
    a = service.create_task("a", parent_task_id=root.id)
    a1 = service.create_task("a1", parent_task_id=a.id)
    a2 = service.create_task("a2", parent_task_id=a.id)
    b = service.create_task("b", parent_task_id=root.id)
    return {"root": root.id, "a": a.id, "a1": a1.id, "a2": a2.id, "b": b.id}
