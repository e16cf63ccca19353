# Rev 0.2.0
"""Entities aligned with schema 0001 (TaskTypes / Projects / Tasks)"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, fields
from datetime import datetime
from enum import IntEnum
from typing import Any, Optional

# Column caps
TITLE_MAX = 200
DESCRIPTION_MAX = 4000
TYPE_NAME_MAX = 100
PROJECT_NAME_MAX = 200
PROJECT_DESCRIPTION_MAX = 1000
COLOR_MAX = 9

PROGRESS_MIN = 0
PROGRESS_MAX = 100


class TaskPriority(IntEnum):
    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


class TaskStatus(IntEnum):
    NOT_STARTED = 0
    IN_PROGRESS = 1
    BLOCKED = 2
    COMPLETED = 3
    CANCELLED = 4


@dataclass
class TaskType:
    id: int | None
    name: str
    parent_type_id: Optional[int] = None
    level: int = 0
    color: Optional[str] = None
    sort_order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Project:
    id: int | None
    name: str
    description: Optional[str] = None
    default_task_type_id: Optional[int] = None
    color: Optional[str] = None
    sort_order: int = 0
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class TaskItem:
    id: int | None
    title: str
    description: Optional[str] = None
    parent_task_id: Optional[int] = None
    hierarchy_level: int = 0
    project_id: Optional[int] = None
    task_type_id: Optional[int] = None
    due_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    priority: TaskPriority = TaskPriority.NORMAL
    status: TaskStatus = TaskStatus.NOT_STARTED
    progress_percentage: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_root(self) -> bool:
        return self.parent_task_id is None


# -------------------------
# Row <-> entity mapping
# -------------------------
TASK_TYPE_COLUMNS = {
    "id": "Id",
    "name": "Name",
    "parent_type_id": "ParentTypeId",
    "level": "Level",
    "color": "Color",
    "sort_order": "SortOrder",
    "created_at": "CreatedAt",
    "updated_at": "UpdatedAt",
}

PROJECT_COLUMNS = {
    "id": "Id",
    "name": "Name",
    "description": "Description",
    "default_task_type_id": "DefaultTaskTypeId",
    "color": "Color",
    "sort_order": "SortOrder",
    "is_archived": "IsArchived",
    "created_at": "CreatedAt",
    "updated_at": "UpdatedAt",
}

TASK_COLUMNS = {
    "id": "Id",
    "title": "Title",
    "description": "Description",
    "parent_task_id": "ParentTaskId",
    "hierarchy_level": "HierarchyLevel",
    "project_id": "ProjectId",
    "task_type_id": "TaskTypeId",
    "due_date": "DueDate",
    "start_date": "StartDate",
    "priority": "Priority",
    "status": "Status",
    "progress_percentage": "ProgressPercentage",
    "created_at": "CreatedAt",
    "updated_at": "UpdatedAt",
}

_DATETIME_FIELDS = {"created_at", "updated_at", "due_date", "start_date"}


def to_db_value(value: Any) -> Any:
    """Python value -> SQLite storage value (ISO text for datetimes, int for enums/bools)."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, IntEnum):
        return int(value)
    return value


def _from_db(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _DATETIME_FIELDS:
        return datetime.fromisoformat(value) if isinstance(value, str) else value
    if name == "priority":
        return TaskPriority(value)
    if name == "status":
        return TaskStatus(value)
    if name == "is_archived":
        return bool(value)
    return value


def _row_to_entity(cls, columns: dict[str, str], row: sqlite3.Row):
    kwargs = {attr: _from_db(attr, row[col]) for attr, col in columns.items()}
    return cls(**kwargs)


def row_to_task_type(row: sqlite3.Row) -> TaskType:
    return _row_to_entity(TaskType, TASK_TYPE_COLUMNS, row)


def row_to_project(row: sqlite3.Row) -> Project:
    return _row_to_entity(Project, PROJECT_COLUMNS, row)


def row_to_task(row: sqlite3.Row) -> TaskItem:
    return _row_to_entity(TaskItem, TASK_COLUMNS, row)


def field_names(cls) -> set[str]:
    return {f.name for f in fields(cls)}
