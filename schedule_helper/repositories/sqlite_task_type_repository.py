# Rev 0.2.0
# scheduleZ – SQLiteTaskTypeRepository
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from schedule_helper.models.entities import TASK_TYPE_COLUMNS, TaskType, row_to_task_type, to_db_value
from .sqlite_base import SQLiteRepositoryBase

_SELECT = "SELECT " + ", ".join(TASK_TYPE_COLUMNS.values()) + " FROM TaskTypes"


class SQLiteTaskTypeRepository(SQLiteRepositoryBase):
    """Task type/category tree (TaskTypes.ParentTypeId is ON DELETE RESTRICT)."""

    table = "TaskTypes"

    def insert(self, task_type: TaskType) -> int:
        values = {
            col: getattr(task_type, attr)
            for attr, col in TASK_TYPE_COLUMNS.items()
            if attr != "id"
        }
        return self._insert(values)

    def get(self, type_id: int) -> Optional[TaskType]:
        row = self._fetch_one(f"{_SELECT} WHERE Id = ?", (type_id,))
        return row_to_task_type(row) if row else None

    def exists(self, type_id: int) -> bool:
        return self._exists(type_id)

    def update_fields(self, type_id: int, changes: Mapping[str, Any]) -> bool:
        return self._update(type_id, {TASK_TYPE_COLUMNS[k]: v for k, v in changes.items()})

    def set_levels(self, levels: Mapping[int, int], updated_at: datetime) -> None:
        if not levels:
            return
        self._conn().executemany(
            "UPDATE TaskTypes SET Level = ?, UpdatedAt = ? WHERE Id = ?",
            [(lvl, to_db_value(updated_at), tid) for tid, lvl in levels.items()],
        )

    def delete(self, type_id: int) -> bool:
        return self._delete(type_id)

    def list_all(self) -> List[TaskType]:
        rows = self._fetch_all(f"{_SELECT} ORDER BY Level, SortOrder, Name")
        return [row_to_task_type(r) for r in rows]

    def has_children(self, type_id: int) -> bool:
        row = self._fetch_one("SELECT 1 FROM TaskTypes WHERE ParentTypeId = ? LIMIT 1", (type_id,))
        return row is not None

    def name_taken(self, name: str, *, collation: str = "BINARY", exclude_id: Optional[int] = None) -> bool:
        return self._name_taken("Name", name, collation, exclude_id)
