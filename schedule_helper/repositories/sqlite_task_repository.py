# Rev 0.2.0
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from schedule_helper.models.entities import TASK_COLUMNS, TaskItem, row_to_task, to_db_value
from .sqlite_base import SQLiteRepositoryBase

_SELECT = "SELECT " + ", ".join(TASK_COLUMNS.values()) + " FROM Tasks"


class SQLiteTaskRepository(SQLiteRepositoryBase):
    """
    Tasks table CRUD + hierarchy-level bulk updates.
    Attribute names (snake_case) are mapped to the PascalCase columns here.
    """

    table = "Tasks"

    # -------------------------
    # CRUD
    # -------------------------
    def insert(self, task: TaskItem) -> int:
        values = {
            col: getattr(task, attr)
            for attr, col in TASK_COLUMNS.items()
            if attr != "id"
        }
        return self._insert(values)

    def get(self, task_id: int) -> Optional[TaskItem]:
        row = self._fetch_one(f"{_SELECT} WHERE Id = ?", (task_id,))
        return row_to_task(row) if row else None

    def exists(self, task_id: int) -> bool:
        return self._exists(task_id)

    def update_fields(self, task_id: int, changes: Mapping[str, Any]) -> bool:
        """`changes` keys are TaskItem attribute names."""
        return self._update(task_id, {TASK_COLUMNS[k]: v for k, v in changes.items()})

    def set_hierarchy_levels(self, levels: Mapping[int, int], updated_at: datetime) -> None:
        if not levels:
            return
        self._conn().executemany(
            "UPDATE Tasks SET HierarchyLevel = ?, UpdatedAt = ? WHERE Id = ?",
            [(lvl, to_db_value(updated_at), tid) for tid, lvl in levels.items()],
        )

    def delete(self, task_id: int) -> bool:
        return self._delete(task_id)

    # -------------------------
    # Listings
    # -------------------------
    def list_all(self) -> List[TaskItem]:
        return [row_to_task(r) for r in self._fetch_all(f"{_SELECT} ORDER BY Id")]

    def list_by_project(self, project_id: int) -> List[TaskItem]:
        rows = self._fetch_all(f"{_SELECT} WHERE ProjectId = ? ORDER BY Id", (project_id,))
        return [row_to_task(r) for r in rows]

    def list_roots(self, project_id: Optional[int] = None) -> List[TaskItem]:
        where, params = ["ParentTaskId IS NULL"], []
        if project_id is not None:
            where.append("ProjectId = ?")
            params.append(project_id)
        rows = self._fetch_all(f"{_SELECT} WHERE {' AND '.join(where)} ORDER BY Id", params)
        return [row_to_task(r) for r in rows]

    def list_children(self, parent_task_id: int) -> List[TaskItem]:
        rows = self._fetch_all(f"{_SELECT} WHERE ParentTaskId = ? ORDER BY Id", (parent_task_id,))
        return [row_to_task(r) for r in rows]

    def count_orphans(self) -> int:
        row = self._fetch_one(
            """
            SELECT COUNT(1) FROM Tasks t
            WHERE t.ParentTaskId IS NOT NULL
              AND NOT EXISTS (SELECT 1 FROM Tasks p WHERE p.Id = t.ParentTaskId)
            """
        )
        return int(row[0]) if row and row[0] is not None else 0
