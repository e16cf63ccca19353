# Rev 0.2.0
# scheduleZ – SQLiteProjectRepository (aligned with schema 0001)
from __future__ import annotations

from typing import Any, List, Mapping, Optional

from schedule_helper.models.entities import PROJECT_COLUMNS, Project, row_to_project
from .sqlite_base import SQLiteRepositoryBase

_SELECT = "SELECT " + ", ".join(PROJECT_COLUMNS.values()) + " FROM Projects"


class SQLiteProjectRepository(SQLiteRepositoryBase):
    """
    Projects table.
    Deleting a project leaves its tasks in place; the FK nulls Tasks.ProjectId.
    """

    table = "Projects"

    def insert(self, project: Project) -> int:
        values = {
            col: getattr(project, attr)
            for attr, col in PROJECT_COLUMNS.items()
            if attr != "id"
        }
        return self._insert(values)

    def get(self, project_id: int) -> Optional[Project]:
        row = self._fetch_one(f"{_SELECT} WHERE Id = ?", (project_id,))
        return row_to_project(row) if row else None

    def exists(self, project_id: int) -> bool:
        return self._exists(project_id)

    def update_fields(self, project_id: int, changes: Mapping[str, Any]) -> bool:
        return self._update(project_id, {PROJECT_COLUMNS[k]: v for k, v in changes.items()})

    def delete(self, project_id: int) -> bool:
        return self._delete(project_id)

    def list_projects(self, *, include_archived: bool = False) -> List[Project]:
        """
        Active projects ordered by SortOrder, Name.
        Archived ones only when include_archived is set.
        """
        where = "" if include_archived else " WHERE IsArchived = 0"
        rows = self._fetch_all(f"{_SELECT}{where} ORDER BY SortOrder, Name")
        return [row_to_project(r) for r in rows]

    def name_taken(self, name: str, *, collation: str = "BINARY", exclude_id: Optional[int] = None) -> bool:
        return self._name_taken("Name", name, collation, exclude_id)
