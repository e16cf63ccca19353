# Rev 0.2.0

"""ScheduleDataService (Rev 0.2.0)
The single entry point callers use for the store. Every write:
  1. opens one transaction (Database.transaction)
  2. validates against live rows (IntegrityValidator)
  3. writes through the table repositories
  4. commits, then emits WriteCommitted to the event sink
Any exception rolls the whole unit back.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from schedule_helper.models.entities import (
    Project,
    TaskItem,
    TaskPriority,
    TaskStatus,
    TaskType,
    field_names,
)
from schedule_helper.models.errors import FieldError, NotFound, StoreError, ValidationError
from schedule_helper.models.events import (
    EventSink,
    StoreInitialized,
    ValidationFailed,
    WriteCommitted,
    log_event,
)
from schedule_helper.repositories.db import Database
from schedule_helper.repositories.sqlite_project_repository import SQLiteProjectRepository
from schedule_helper.repositories.sqlite_task_repository import SQLiteTaskRepository
from schedule_helper.repositories.sqlite_task_type_repository import SQLiteTaskTypeRepository
from .hierarchy import HierarchyIndex
from .hierarchy_queries import HierarchyQueries, RollupPolicy
from .integrity import IntegrityValidator, coerce_status

log = logging.getLogger(__name__)

_READONLY = {"id", "created_at", "updated_at"}
TASK_MUTABLE = field_names(TaskItem) - _READONLY - {"hierarchy_level"}
PROJECT_MUTABLE = field_names(Project) - _READONLY
TASK_TYPE_MUTABLE = field_names(TaskType) - _READONLY - {"level"}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _reject_unknown(changes: Dict[str, Any], allowed: set[str], entity: str) -> None:
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise FieldError(f"{entity} has no writable field(s) {', '.join(unknown)}", field=unknown[0])


class ScheduleDataService:
    def __init__(
        self,
        db: Database,
        *,
        policy: Optional[RollupPolicy] = None,
        event_sink: EventSink = log_event,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._db = db
        self._emit = event_sink
        self._now = clock
        self._initialized = False

        config = db.config
        self.tasks = SQLiteTaskRepository(db)
        self.projects = SQLiteProjectRepository(db)
        self.task_types = SQLiteTaskTypeRepository(db)
        self.validator = IntegrityValidator(
            self.tasks,
            self.projects,
            self.task_types,
            max_task_depth=config.max_task_depth,
            name_collation=config.name_collation,
        )
        self.queries = HierarchyQueries(self.tasks, self.projects, policy)

    # -------------------------
    # Lifecycle
    # -------------------------
    def initialize_store(self) -> List[str]:
        """Create the schema if absent and verify connectivity. Safe on every start."""
        database = self._db.config.database
        try:
            self._db.open()
            applied = self._db.run_migrations()
            missing = self._db.missing_tables()
            if missing:
                raise StoreError(f"schema incomplete, missing tables: {', '.join(missing)}")
            if not self._db.ping():
                raise StoreError(f"store {database!r} did not answer the connectivity check")
        except StoreError:
            log.error("Store initialization failed for %s", database)
            raise
        self._initialized = True
        self._emit(StoreInitialized(database=database, applied=tuple(applied)))
        return applied

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def check_connection(self) -> bool:
        return self._db.ping()

    def close(self) -> None:
        self._db.close()
        self._initialized = False

    def _require_ready(self) -> None:
        if not self._initialized:
            raise StoreError("store not initialized; call initialize_store() first")

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        self._require_ready()
        try:
            with self._db.transaction():
                yield
        except ValidationError as exc:
            self._emit(ValidationFailed(reason=exc.code, message=str(exc)))
            raise

    def _committed(self, entity, entity_id: int, action) -> None:
        self._emit(WriteCommitted(entity=entity, id=entity_id, action=action))

    # -------------------------
    # Tasks
    # -------------------------
    def create_task(
        self,
        title: str,
        *,
        description: Optional[str] = None,
        parent_task_id: Optional[int] = None,
        project_id: Optional[int] = None,
        task_type_id: Optional[int] = None,
        due_date: Optional[datetime] = None,
        start_date: Optional[datetime] = None,
        priority: TaskPriority = TaskPriority.NORMAL,
        status: TaskStatus = TaskStatus.NOT_STARTED,
        progress_percentage: Optional[int] = None,
    ) -> TaskItem:
        with self._unit_of_work():
            parent = None
            if parent_task_id is not None:
                parent = self.tasks.get(parent_task_id)
                if parent is None:
                    raise NotFound("task", parent_task_id)
                if project_id is None:
                    project_id = parent.project_id
            if task_type_id is None and project_id is not None:
                project = self.projects.get(project_id)
                if project is None:
                    raise NotFound("project", project_id)
                task_type_id = project.default_task_type_id
            if progress_percentage is None:
                progress_percentage = 0

            draft = TaskItem(
                id=None,
                title=title,
                description=description,
                parent_task_id=parent_task_id,
                project_id=project_id,
                task_type_id=task_type_id,
                due_date=due_date,
                start_date=start_date,
                priority=priority,
                status=status,
                progress_percentage=progress_percentage,
                created_at=self._now(),
            )
            task = self.validator.validate_task_insert(draft, parent)
            task = replace(task, id=self.tasks.insert(task))
        self._committed("task", task.id, "create")
        return task

    def get_task(self, task_id: int) -> TaskItem:
        self._require_ready()
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFound("task", task_id)
        return task

    def update_task(self, task_id: int, **changes: Any) -> TaskItem:
        """
        Patch a task. `parent_task_id` reparents (levels of the whole moved subtree
        are recomputed in the same transaction); `status` goes through the
        transition table and COMPLETED sets progress to 100 unless
        `progress_percentage` is part of the same patch.
        """
        with self._unit_of_work():
            _reject_unknown(changes, TASK_MUTABLE, "task")
            current = self.tasks.get(task_id)
            if current is None:
                raise NotFound("task", task_id)

            level_changes: Dict[int, int] = {}
            if "parent_task_id" in changes and changes["parent_task_id"] != current.parent_task_id:
                arena = HierarchyIndex.of_tasks(self.tasks.list_all())
                levels = self.validator.validate_task_reparent(task_id, changes["parent_task_id"], arena)
                level_changes = {
                    tid: lvl for tid, lvl in levels.items()
                    if tid == task_id or arena.get(tid).hierarchy_level != lvl
                }

            if "status" in changes:
                new_status = coerce_status(changes["status"])
                self.validator.validate_status_change(current.status, new_status)
                if (
                    new_status == TaskStatus.COMPLETED
                    and current.status != TaskStatus.COMPLETED
                    and "progress_percentage" not in changes
                ):
                    changes["progress_percentage"] = 100

            candidate = self.validator.validate_task_fields(replace(current, **changes))
            if {"project_id", "task_type_id"} & changes.keys():
                self.validator.validate_task_references(candidate)

            diff = {k: getattr(candidate, k) for k in changes if getattr(candidate, k) != getattr(current, k)}
            if not diff:
                return current

            now = self._now()
            if task_id in level_changes:
                diff["hierarchy_level"] = level_changes.pop(task_id)
            diff["updated_at"] = now
            self.tasks.update_fields(task_id, diff)
            self.tasks.set_hierarchy_levels(level_changes, now)
            updated = replace(candidate, **diff)
        if level_changes:
            log.info("Task %s moved; %d descendant level(s) recomputed", task_id, len(level_changes))
        self._committed("task", task_id, "update")
        return updated

    def move_task(self, task_id: int, new_parent_id: Optional[int]) -> TaskItem:
        return self.update_task(task_id, parent_task_id=new_parent_id)

    def change_task_status(
        self, task_id: int, status: TaskStatus, *, progress_percentage: Optional[int] = None
    ) -> TaskItem:
        changes: Dict[str, Any] = {"status": status}
        if progress_percentage is not None:
            changes["progress_percentage"] = progress_percentage
        return self.update_task(task_id, **changes)

    def delete_task(self, task_id: int) -> None:
        """Deletes the task and, through ON DELETE CASCADE, every descendant."""
        with self._unit_of_work():
            if not self.tasks.exists(task_id):
                raise NotFound("task", task_id)
            removed = len(HierarchyIndex.of_tasks(self.tasks.list_all()).subtree(task_id))
            self.tasks.delete(task_id)
        log.info("Task %s deleted with %d descendant(s)", task_id, removed - 1)
        self._committed("task", task_id, "delete")

    # -------------------------
    # Projects
    # -------------------------
    def create_project(
        self,
        name: str,
        *,
        description: Optional[str] = None,
        default_task_type_id: Optional[int] = None,
        color: Optional[str] = None,
        sort_order: int = 0,
        is_archived: bool = False,
    ) -> Project:
        with self._unit_of_work():
            project = Project(
                id=None,
                name=name,
                description=description,
                default_task_type_id=default_task_type_id,
                color=color,
                sort_order=sort_order,
                is_archived=is_archived,
                created_at=self._now(),
            )
            self.validator.validate_project(project)
            self.validator.check_project_name_unique(name)
            project = replace(project, id=self.projects.insert(project))
        self._committed("project", project.id, "create")
        return project

    def get_project(self, project_id: int) -> Project:
        self._require_ready()
        project = self.projects.get(project_id)
        if project is None:
            raise NotFound("project", project_id)
        return project

    def list_projects(self, *, include_archived: bool = False) -> List[Project]:
        self._require_ready()
        return self.projects.list_projects(include_archived=include_archived)

    def update_project(self, project_id: int, **changes: Any) -> Project:
        with self._unit_of_work():
            _reject_unknown(changes, PROJECT_MUTABLE, "project")
            current = self.projects.get(project_id)
            if current is None:
                raise NotFound("project", project_id)
            candidate = replace(current, **changes)
            self.validator.validate_project(candidate)
            if candidate.name != current.name:
                self.validator.check_project_name_unique(candidate.name, exclude_id=project_id)
            diff = {k: getattr(candidate, k) for k in changes if getattr(candidate, k) != getattr(current, k)}
            if not diff:
                return current
            diff["updated_at"] = self._now()
            self.projects.update_fields(project_id, diff)
            updated = replace(candidate, **diff)
        self._committed("project", project_id, "update")
        return updated

    def archive_project(self, project_id: int, archived: bool = True) -> Project:
        return self.update_project(project_id, is_archived=archived)

    def delete_project(self, project_id: int) -> None:
        """Tasks of the project survive with ProjectId set to NULL."""
        with self._unit_of_work():
            if not self.projects.delete(project_id):
                raise NotFound("project", project_id)
        self._committed("project", project_id, "delete")

    # -------------------------
    # Task types
    # -------------------------
    def create_task_type(
        self,
        name: str,
        *,
        parent_type_id: Optional[int] = None,
        color: Optional[str] = None,
        sort_order: int = 0,
    ) -> TaskType:
        with self._unit_of_work():
            draft = TaskType(
                id=None,
                name=name,
                parent_type_id=parent_type_id,
                color=color,
                sort_order=sort_order,
                created_at=self._now(),
            )
            task_type = self.validator.validate_task_type_insert(draft)
            task_type = replace(task_type, id=self.task_types.insert(task_type))
        self._committed("task_type", task_type.id, "create")
        return task_type

    def get_task_type(self, type_id: int) -> TaskType:
        self._require_ready()
        task_type = self.task_types.get(type_id)
        if task_type is None:
            raise NotFound("task_type", type_id)
        return task_type

    def list_task_types(self) -> List[TaskType]:
        self._require_ready()
        return self.task_types.list_all()

    def update_task_type(self, type_id: int, **changes: Any) -> TaskType:
        with self._unit_of_work():
            _reject_unknown(changes, TASK_TYPE_MUTABLE, "task_type")
            current = self.task_types.get(type_id)
            if current is None:
                raise NotFound("task_type", type_id)

            level_changes: Dict[int, int] = {}
            if "parent_type_id" in changes and changes["parent_type_id"] != current.parent_type_id:
                levels = self.validator.validate_type_reparent(type_id, changes["parent_type_id"])
                stored = {t.id: t.level for t in self.task_types.list_all()}
                level_changes = {
                    tid: lvl for tid, lvl in levels.items()
                    if tid == type_id or stored[tid] != lvl
                }

            candidate = replace(current, **changes)
            self.validator.validate_task_type(candidate)
            if candidate.name != current.name:
                self.validator.check_type_name_unique(candidate.name, exclude_id=type_id)

            diff = {k: getattr(candidate, k) for k in changes if getattr(candidate, k) != getattr(current, k)}
            if not diff:
                return current
            now = self._now()
            if type_id in level_changes:
                diff["level"] = level_changes.pop(type_id)
            diff["updated_at"] = now
            self.task_types.update_fields(type_id, diff)
            self.task_types.set_levels(level_changes, now)
            updated = replace(candidate, **diff)
        self._committed("task_type", type_id, "update")
        return updated

    def delete_task_type(self, type_id: int) -> None:
        """Refused while child types exist; tasks and project defaults referencing it are nulled."""
        with self._unit_of_work():
            self.validator.validate_type_delete(type_id)
            self.task_types.delete(type_id)
        self._committed("task_type", type_id, "delete")

    # -------------------------
    # Hierarchy queries
    # -------------------------
    def get_subtree(self, task_id: int) -> List[TaskItem]:
        self._require_ready()
        return self.queries.get_subtree(task_id)

    def get_ancestors(self, task_id: int) -> List[TaskItem]:
        self._require_ready()
        return self.queries.get_ancestors(task_id)

    def compute_aggregate_progress(self, task_id: int) -> float:
        self._require_ready()
        return self.queries.compute_aggregate_progress(task_id)

    def compute_effective_status(self, task_id: int) -> TaskStatus:
        self._require_ready()
        return self.queries.compute_effective_status(task_id)

    def list_by_project(self, project_id: int, include_archived: bool = False) -> List[TaskItem]:
        self._require_ready()
        return self.queries.list_by_project(project_id, include_archived)

    def list_root_tasks(self, project_id: Optional[int] = None) -> List[TaskItem]:
        self._require_ready()
        return self.queries.list_root_tasks(project_id)
