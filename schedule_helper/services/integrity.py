# Rev 0.2.0

"""Integrity enforcement (Rev 0.2.0)
Every check here runs inside the caller's transaction, against live rows,
before anything is written. Failures raise a ValidationError subclass or
NotFound; nothing in this module writes.
"""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Dict, Optional

from schedule_helper.models.entities import (
    COLOR_MAX,
    DESCRIPTION_MAX,
    PROGRESS_MAX,
    PROGRESS_MIN,
    PROJECT_DESCRIPTION_MAX,
    PROJECT_NAME_MAX,
    TITLE_MAX,
    TYPE_NAME_MAX,
    Project,
    TaskItem,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from schedule_helper.models.errors import (
    CycleDetected,
    FieldError,
    HasDependentChildren,
    InvalidStatusTransition,
    MaxDepthExceeded,
    NotFound,
    UniquenessViolation,
)
from .hierarchy import HierarchyIndex
from .status_rules import INITIAL_STATUS, is_allowed_status_change

COLOR_RE = re.compile(r"^#(?:[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$")


def check_text(value: Optional[str], field: str, max_len: int, *, required: bool) -> None:
    if value is None or value == "":
        if required:
            raise FieldError(f"{field} is required", field=field)
        return
    if not isinstance(value, str):
        raise FieldError(f"{field} must be text", field=field)
    if required and not value.strip():
        raise FieldError(f"{field} must not be blank", field=field)
    if len(value) > max_len:
        raise FieldError(f"{field} exceeds {max_len} characters ({len(value)})", field=field)


def check_color(value: Optional[str]) -> None:
    if value is None:
        return
    if not isinstance(value, str) or len(value) > COLOR_MAX or not COLOR_RE.match(value):
        raise FieldError(f"color {value!r} is not #RRGGBB or #AARRGGBB", field="color")


def coerce_priority(value) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError:
        raise FieldError(f"unknown priority {value!r}", field="priority") from None


def coerce_status(value) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise FieldError(f"unknown status {value!r}", field="status") from None


def check_progress(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise FieldError(f"progress must be an integer, got {value!r}", field="progress_percentage")
    if not PROGRESS_MIN <= value <= PROGRESS_MAX:
        raise FieldError(
            f"progress {value} outside [{PROGRESS_MIN}, {PROGRESS_MAX}]", field="progress_percentage"
        )
    return value


class IntegrityValidator:
    def __init__(self, tasks, projects, task_types, *, max_task_depth: int = 5, name_collation: str = "BINARY"):
        self._tasks = tasks
        self._projects = projects
        self._types = task_types
        self.max_task_depth = max_task_depth
        self.name_collation = name_collation

    # ---- tasks
    def validate_task_fields(self, task: TaskItem) -> TaskItem:
        """Field-level checks; returns the task with priority/status coerced to their enums."""
        check_text(task.title, "title", TITLE_MAX, required=True)
        check_text(task.description, "description", DESCRIPTION_MAX, required=False)
        return replace(
            task,
            priority=coerce_priority(task.priority),
            status=coerce_status(task.status),
            progress_percentage=check_progress(task.progress_percentage),
        )

    def validate_task_references(self, task: TaskItem) -> None:
        if task.project_id is not None and not self._projects.exists(task.project_id):
            raise NotFound("project", task.project_id)
        if task.task_type_id is not None and not self._types.exists(task.task_type_id):
            raise NotFound("task_type", task.task_type_id)

    def validate_task_insert(self, task: TaskItem, parent: Optional[TaskItem] = None) -> TaskItem:
        task = self.validate_task_fields(task)
        if task.status != INITIAL_STATUS:
            raise InvalidStatusTransition(
                f"new tasks start as {INITIAL_STATUS.name}, not {task.status.name}", field="status"
            )
        self.validate_task_references(task)
        level = 0
        if task.parent_task_id is not None:
            if parent is None or parent.id != task.parent_task_id:
                parent = self._tasks.get(task.parent_task_id)
            if parent is None:
                raise NotFound("task", task.parent_task_id)
            level = parent.hierarchy_level + 1
        self._check_depth(level)
        return replace(task, hierarchy_level=level)

    def validate_task_reparent(
        self,
        task_id: int,
        new_parent_id: Optional[int],
        arena: Optional[HierarchyIndex[TaskItem]] = None,
    ) -> Dict[int, int]:
        """Returns {task id: new level} for the moved task and all of its descendants."""
        if arena is None:
            arena = HierarchyIndex.of_tasks(self._tasks.list_all())
        if task_id not in arena:
            raise NotFound("task", task_id)
        if new_parent_id is not None and new_parent_id not in arena:
            raise NotFound("task", new_parent_id)
        if arena.would_create_cycle(task_id, new_parent_id):
            raise CycleDetected(f"task {new_parent_id} is task {task_id} or one of its descendants")
        levels = arena.levels_under(task_id, new_parent_id)
        self._check_depth(max(levels.values()))
        return levels

    def validate_status_change(self, old: TaskStatus, new: TaskStatus) -> None:
        old, new = coerce_status(old), coerce_status(new)
        if old != new and not is_allowed_status_change(old, new):
            raise InvalidStatusTransition(f"status change {old.name} -> {new.name} is not allowed")

    def _check_depth(self, level: int) -> None:
        if level >= self.max_task_depth:
            raise MaxDepthExceeded(
                f"hierarchy level {level} exceeds the maximum of {self.max_task_depth} levels"
            )

    # ---- task types
    def validate_task_type(self, task_type: TaskType) -> None:
        check_text(task_type.name, "name", TYPE_NAME_MAX, required=True)
        check_color(task_type.color)

    def validate_task_type_insert(self, task_type: TaskType) -> TaskType:
        self.validate_task_type(task_type)
        self.check_type_name_unique(task_type.name)
        level = 0
        if task_type.parent_type_id is not None:
            parent = self._types.get(task_type.parent_type_id)
            if parent is None:
                raise NotFound("task_type", task_type.parent_type_id)
            level = parent.level + 1
        return replace(task_type, level=level)

    def validate_type_reparent(self, type_id: int, new_parent_id: Optional[int]) -> Dict[int, int]:
        arena = HierarchyIndex.of_task_types(self._types.list_all())
        if type_id not in arena:
            raise NotFound("task_type", type_id)
        if new_parent_id is not None and new_parent_id not in arena:
            raise NotFound("task_type", new_parent_id)
        if arena.would_create_cycle(type_id, new_parent_id):
            raise CycleDetected(f"task type {new_parent_id} is type {type_id} or one of its descendants")
        return arena.levels_under(type_id, new_parent_id)

    def validate_type_delete(self, type_id: int) -> None:
        if not self._types.exists(type_id):
            raise NotFound("task_type", type_id)
        if self._types.has_children(type_id):
            raise HasDependentChildren(f"task type {type_id} still has child types")

    def check_type_name_unique(self, name: str, exclude_id: Optional[int] = None) -> None:
        if self._types.name_taken(name, collation=self.name_collation, exclude_id=exclude_id):
            raise UniquenessViolation(f"a task type named {name!r} already exists", field="name")

    # ---- projects
    def validate_project(self, project: Project) -> None:
        check_text(project.name, "name", PROJECT_NAME_MAX, required=True)
        check_text(project.description, "description", PROJECT_DESCRIPTION_MAX, required=False)
        check_color(project.color)
        if project.default_task_type_id is not None and not self._types.exists(project.default_task_type_id):
            raise NotFound("task_type", project.default_task_type_id)

    def check_project_name_unique(self, name: str, exclude_id: Optional[int] = None) -> None:
        if self._projects.name_taken(name, collation=self.name_collation, exclude_id=exclude_id):
            raise UniquenessViolation(f"a project named {name!r} already exists", field="name")
