# Rev 0.2.0

"""Status rules (Rev 0.2.0)
Allow/deny checks for TaskItem.Status changes.

    NOT_STARTED -> IN_PROGRESS | CANCELLED
    IN_PROGRESS -> BLOCKED | COMPLETED | CANCELLED
    BLOCKED     -> IN_PROGRESS | CANCELLED
    COMPLETED, CANCELLED: terminal
"""
from __future__ import annotations

from typing import FrozenSet, Mapping

from schedule_helper.models.entities import TaskStatus

INITIAL_STATUS = TaskStatus.NOT_STARTED

TERMINAL_STATUSES: FrozenSet[TaskStatus] = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})

STATUS_TRANSITIONS: Mapping[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.NOT_STARTED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.BLOCKED, TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.BLOCKED: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def is_terminal(status: TaskStatus) -> bool:
    return TaskStatus(status) in TERMINAL_STATUSES


def is_allowed_status_change(old: TaskStatus, new: TaskStatus) -> bool:
    """Return True if old→new is in the transition table. Same status is not a transition."""
    return TaskStatus(new) in STATUS_TRANSITIONS[TaskStatus(old)]


def allowed_transitions(old: TaskStatus) -> FrozenSet[TaskStatus]:
    return STATUS_TRANSITIONS[TaskStatus(old)]
