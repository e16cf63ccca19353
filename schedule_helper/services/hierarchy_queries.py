# Rev 0.2.0
"""Read-only views over the task tree.

Each call rebuilds the arena from the store, so results always reflect the
last committed write. Nothing here mutates stored data.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from schedule_helper.models.entities import TaskItem, TaskStatus
from schedule_helper.models.errors import NotFound
from .hierarchy import HierarchyIndex


@dataclass(frozen=True)
class RollupPolicy:
    """Which children count toward a parent's aggregate progress/status."""
    exclude_cancelled_leaves: bool = True
    exclude_cancelled_branches: bool = False

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "RollupPolicy":
        rollup = settings.get("rollup", {})
        return cls(
            exclude_cancelled_leaves=bool(rollup.get("exclude_cancelled_leaves", True)),
            exclude_cancelled_branches=bool(rollup.get("exclude_cancelled_branches", False)),
        )

    def counts(self, arena: HierarchyIndex[TaskItem], child_id: int) -> bool:
        child = arena.get(child_id)
        if child.status != TaskStatus.CANCELLED:
            return True
        if arena.has_children(child_id):
            return not self.exclude_cancelled_branches
        return not self.exclude_cancelled_leaves


def aggregate_progress(arena: HierarchyIndex[TaskItem], task_id: int, policy: RollupPolicy) -> float:
    """Post-order: leaves report their own progress, parents the mean of counted children."""
    results: Dict[int, float] = {}
    for node in reversed(arena.subtree(task_id)):
        task = arena.get(node)
        counted = [k for k in arena.children_of(node) if policy.counts(arena, k)]
        if counted:
            results[node] = sum(results[k] for k in counted) / len(counted)
        else:
            results[node] = float(task.progress_percentage)
    return results[task_id]


def effective_status(arena: HierarchyIndex[TaskItem], task_id: int) -> TaskStatus:
    """Post-order over children whose stored status is not CANCELLED (leaf or branch)."""
    results: Dict[int, TaskStatus] = {}
    for node in reversed(arena.subtree(task_id)):
        task = arena.get(node)
        counted = [
            results[k] for k in arena.children_of(node)
            if arena.get(k).status != TaskStatus.CANCELLED
        ]
        if not counted:
            results[node] = task.status
        elif all(s == TaskStatus.COMPLETED for s in counted):
            results[node] = TaskStatus.COMPLETED
        elif TaskStatus.BLOCKED in counted:
            results[node] = TaskStatus.BLOCKED
        elif TaskStatus.IN_PROGRESS in counted:
            results[node] = TaskStatus.IN_PROGRESS
        else:
            results[node] = task.status
    return results[task_id]


class HierarchyQueries:
    def __init__(self, tasks, projects, policy: Optional[RollupPolicy] = None) -> None:
        self._tasks = tasks
        self._projects = projects
        self.policy = policy or RollupPolicy()

    def arena(self) -> HierarchyIndex[TaskItem]:
        return HierarchyIndex.of_tasks(self._tasks.list_all())

    def _arena_with(self, task_id: int) -> HierarchyIndex[TaskItem]:
        arena = self.arena()
        if task_id not in arena:
            raise NotFound("task", task_id)
        return arena

    def get_subtree(self, task_id: int) -> List[TaskItem]:
        arena = self._arena_with(task_id)
        return [arena.get(i) for i in arena.subtree(task_id)]

    def get_ancestors(self, task_id: int) -> List[TaskItem]:
        arena = self._arena_with(task_id)
        return [arena.get(i) for i in arena.ancestors(task_id)]

    def get_depth(self, task_id: int) -> int:
        return self._arena_with(task_id).depth(task_id)

    def compute_aggregate_progress(self, task_id: int) -> float:
        return aggregate_progress(self._arena_with(task_id), task_id, self.policy)

    def compute_effective_status(self, task_id: int) -> TaskStatus:
        return effective_status(self._arena_with(task_id), task_id)

    def list_by_project(self, project_id: int, include_archived: bool = False) -> List[TaskItem]:
        """Project tasks in tree pre-order; a task whose parent is outside the project is listed as a root."""
        project = self._projects.get(project_id)
        if project is None:
            raise NotFound("project", project_id)
        if project.is_archived and not include_archived:
            return []
        members = {t.id: t for t in self._tasks.list_by_project(project_id)}
        arena = HierarchyIndex(members, {
            tid: (t.parent_task_id if t.parent_task_id in members else None)
            for tid, t in members.items()
        })
        out: List[TaskItem] = []
        for root in arena.roots():
            out.extend(arena.get(i) for i in arena.subtree(root))
        return out

    def list_root_tasks(self, project_id: Optional[int] = None) -> List[TaskItem]:
        return self._tasks.list_roots(project_id)
