# tests/test_hierarchy.py
# Pure arena tests: no database, entities built in memory.
from __future__ import annotations

import pytest

from schedule_helper.models.entities import TaskItem
from schedule_helper.models.errors import CycleDetected
from schedule_helper.services.hierarchy import HierarchyIndex


def _task(task_id: int, parent: int | None = None) -> TaskItem:
    return TaskItem(id=task_id, title=f"t{task_id}", parent_task_id=parent)


@pytest.fixture()
def arena() -> HierarchyIndex[TaskItem]:
    #   1            7
    #   ├── 2
    #   │   ├── 4
    #   │   │   └── 6
    #   │   └── 5
    #   └── 3
    return HierarchyIndex.of_tasks(
        [_task(1), _task(2, 1), _task(3, 1), _task(4, 2), _task(5, 2), _task(6, 4), _task(7)]
    )


def test_roots_and_children(arena):
    assert arena.roots() == [1, 7]
    assert arena.children_of(2) == [4, 5]
    assert arena.children_of(6) == []
    assert arena.has_children(4) and not arena.has_children(5)


def test_subtree_is_preorder_with_root(arena):
    assert arena.subtree(1) == [1, 2, 4, 6, 5, 3]
    assert arena.subtree(5) == [5]
    assert arena.descendants(2) == [4, 6, 5]


def test_ancestors_parent_first(arena):
    assert arena.ancestors(6) == [4, 2, 1]
    assert arena.ancestors(1) == []
    assert arena.depth(6) == 3


def test_height(arena):
    assert arena.height(1) == 3
    assert arena.height(3) == 0


@pytest.mark.parametrize(
    "item,new_parent,cycle",
    [
        (2, 2, True),      # under itself
        (2, 6, True),      # under its own grandchild
        (1, 4, True),
        (4, 3, False),
        (4, None, False),
        (6, 7, False),
    ],
)
def test_would_create_cycle(arena, item, new_parent, cycle):
    assert arena.would_create_cycle(item, new_parent) is cycle


def test_levels_under_cascades_to_descendants(arena):
    # move 2 (with 4, 5, 6) under 7: 2 -> 1, 4 -> 2, 5 -> 2, 6 -> 3
    assert arena.levels_under(2, 7) == {2: 1, 4: 2, 5: 2, 6: 3}
    assert arena.levels_under(4, None) == {4: 0, 6: 1}


def test_stored_cycle_is_reported_not_looped():
    looped = HierarchyIndex.of_tasks([_task(1, 2), _task(2, 1)])
    with pytest.raises(CycleDetected):
        looped.ancestors(1)
    assert looped.subtree(1) == [1, 2]
