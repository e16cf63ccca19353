# Rev 0.2.0
"""Id-indexed hierarchy arena.

Tasks and task types both form parent/child trees through a nullable parent
id. Entities never hold references to each other: the arena keeps
`id -> entity`, `id -> parent id` and a derived `parent id -> [child ids]`
index, and every walk (ancestors, subtree, cycle check, level cascade) runs
over those maps.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, Generic, Iterable, Iterator, List, Mapping, Optional, TypeVar

from schedule_helper.models.entities import TaskItem, TaskType
from schedule_helper.models.errors import CycleDetected

T = TypeVar("T")


class HierarchyIndex(Generic[T]):
    def __init__(self, items: Mapping[int, T], parent_of: Mapping[int, Optional[int]]) -> None:
        self._items: Dict[int, T] = dict(items)
        self._parent: Dict[int, Optional[int]] = dict(parent_of)
        self._children: Dict[Optional[int], List[int]] = defaultdict(list)
        for item_id in sorted(self._parent):
            self._children[self._parent[item_id]].append(item_id)

    @classmethod
    def build(cls, entities: Iterable[T], parent_attr: str, id_attr: str = "id") -> "HierarchyIndex[T]":
        items: Dict[int, T] = {}
        parents: Dict[int, Optional[int]] = {}
        for entity in entities:
            item_id = getattr(entity, id_attr)
            items[item_id] = entity
            parents[item_id] = getattr(entity, parent_attr)
        return cls(items, parents)

    @classmethod
    def of_tasks(cls, tasks: Iterable[TaskItem]) -> "HierarchyIndex[TaskItem]":
        return cls.build(tasks, "parent_task_id")

    @classmethod
    def of_task_types(cls, task_types: Iterable[TaskType]) -> "HierarchyIndex[TaskType]":
        return cls.build(task_types, "parent_type_id")

    # ---- lookups
    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._items))

    def get(self, item_id: int) -> T:
        return self._items[item_id]

    def parent_of(self, item_id: int) -> Optional[int]:
        return self._parent[item_id]

    def children_of(self, item_id: Optional[int]) -> List[int]:
        return list(self._children.get(item_id, ()))

    def has_children(self, item_id: int) -> bool:
        return bool(self._children.get(item_id))

    def roots(self) -> List[int]:
        return self.children_of(None)

    # ---- walks
    def ancestors(self, item_id: int) -> List[int]:
        """Parent first, root last. Raises CycleDetected if the stored chain loops."""
        chain: List[int] = []
        seen = {item_id}
        current = self._parent.get(item_id)
        while current is not None:
            if current in seen:
                raise CycleDetected(f"parent chain of {item_id} loops through {current}")
            seen.add(current)
            chain.append(current)
            current = self._parent.get(current)
        return chain

    def depth(self, item_id: int) -> int:
        return len(self.ancestors(item_id))

    def would_create_cycle(self, item_id: int, new_parent_id: Optional[int]) -> bool:
        """Walk the candidate ancestor chain from new_parent_id upward looking for item_id."""
        if new_parent_id is None:
            return False
        if new_parent_id == item_id:
            return True
        return item_id in self.ancestors(new_parent_id)

    def subtree(self, item_id: int) -> List[int]:
        """Depth-first pre-order ids rooted at item_id (root included), children by id."""
        out: List[int] = []
        seen: set[int] = set()
        stack = [item_id]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            out.append(current)
            stack.extend(reversed(self._children.get(current, ())))
        return out

    def descendants(self, item_id: int) -> List[int]:
        return self.subtree(item_id)[1:]

    def height(self, item_id: int) -> int:
        """Levels below item_id (0 for a leaf)."""
        heights: Dict[int, int] = {}
        for node in reversed(self.subtree(item_id)):
            kids = self._children.get(node, ())
            heights[node] = 1 + max(heights[k] for k in kids) if kids else 0
        return heights[item_id]

    def levels_under(self, item_id: int, new_parent_id: Optional[int]) -> Dict[int, int]:
        """New 0-based level for item_id and every descendant if item_id moved under new_parent_id."""
        base = 0 if new_parent_id is None else self.depth(new_parent_id) + 1
        levels = {item_id: base}
        for node in self.descendants(item_id):
            levels[node] = levels[self._parent[node]] + 1
        return levels

