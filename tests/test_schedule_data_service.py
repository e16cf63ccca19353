# tests/test_schedule_data_service.py
# End-to-end through ScheduleDataService on a real SQLite file.
from __future__ import annotations

import sqlite3

import pytest

from schedule_helper.models.entities import TaskPriority, TaskStatus as S
from schedule_helper.models.errors import (
    CycleDetected,
    FieldError,
    HasDependentChildren,
    InvalidStatusTransition,
    MaxDepthExceeded,
    NotFound,
    StoreError,
    UniquenessViolation,
)
from schedule_helper.models.events import StoreInitialized, ValidationFailed, WriteCommitted
from schedule_helper.repositories.db import Database
from schedule_helper.services.schedule_data_service import ScheduleDataService
from schedule_helper.utils.config import StoreConfig


def _assert_levels_consistent(service: ScheduleDataService) -> None:
    for task in service.tasks.list_all():
        assert task.hierarchy_level == len(service.get_ancestors(task.id)), task


def _schema(db: Database) -> list:
    rows = db.conn.execute("SELECT type, name, sql FROM sqlite_master ORDER BY type, name").fetchall()
    return [tuple(r) for r in rows]


# -------------------------
# Lifecycle
# -------------------------
def test_initialize_applies_schema_once(service, db, events):
    assert isinstance(events[0], StoreInitialized)
    assert events[0].applied == ("0001_initial_schema.sql",)
    before = _schema(db)
    assert service.initialize_store() == []
    assert _schema(db) == before
    assert service.is_initialized
    assert service.check_connection()


def test_calls_before_initialize_are_rejected(tmp_path):
    svc = ScheduleDataService(Database(StoreConfig(database=str(tmp_path / "fresh.db"))))
    try:
        with pytest.raises(StoreError):
            svc.create_task("too early")
        with pytest.raises(StoreError):
            svc.list_root_tasks()
    finally:
        svc.close()


def test_unreachable_target_fails_initialization(tmp_path, events):
    svc = ScheduleDataService(
        Database(StoreConfig(database=str(tmp_path / "no" / "such" / "dir" / "x.db"))),
        event_sink=events.append,
    )
    with pytest.raises(StoreError):
        svc.initialize_store()
    assert not svc.is_initialized
    assert events == []


def test_in_memory_store(events):
    svc = ScheduleDataService(Database(StoreConfig(database=":memory:")), event_sink=events.append)
    svc.initialize_store()
    try:
        task = svc.create_task("scratch")
        assert svc.get_task(task.id).title == "scratch"
    finally:
        svc.close()


# -------------------------
# Task create / read
# -------------------------
def test_create_task_defaults(service):
    task = service.create_task("Write report")
    stored = service.get_task(task.id)
    assert stored == task
    assert stored.hierarchy_level == 0
    assert stored.status is S.NOT_STARTED
    assert stored.priority is TaskPriority.NORMAL
    assert stored.progress_percentage == 0
    assert stored.created_at is not None
    assert stored.updated_at is None


@pytest.mark.parametrize("status", [S.IN_PROGRESS, S.BLOCKED, S.COMPLETED, S.CANCELLED])
def test_new_tasks_must_start_not_started(service, events, status):
    with pytest.raises(InvalidStatusTransition):
        service.create_task("born late", status=status)
    assert service.tasks.list_all() == []
    assert events[-1].reason == "invalid_status_transition"


def test_subtask_inherits_parent_project(service):
    project = service.create_project("Garden")
    parent = service.create_task("Plant", project_id=project.id)
    child = service.create_task("Dig", parent_task_id=parent.id)
    assert child.project_id == project.id
    assert child.hierarchy_level == 1


def test_task_takes_project_default_type(service):
    bug = service.create_task_type("Bug")
    project = service.create_project("App", default_task_type_id=bug.id)
    assert service.create_task("Crash on start", project_id=project.id).task_type_id == bug.id
    feature = service.create_task_type("Feature")
    assert service.create_task("Dark mode", project_id=project.id, task_type_id=feature.id).task_type_id == feature.id


def test_get_unknown_task(service):
    with pytest.raises(NotFound) as err:
        service.get_task(404)
    assert err.value.entity == "task"


def test_invalid_create_writes_nothing(service, events):
    with pytest.raises(FieldError):
        service.create_task("")
    assert service.tasks.list_all() == []
    assert isinstance(events[-1], ValidationFailed)
    assert events[-1].reason == "invalid_field"


# -------------------------
# Hierarchy writes
# -------------------------
def test_levels_follow_parents(service, tree):
    levels = {k: service.get_task(v).hierarchy_level for k, v in tree.items()}
    assert levels == {"root": 0, "a": 1, "a1": 2, "a2": 2, "b": 1}
    _assert_levels_consistent(service)


def test_move_recomputes_descendant_levels(service, tree):
    moved = service.move_task(tree["a"], tree["b"])
    assert moved.parent_task_id == tree["b"]
    assert moved.hierarchy_level == 2
    assert service.get_task(tree["a1"]).hierarchy_level == 3
    assert service.get_task(tree["a1"]).updated_at is not None
    assert service.get_task(tree["b"]).updated_at is None
    _assert_levels_consistent(service)

    service.move_task(tree["a"], None)
    assert service.get_task(tree["a"]).hierarchy_level == 0
    assert service.get_task(tree["a2"]).hierarchy_level == 1
    _assert_levels_consistent(service)


def test_move_into_own_subtree_is_rejected(service, tree, events):
    before = service.tasks.list_all()
    with pytest.raises(CycleDetected):
        service.move_task(tree["root"], tree["a1"])
    with pytest.raises(CycleDetected):
        service.move_task(tree["a"], tree["a"])
    assert service.tasks.list_all() == before
    assert events[-1] == ValidationFailed(reason="cycle_detected", message=events[-1].message)


def test_move_too_deep_is_rejected(service, tree):
    chain = service.create_task("c0")
    for i in range(1, 4):
        chain = service.create_task(f"c{i}", parent_task_id=chain.id)
    before = service.tasks.list_all()
    with pytest.raises(MaxDepthExceeded):
        service.move_task(tree["a"], chain.id)
    assert service.tasks.list_all() == before
    # a leaf fits: c3 is level 3, b lands on 4
    assert service.move_task(tree["b"], chain.id).hierarchy_level == 4


def test_move_under_missing_parent(service, tree):
    with pytest.raises(NotFound):
        service.move_task(tree["a"], 404)


def test_failed_level_write_rolls_back_the_move(service, tree, monkeypatch):
    def boom(levels, updated_at):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(service.tasks, "set_hierarchy_levels", boom)
    with pytest.raises(StoreError):
        service.move_task(tree["a"], tree["b"])
    a = service.get_task(tree["a"])
    assert a.parent_task_id == tree["root"]
    assert a.hierarchy_level == 1
    assert a.updated_at is None


def test_delete_cascades_to_descendants(service, tree):
    service.delete_task(tree["a"])
    for key in ("a", "a1", "a2"):
        with pytest.raises(NotFound):
            service.get_task(tree[key])
    assert service.tasks.count_orphans() == 0
    assert [t.id for t in service.get_subtree(tree["root"])] == [tree["root"], tree["b"]]


def test_delete_unknown_task(service):
    with pytest.raises(NotFound):
        service.delete_task(404)


# -------------------------
# Task updates / status
# -------------------------
def test_update_sets_updated_at_and_persists(service):
    task = service.create_task("Draft")
    updated = service.update_task(task.id, title="Final", priority=TaskPriority.HIGH)
    stored = service.get_task(task.id)
    assert stored == updated
    assert stored.title == "Final"
    assert stored.priority is TaskPriority.HIGH
    assert stored.updated_at is not None


def test_update_rejects_unknown_or_readonly_fields(service, events):
    task = service.create_task("x")
    with pytest.raises(FieldError):
        service.update_task(task.id, colour="#FF0000")
    assert events[-1] == ValidationFailed(reason="invalid_field", message=events[-1].message)
    project = service.create_project("P")
    with pytest.raises(FieldError):
        service.update_project(project.id, created_at=None)
    assert isinstance(events[-1], ValidationFailed)
    task_type = service.create_task_type("T")
    with pytest.raises(FieldError):
        service.update_task_type(task_type.id, level=2)
    assert isinstance(events[-1], ValidationFailed)
    with pytest.raises(FieldError):
        service.update_task(task.id, hierarchy_level=3)


def test_status_lifecycle(service):
    task = service.create_task("Ship")
    service.change_task_status(task.id, S.IN_PROGRESS)
    service.change_task_status(task.id, S.BLOCKED)
    service.change_task_status(task.id, S.IN_PROGRESS)
    done = service.change_task_status(task.id, S.COMPLETED)
    assert done.status is S.COMPLETED
    assert done.progress_percentage == 100
    with pytest.raises(InvalidStatusTransition):
        service.change_task_status(task.id, S.IN_PROGRESS)
    assert service.get_task(task.id).status is S.COMPLETED


def test_completed_keeps_explicit_progress(service):
    task = service.create_task("Partial")
    service.change_task_status(task.id, S.IN_PROGRESS)
    done = service.change_task_status(task.id, S.COMPLETED, progress_percentage=80)
    assert done.progress_percentage == 80


def test_not_started_can_be_cancelled(service):
    task = service.create_task("Maybe")
    assert service.change_task_status(task.id, S.CANCELLED).status is S.CANCELLED


def test_not_started_cannot_jump_to_completed(service):
    task = service.create_task("Skip")
    with pytest.raises(InvalidStatusTransition):
        service.change_task_status(task.id, S.COMPLETED)


def test_same_status_is_a_no_op(service, events):
    task = service.create_task("Idle")
    n = len(events)
    unchanged = service.change_task_status(task.id, S.NOT_STARTED)
    assert unchanged.updated_at is None
    assert len(events) == n


# -------------------------
# Projects
# -------------------------
def test_duplicate_project_name_rejected(service, events):
    service.create_project("Home")
    with pytest.raises(UniquenessViolation):
        service.create_project("Home")
    assert [p.name for p in service.list_projects()] == ["Home"]
    assert events[-1].reason == "not_unique"


def test_rename_project_to_taken_name(service):
    service.create_project("A")
    b = service.create_project("B")
    with pytest.raises(UniquenessViolation):
        service.update_project(b.id, name="A")
    assert service.update_project(b.id, name="B2").name == "B2"


def test_archived_projects_hidden_by_default(service):
    service.create_project("Live", sort_order=1)
    old = service.create_project("Old", sort_order=0)
    task = service.create_task("leftover", project_id=old.id)
    service.archive_project(old.id)

    assert [p.name for p in service.list_projects()] == ["Live"]
    assert [p.name for p in service.list_projects(include_archived=True)] == ["Old", "Live"]
    assert service.list_by_project(old.id) == []
    assert [t.id for t in service.list_by_project(old.id, include_archived=True)] == [task.id]


def test_delete_project_keeps_tasks(service):
    project = service.create_project("Temp")
    task = service.create_task("keep me", project_id=project.id)
    service.delete_project(project.id)
    assert service.get_task(task.id).project_id is None
    with pytest.raises(NotFound):
        service.get_project(project.id)


def test_list_by_project_in_tree_order(service):
    project = service.create_project("P")
    r1 = service.create_task("r1", project_id=project.id)
    r2 = service.create_task("r2", project_id=project.id)
    c1 = service.create_task("c1", parent_task_id=r1.id)
    service.create_task("elsewhere")
    assert [t.id for t in service.list_by_project(project.id)] == [r1.id, c1.id, r2.id]
    assert [t.id for t in service.list_root_tasks(project.id)] == [r1.id, r2.id]


# -------------------------
# Task types
# -------------------------
def test_task_type_levels_cascade_on_reparent(service):
    a = service.create_task_type("A")
    b = service.create_task_type("B", parent_type_id=a.id)
    c = service.create_task_type("C", parent_type_id=b.id)
    d = service.create_task_type("D")
    assert (b.level, c.level) == (1, 2)

    service.update_task_type(b.id, parent_type_id=None)
    assert service.get_task_type(b.id).level == 0
    assert service.get_task_type(c.id).level == 1

    service.update_task_type(b.id, parent_type_id=d.id)
    assert service.get_task_type(b.id).level == 1
    assert service.get_task_type(c.id).level == 2

    with pytest.raises(CycleDetected):
        service.update_task_type(d.id, parent_type_id=c.id)


def test_delete_type_nulls_references(service):
    bug = service.create_task_type("Bug", color="#FF0000")
    project = service.create_project("App", default_task_type_id=bug.id)
    task = service.create_task("Crash", project_id=project.id)
    assert task.task_type_id == bug.id

    service.delete_task_type(bug.id)
    assert service.get_task(task.id).task_type_id is None
    assert service.get_project(project.id).default_task_type_id is None
    assert service.list_task_types() == []


def test_delete_type_with_children_changes_nothing(service):
    parent = service.create_task_type("Work")
    child = service.create_task_type("Meetings", parent_type_id=parent.id)
    with pytest.raises(HasDependentChildren):
        service.delete_task_type(parent.id)
    assert {t.id for t in service.list_task_types()} == {parent.id, child.id}


# -------------------------
# Roll-ups through the store
# -------------------------
def test_rollups_reflect_last_write(service, tree):
    service.update_task(tree["a1"], progress_percentage=40)
    service.update_task(tree["a2"], progress_percentage=60)
    service.update_task(tree["b"], progress_percentage=20)
    assert service.compute_aggregate_progress(tree["a"]) == 50.0
    assert service.compute_aggregate_progress(tree["root"]) == 35.0

    service.change_task_status(tree["a1"], S.IN_PROGRESS)
    assert service.compute_effective_status(tree["a"]) is S.IN_PROGRESS
    assert service.compute_effective_status(tree["root"]) is S.IN_PROGRESS
    assert service.get_task(tree["root"]).status is S.NOT_STARTED


# -------------------------
# Events
# -------------------------
def test_committed_writes_emit_events(service, events):
    task = service.create_task("evt")
    service.update_task(task.id, title="evt2")
    service.delete_task(task.id)
    writes = [e for e in events if isinstance(e, WriteCommitted)]
    assert writes == [
        WriteCommitted(entity="task", id=task.id, action="create"),
        WriteCommitted(entity="task", id=task.id, action="update"),
        WriteCommitted(entity="task", id=task.id, action="delete"),
    ]
