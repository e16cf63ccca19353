# File: schedule_helper/tools/initdb.py
# Usage examples:
#   python -m schedule_helper.tools.initdb up
#   python -m schedule_helper.tools.initdb status
#   python -m schedule_helper.tools.initdb verify --db /path/to/ScheduleHelper.db
#
# Notes:
# - DB defaults to env SCHEDULEZ_DB, then settings.json, then the XDG data dir
# - "up" creates the schema if absent (idempotent); there are no down-migrations
# - "verify" checks tables, SQLite FK integrity and the hierarchy-level invariant

from __future__ import annotations

import argparse
import sqlite3
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from schedule_helper.app_context import AppContext
from schedule_helper.models.errors import CycleDetected, StoreError
from schedule_helper.repositories.db import Database
from schedule_helper.repositories.sqlite_task_repository import SQLiteTaskRepository
from schedule_helper.repositories.sqlite_task_type_repository import SQLiteTaskTypeRepository
from schedule_helper.services.hierarchy import HierarchyIndex
from schedule_helper.utils.config import StoreConfig, load_settings
from schedule_helper.utils.logging_setup import get_logger, setup_logging
from schedule_helper.utils.paths import ensure_dirs

log = get_logger("initdb")


def _config(settings: Dict[str, Any], db: Optional[str]) -> StoreConfig:
    config = StoreConfig.from_settings(settings)
    return replace(config, database=db) if db else config


def cmd_up(config: StoreConfig, settings: Dict[str, Any]) -> int:
    ctx = AppContext.create(config, settings=settings)
    try:
        applied = ctx.db.applied()
        print(f"DB: {config.database}")
        print(f"✓ Schema ready ({len(applied)} migration file(s) applied).")
        return 0
    finally:
        ctx.close()


def cmd_status(config: StoreConfig, settings: Dict[str, Any]) -> int:
    db = Database(config)
    try:
        print(f"DB: {config.database}")
        if "schema_migrations" in db.missing_tables():
            print("  not initialized; run `up`")
            return 1
        for name, digest in db.applied().items():
            print(f"  ✔ {name}  {digest[:12]}")
        for table in ("TaskTypes", "Projects", "Tasks"):
            if table in db.missing_tables():
                print(f"  ⧗ {table}: missing")
                continue
            (count,) = db.conn.execute(f"SELECT COUNT(1) FROM {table}").fetchone()
            print(f"  {table}: {count} row(s)")
        return 0
    finally:
        db.close()


def verify(db: Database) -> list[str]:
    """Return a list of problems; empty means the store is consistent."""
    problems = [f"missing table {t}" for t in db.missing_tables()]
    if problems:
        return problems

    for row in db.conn.execute("PRAGMA foreign_key_check").fetchall():
        problems.append(f"foreign key violation in {row[0]} rowid={row[1]} -> {row[2]}")

    tasks = SQLiteTaskRepository(db)
    orphans = tasks.count_orphans()
    if orphans:
        problems.append(f"{orphans} task(s) point to a missing parent")

    for label, arena, level_attr in (
        ("task", HierarchyIndex.of_tasks(tasks.list_all()), "hierarchy_level"),
        ("task type", HierarchyIndex.of_task_types(SQLiteTaskTypeRepository(db).list_all()), "level"),
    ):
        for item_id in arena:
            stored = getattr(arena.get(item_id), level_attr)
            try:
                actual = arena.depth(item_id)
            except CycleDetected as exc:
                problems.append(f"{label} {item_id}: {exc}")
                continue
            if stored != actual:
                problems.append(f"{label} {item_id}: stored level {stored}, actual depth {actual}")
    return problems


def cmd_verify(config: StoreConfig, settings: Dict[str, Any]) -> int:
    db = Database(config)
    try:
        problems = verify(db)
    finally:
        db.close()
    if problems:
        for p in problems:
            print(f"✗ {p}")
        return 1
    print("✓ Store verified.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="schedulez-initdb", description="scheduleZ store schema tool")
    parser.add_argument("command", choices=("up", "status", "verify"))
    parser.add_argument("--db", help="database target (path, :memory:, or file: URI)")
    args = parser.parse_args(argv)

    setup_logging()
    settings = load_settings()
    config = _config(settings, args.db)
    if args.db is None and not config.uri and config.database != ":memory:":
        ensure_dirs()
        Path(config.database).parent.mkdir(parents=True, exist_ok=True)

    commands = {"up": cmd_up, "status": cmd_status, "verify": cmd_verify}
    try:
        return commands[args.command](config, settings)
    except (StoreError, sqlite3.Error) as exc:
        log.error("%s failed: %s", args.command, exc)
        print(f"✗ {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
