# Rev 0.2.0
"""Structured events emitted by the data service.

Events are plain data. Whoever owns logging decides how to render them;
`log_event` is the default sink and writes them to the `schedule_helper.events`
logger with the event dict attached under `extra["event"]`.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Callable, Literal, Union

EntityName = Literal["task", "project", "task_type"]
WriteAction = Literal["create", "update", "delete"]


@dataclass(frozen=True)
class StoreInitialized:
    database: str
    applied: tuple[str, ...] = ()


@dataclass(frozen=True)
class ValidationFailed:
    reason: str
    message: str


@dataclass(frozen=True)
class WriteCommitted:
    entity: EntityName
    id: int
    action: WriteAction


StoreEvent = Union[StoreInitialized, ValidationFailed, WriteCommitted]
EventSink = Callable[[StoreEvent], None]

_events_log = logging.getLogger("schedule_helper.events")


def log_event(event: StoreEvent) -> None:
    payload = {"type": type(event).__name__, **asdict(event)}
    level = logging.WARNING if isinstance(event, ValidationFailed) else logging.INFO
    _events_log.log(level, "%s %s", payload["type"], payload, extra={"event": payload})
