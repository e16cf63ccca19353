# scheduleZ application context
# Rev 0.2.0

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .models.events import EventSink, log_event
from .repositories.db import Database
from .services.hierarchy_queries import RollupPolicy
from .services.schedule_data_service import ScheduleDataService
from .utils.config import StoreConfig, load_settings
from .utils.logging_setup import get_logger


@dataclass
class AppContext:
    """Shared app resources, built once and passed to whoever needs them."""
    config: StoreConfig
    db: Database
    data_service: ScheduleDataService

    @classmethod
    def create(
        cls,
        config: Optional[StoreConfig] = None,
        *,
        settings: Optional[Dict[str, Any]] = None,
        event_sink: EventSink = log_event,
        initialize: bool = True,
    ) -> "AppContext":
        """Build DB + service; with `initialize`, a StoreError here must stop the app."""
        log = get_logger("AppContext")
        settings = settings if settings is not None else load_settings()
        config = config or StoreConfig.from_settings(settings)
        db = Database(config)
        service = ScheduleDataService(
            db,
            policy=RollupPolicy.from_settings(settings),
            event_sink=event_sink,
        )
        if initialize:
            service.initialize_store()
        log.info("AppContext initialized with DB=%s", config.database)
        return cls(config=config, db=db, data_service=service)

    def close(self) -> None:
        self.data_service.close()
