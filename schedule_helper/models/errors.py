# Rev 0.2.0
"""Store error taxonomy.

ValidationError  user-correctable, raised before anything is written
NotFound         a referenced id does not exist
StoreError       the SQLite engine itself failed (connectivity, locks, constraints)
"""
from __future__ import annotations

from typing import Optional


class ValidationError(ValueError):
    code = "invalid"

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class FieldError(ValidationError):
    code = "invalid_field"


class CycleDetected(ValidationError):
    code = "cycle_detected"


class InvalidStatusTransition(ValidationError):
    code = "invalid_status_transition"


class UniquenessViolation(ValidationError):
    code = "not_unique"


class MaxDepthExceeded(ValidationError):
    code = "max_depth_exceeded"


class HasDependentChildren(ValidationError):
    code = "has_dependent_children"


class NotFound(LookupError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class StoreError(RuntimeError):
    code = "store_error"
