# Rev 0.2.0
"""Error taxonomy shared by repositories, services and viewmodels."""
from __future__ import annotations
from typing import Optional


class FlowTaskError(Exception):
    """Base class for errors surfaced to the caller as a description string."""


class ValidationError(FlowTaskError, ValueError):
    """Rejected input; raised before any mutation happens."""


class NotFoundError(FlowTaskError, LookupError):
    def __init__(self, entity: str, entity_id: Optional[str]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")
