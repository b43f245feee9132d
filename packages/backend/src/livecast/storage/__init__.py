"""Persistence facade.

Learn: ``build_storage()`` picks the backend from settings. The app factory
calls it once and hands the instance to everything that needs it.
"""

from livecast.config import Settings
from livecast.storage.base import (
    Campaign,
    CampaignComponent,
    Component,
    ComponentConflictError,
    LinkExistsError,
    ScheduledComponent,
    Storage,
    StorageError,
    StoredEvent,
    is_campaign_active,
)
from livecast.storage.memory import MemoryStorage


def build_storage(config: Settings) -> Storage:
    """Create the storage backend selected by ``config.storage_backend``."""
    if config.storage_backend == "memory":
        return MemoryStorage()

    # Imported lazily so the memory backend works without a database driver.
    from livecast.storage.database import DatabaseStorage

    return DatabaseStorage(config.database_url, echo=config.debug)


__all__ = [
    "Campaign",
    "CampaignComponent",
    "Component",
    "ComponentConflictError",
    "LinkExistsError",
    "MemoryStorage",
    "ScheduledComponent",
    "Storage",
    "StorageError",
    "StoredEvent",
    "build_storage",
    "is_campaign_active",
]
