"""Python client for the Stockroom API and the local session it keeps in sync."""

from app.client.api import ApiError, InventoryClient
from app.client.session import JsonFileStore, MemoryStore, SessionSynchronizer, SessionWatcher

__all__ = [
    "ApiError",
    "InventoryClient",
    "JsonFileStore",
    "MemoryStore",
    "SessionSynchronizer",
    "SessionWatcher",
]
