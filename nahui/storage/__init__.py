"""Event persistence."""

from nahui.storage.store import EventStore, StoreState

__all__ = ["EventStore", "StoreState"]
