# novabuild/persistence/__init__.py
"""
Persistence module - the durable project store.
"""
from .store import ProjectStore, InMemoryProjectStore, MongoProjectStore, create_store

__all__ = ["ProjectStore", "InMemoryProjectStore", "MongoProjectStore", "create_store"]
