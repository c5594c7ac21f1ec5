"""Video record store backed by memory."""

from .store import InMemoryRecordStore, create_record_store

__all__ = ["InMemoryRecordStore", "create_record_store"]
