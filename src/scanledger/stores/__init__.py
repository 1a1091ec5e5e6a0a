"""Concrete PersistenceStore backends."""

from scanledger.stores.file import JsonFileStore
from scanledger.stores.http import HttpStore
from scanledger.stores.memory import MemoryStore

__all__ = ["HttpStore", "JsonFileStore", "MemoryStore"]
