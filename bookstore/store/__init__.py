from bookstore.core.config import Settings
from bookstore.db.session import make_engine
from bookstore.store.base import Store, Transaction, deadline_after, remaining
from bookstore.store.memory import MemoryStore
from bookstore.store.sql import SqlStore

__all__ = ["Store", "Transaction", "MemoryStore", "SqlStore", "build_store", "deadline_after", "remaining"]


def build_store(settings: Settings) -> Store:
    backend = settings.STORE_BACKEND.lower()
    if backend == "memory":
        return MemoryStore()
    if backend == "sql":
        return SqlStore(make_engine(settings.DATABASE_URL))
    raise ValueError(f"unknown STORE_BACKEND {settings.STORE_BACKEND!r}; expected 'sql' or 'memory'")
