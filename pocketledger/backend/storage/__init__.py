from .base import ALERTS, BUDGETS, GOALS, RECURRING, TABLES, TRANSACTIONS, USERS, RecordStore
from .sqlalchemy_store import SqlAlchemyRecordStore
from .supabase_store import SupabaseRecordStore


def build_record_store(config):
    """Pick the storage adapter named by STORE_BACKEND"""
    backend = (config.get("STORE_BACKEND") or "sqlalchemy").lower()
    if backend == "supabase":
        return SupabaseRecordStore(config.get("SUPABASE_URL"), config.get("SUPABASE_KEY"))
    if backend == "sqlalchemy":
        return SqlAlchemyRecordStore(config.get("DATABASE_URL") or "sqlite:///data/pocketledger.db")
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")


__all__ = [
    "ALERTS", "BUDGETS", "GOALS", "RECURRING", "TABLES", "TRANSACTIONS", "USERS",
    "RecordStore", "SqlAlchemyRecordStore", "SupabaseRecordStore", "build_record_store",
]
