# backend/storage/base.py
from contextlib import contextmanager

USERS = "users"
TRANSACTIONS = "transactions"
BUDGETS = "budgets"
RECURRING = "recurring_transactions"
GOALS = "savings_goals"
ALERTS = "alerts"

TABLES = (USERS, TRANSACTIONS, BUDGETS, RECURRING, GOALS, ALERTS)


class RecordStore:
    """Keyed storage for every entity table, scoped by the ``user_id`` column.

    Records go in and come out as plain dicts keyed by column name.
    Adapters raise ``StorageError`` for any backend failure.
    """

    supports_transactions = False

    def insert(self, table, values):
        """Persist a new record; the store assigns ``id`` and ``created_at``."""
        raise NotImplementedError

    def get(self, table, record_id):
        raise NotImplementedError

    def select(self, table, owner_id=None, where=None, order_by="created_at",
               descending=True, limit=None):
        raise NotImplementedError

    def update(self, table, record_id, changes):
        raise NotImplementedError

    def delete(self, table, record_id):
        raise NotImplementedError

    def update_many(self, table, owner_id, changes, ids=None, where=None):
        """Apply ``changes`` to the owner's records, optionally narrowed; returns the count."""
        raise NotImplementedError

    def delete_many(self, table, owner_id, ids=None):
        raise NotImplementedError

    def upsert(self, table, owner_id, key, values):
        """Update the owner's record matching ``key`` or insert a new one."""
        raise NotImplementedError

    @contextmanager
    def atomic(self):
        """Group writes; only stores with ``supports_transactions`` roll back."""
        yield self
