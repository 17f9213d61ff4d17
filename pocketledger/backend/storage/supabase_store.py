# backend/storage/supabase_store.py
import logging
import uuid
from datetime import date, datetime

from supabase import Client, create_client

from pocketledger.errors import StorageError
from pocketledger.models import utcnow

from .base import RecordStore

logger = logging.getLogger("pocketledger-store")


def _serialize(values):
    """Convert dates to ISO strings for the REST payload"""
    out = {}
    for k, v in values.items():
        out[k] = v.isoformat() if isinstance(v, (datetime, date)) else v
    return out


def _filter_value(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class SupabaseRecordStore(RecordStore):
    """Hosted Postgres through the Supabase client.

    PostgREST offers no multi-statement transactions, so ``atomic()`` is the
    base no-op and callers compensate on partial failure.
    """

    supports_transactions = False

    def __init__(self, url=None, key=None, client: Client = None):
        if client is None:
            if not url or not key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY are required for the supabase store")
            client = create_client(url, key)
        self.client = client
        logger.info("Supabase store ready")

    def _run(self, action, table, query):
        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Supabase {action} on {table} failed: {e}")
            raise StorageError(str(e)) from e
        return response.data or []

    def _filtered(self, query, owner_id=None, where=None, ids=None):
        if owner_id is not None:
            query = query.eq("user_id", owner_id)
        for column, value in (where or {}).items():
            query = query.eq(column, _filter_value(value))
        if ids is not None:
            query = query.in_("id", list(ids))
        return query

    def insert(self, table, values):
        values = dict(values)
        values.setdefault("id", uuid.uuid4().hex)
        values.setdefault("created_at", utcnow())
        payload = _serialize(values)
        data = self._run("insert", table, self.client.table(table).insert(payload))
        return data[0] if data else payload

    def get(self, table, record_id):
        query = self.client.table(table).select("*").eq("id", record_id).limit(1)
        data = self._run("get", table, query)
        return data[0] if data else None

    def select(self, table, owner_id=None, where=None, order_by="created_at",
               descending=True, limit=None):
        query = self._filtered(self.client.table(table).select("*"), owner_id, where)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit:
            query = query.limit(limit)
        return self._run("select", table, query)

    def update(self, table, record_id, changes):
        query = self.client.table(table).update(_serialize(changes)).eq("id", record_id)
        data = self._run("update", table, query)
        if not data:
            raise StorageError(f"{table} {record_id} vanished during update")
        return data[0]

    def delete(self, table, record_id):
        self._run("delete", table, self.client.table(table).delete().eq("id", record_id))

    def update_many(self, table, owner_id, changes, ids=None, where=None):
        query = self._filtered(self.client.table(table).update(_serialize(changes)), owner_id, where, ids)
        return len(self._run("update", table, query))

    def delete_many(self, table, owner_id, ids=None):
        query = self._filtered(self.client.table(table).delete(), owner_id, ids=ids)
        return len(self._run("delete", table, query))

    def upsert(self, table, owner_id, key, values):
        """Single INSERT ... ON CONFLICT over (user_id, *key).

        Needs a unique index on those columns. ``id`` and ``created_at`` are
        left to the column defaults so an existing row keeps both.
        """
        payload = _serialize(dict(values, user_id=owner_id, **key))
        on_conflict = ",".join(["user_id", *key])
        query = self.client.table(table).upsert(payload, on_conflict=on_conflict)
        data = self._run("upsert", table, query)
        if not data:
            raise StorageError(f"upsert on {table} returned no row")
        return data[0]
