# frontend/state_cache.py
"""Client-side mirror of the user's ledger with optimistic mutations.

Every mutation is applied to the cache before the request goes out. A
failed request restores the cache (or drops the provisional record) and
re-raises the ``ApiError`` for the UI to show.
"""
import copy
import dataclasses
import logging
import uuid
from typing import MutableMapping, Optional

from pocketledger.errors import NotFound, ValidationError
from pocketledger.insights import (
    SUNDAY, FilterOptions, budget_status, compute_stats, filter_transactions, goal_summary,
)
from pocketledger.models import (
    Budget, BudgetUpdate, SavingsGoal, Transaction, TransactionUpdate, utcnow,
)

from .api_client import ApiError

logger = logging.getLogger("pocketledger-client")

TRANSACTIONS = "transactions"
BUDGETS = "budgets"
GOALS = "goals"


class CacheService:
    """get/set/snapshot/rollback over any mutable mapping.

    Keys are namespaced so the backing mapping (e.g. a UI session state)
    can hold other values that ``clear()`` leaves alone. Not thread-safe;
    the UI drives it from one thread.
    """

    def __init__(self, mapping: Optional[MutableMapping] = None, namespace="ledger."):
        self._data = mapping if mapping is not None else {}
        self._namespace = namespace

    def _key(self, key):
        return self._namespace + key

    def get(self, key, default=None):
        return self._data.get(self._key(key), default)

    def set(self, key, value):
        self._data[self._key(key)] = value

    def snapshot(self, key):
        return copy.deepcopy(self._data.get(self._key(key)))

    def rollback(self, key, snapshot):
        if snapshot is None:
            self._data.pop(self._key(key), None)
        else:
            self._data[self._key(key)] = snapshot

    def clear(self):
        for key in [k for k in self._data if str(k).startswith(self._namespace)]:
            del self._data[key]


def _temp_id():
    return f"temp-{uuid.uuid4().hex[:12]}"


def _provisional(entity_cls, payload, temp_id):
    try:
        entity = entity_cls.from_json(payload)
    except (TypeError, ValueError) as e:
        raise ValidationError(str(e))
    return dataclasses.replace(entity, id=temp_id, created_at=utcnow())


def _replace_by_id(items, record_id, new):
    return [new if item.id == record_id else item for item in items]


def _find(items, record_id, label):
    for item in items:
        if item.id == record_id:
            return item
    raise NotFound(f"{label} not found")


class LedgerState:
    def __init__(self, api, cache: Optional[CacheService] = None, week_start=SUNDAY):
        self.api = api
        self.cache = cache or CacheService()
        self.week_start = week_start

    # ---------------- Views ----------------
    @property
    def transactions(self):
        return list(self.cache.get(TRANSACTIONS, []))

    @property
    def budgets(self):
        return list(self.cache.get(BUDGETS, []))

    @property
    def goals(self):
        return list(self.cache.get(GOALS, []))

    def refresh(self):
        """Reload everything from the server; a 401 empties the cache."""
        try:
            transactions = [Transaction.from_json(t) for t in self.api.list_transactions()]
            budgets = [Budget.from_json(b) for b in self.api.list_budgets()]
            goals = [SavingsGoal.from_json(g) for g in self.api.list_goals()]
        except ApiError as e:
            if e.status == 401:
                logger.info("Session expired, clearing cached ledger")
                self.cache.clear()
            raise
        self.cache.set(TRANSACTIONS, transactions)
        self.cache.set(BUDGETS, budgets)
        self.cache.set(GOALS, goals)

    def filter_transactions(self, filters: Optional[FilterOptions] = None, **kwargs):
        return filter_transactions(self.transactions, filters or FilterOptions(**kwargs))

    def get_stats(self):
        return compute_stats(self.transactions)

    def budget_statuses(self, now=None):
        transactions = self.transactions
        return [budget_status(b, transactions, now, self.week_start) for b in self.budgets]

    def goal_summaries(self, now=None):
        return [goal_summary(g, now) for g in self.goals]

    # ---------------- Transactions ----------------
    def add_transaction(self, payload):
        temp_id = _temp_id()
        provisional = _provisional(Transaction, payload, temp_id)
        self.cache.set(TRANSACTIONS, [provisional] + self.transactions)
        try:
            body = self.api.create_transaction(payload)
        except ApiError:
            logger.warning("Create transaction failed, dropping provisional record")
            self.cache.set(TRANSACTIONS, [t for t in self.transactions if t.id != temp_id])
            raise
        created = Transaction.from_json(body)
        self.cache.set(TRANSACTIONS, _replace_by_id(self.transactions, temp_id, created))
        return created

    def update_transaction(self, tx_id, payload):
        snapshot = self.cache.snapshot(TRANSACTIONS)
        current = _find(self.transactions, tx_id, "Transaction")
        try:
            changes = TransactionUpdate.from_json(payload).changes()
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e))
        optimistic = dataclasses.replace(current, **changes)
        self.cache.set(TRANSACTIONS, _replace_by_id(self.transactions, tx_id, optimistic))
        # the API replaces the whole record, so send every field
        body_json = optimistic.to_json()
        full = {k: body_json[k] for k in ("type", "amount", "category", "description", "date")}
        try:
            body = self.api.update_transaction(tx_id, full)
        except ApiError:
            logger.warning(f"Update of transaction {tx_id} failed, rolling back")
            self.cache.rollback(TRANSACTIONS, snapshot)
            raise
        updated = Transaction.from_json(body)
        self.cache.set(TRANSACTIONS, _replace_by_id(self.transactions, tx_id, updated))
        return updated

    def delete_transaction(self, tx_id):
        snapshot = self.cache.snapshot(TRANSACTIONS)
        self.cache.set(TRANSACTIONS, [t for t in self.transactions if t.id != tx_id])
        try:
            self.api.delete_transaction(tx_id)
        except ApiError:
            logger.warning(f"Delete of transaction {tx_id} failed, rolling back")
            self.cache.rollback(TRANSACTIONS, snapshot)
            raise

    # ---------------- Budgets ----------------
    def add_budget(self, payload):
        """Create a budget, replacing any cached budget for the same category"""
        snapshot = self.cache.snapshot(BUDGETS)
        temp_id = _temp_id()
        provisional = _provisional(Budget, payload, temp_id)
        others = [b for b in self.budgets if b.category != provisional.category]
        self.cache.set(BUDGETS, others + [provisional])
        try:
            body = self.api.create_budget(payload)
        except ApiError:
            logger.warning("Create budget failed, rolling back")
            self.cache.rollback(BUDGETS, snapshot)
            raise
        created = Budget.from_json(body)
        self.cache.set(BUDGETS, _replace_by_id(self.budgets, temp_id, created))
        return created

    def replace_budget(self, budget_id, payload):
        """Delete then create. Not atomic: if the create fails the old budget stays deleted."""
        self.delete_budget(budget_id)
        return self.add_budget(payload)

    def upsert_budget(self, payload):
        """Create or replace the budget for a category in a single request"""
        snapshot = self.cache.snapshot(BUDGETS)
        provisional = _provisional(Budget, payload, _temp_id())
        existing = [b for b in self.budgets if b.category == provisional.category]
        if existing:
            provisional = dataclasses.replace(provisional, id=existing[0].id, created_at=existing[0].created_at)
            self.cache.set(BUDGETS, _replace_by_id(self.budgets, existing[0].id, provisional))
        else:
            self.cache.set(BUDGETS, self.budgets + [provisional])
        try:
            body = self.api.upsert_budget(payload)
        except ApiError:
            logger.warning(f"Upsert of {provisional.category} budget failed, rolling back")
            self.cache.rollback(BUDGETS, snapshot)
            raise
        saved = Budget.from_json(body)
        self.cache.set(BUDGETS, _replace_by_id(self.budgets, provisional.id, saved))
        return saved

    def update_budget(self, budget_id, payload):
        snapshot = self.cache.snapshot(BUDGETS)
        current = _find(self.budgets, budget_id, "Budget")
        try:
            changes = BudgetUpdate.from_json(payload).changes()
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e))
        self.cache.set(BUDGETS, _replace_by_id(self.budgets, budget_id, dataclasses.replace(current, **changes)))
        try:
            body = self.api.update_budget(budget_id, payload)
        except ApiError:
            self.cache.rollback(BUDGETS, snapshot)
            raise
        updated = Budget.from_json(body)
        self.cache.set(BUDGETS, _replace_by_id(self.budgets, budget_id, updated))
        return updated

    def delete_budget(self, budget_id):
        snapshot = self.cache.snapshot(BUDGETS)
        self.cache.set(BUDGETS, [b for b in self.budgets if b.id != budget_id])
        try:
            self.api.delete_budget(budget_id)
        except ApiError:
            logger.warning(f"Delete of budget {budget_id} failed, rolling back")
            self.cache.rollback(BUDGETS, snapshot)
            raise

    # ---------------- Savings goals ----------------
    def contribute_to_goal(self, goal_id, amount):
        """Server-side contribution; the updated goal and its expense land in the cache"""
        body = self.api.contribute_to_goal(goal_id, amount)
        goal = SavingsGoal.from_json(body["goal"])
        tx = Transaction.from_json(body["transaction"])
        if any(g.id == goal_id for g in self.goals):
            self.cache.set(GOALS, _replace_by_id(self.goals, goal_id, goal))
        else:
            self.cache.set(GOALS, [goal] + self.goals)
        self.cache.set(TRANSACTIONS, [tx] + self.transactions)
        return goal, tx
