# backend/access.py
"""Entity Access Layer.

Every operation takes an explicit ``RequestContext`` and checks that the
record belongs to ``ctx.user_id`` before reading or writing it. Storage
failures surface as ``StorageError`` and are never retried here.
"""
import dataclasses
import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from pocketledger.errors import Forbidden, NotFound, StorageError, ValidationError
from pocketledger.insights import compute_stats, format_money
from pocketledger.models import (
    ALERT_SEVERITIES, ALERT_TYPES, BUDGET_PERIODS, CATEGORIES, CONTRIBUTION_CATEGORY,
    FREQUENCIES, TRANSACTION_TYPES, UNSET,
    Alert, Budget, PartialUpdate, RecurringTransaction, SavingsGoal, Transaction, categories_for,
)

from .storage import ALERTS, BUDGETS, GOALS, RECURRING, TRANSACTIONS

logger = logging.getLogger("pocketledger-backend")


@dataclass(frozen=True)
class RequestContext:
    """Identity of the authenticated caller for one request"""
    user_id: str


def _blank(value):
    return value is None or value is UNSET or (isinstance(value, str) and not value.strip())


def _require(payload, keys):
    missing = [k for k in keys if _blank(payload.get(k))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing=missing)


def _check_type_and_category(tx_type, category):
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid type: {tx_type}")
    if category not in categories_for(tx_type):
        raise ValidationError(f"Category '{category}' is not a valid {tx_type} category")


def _check_positive(name, value):
    if value is None or not math.isfinite(value) or not value > 0:
        raise ValidationError(f"{name} must be a positive number")


class EntityAccess:
    """List/get/create/update/delete for one entity table."""

    table = None
    entity = None
    label = "Record"
    required = ()
    order_by = "created_at"
    # answer 404 rather than 403 when the record belongs to someone else
    conceal_foreign = False

    def __init__(self, store, list_limit=None):
        self.store = store
        self.list_limit = list_limit

    def validate(self, entity):
        pass

    def _parse(self, payload):
        try:
            return self.entity.from_json(payload)
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e))

    def list(self, ctx, where=None) -> List:
        records = self.store.select(self.table, ctx.user_id, where=where,
                                    order_by=self.order_by, limit=self.list_limit)
        return [self.entity.from_record(r) for r in records]

    def get(self, ctx, record_id):
        record = self.store.get(self.table, record_id)
        if record is None:
            raise NotFound(f"{self.label} not found")
        if record.get("user_id") != ctx.user_id:
            logger.warning(f"User {ctx.user_id} denied access to {self.table} {record_id}")
            if self.conceal_foreign:
                raise NotFound(f"{self.label} not found")
            raise Forbidden()
        return self.entity.from_record(record)

    def create(self, ctx, payload):
        _require(payload, self.required)
        entity = self._parse(payload)
        entity = dataclasses.replace(entity, id=None, owner_id=ctx.user_id, created_at=None)
        self.validate(entity)
        values = {k: v for k, v in entity.to_record().items() if k not in ("id", "created_at")}
        record = self.store.insert(self.table, values)
        logger.info(f"Created {self.table} {record.get('id')} for user {ctx.user_id}")
        return self.entity.from_record(record)

    def update(self, ctx, record_id, update: PartialUpdate):
        current = self.get(ctx, record_id)
        changes = update.changes()
        if not changes:
            return current
        self.validate(dataclasses.replace(current, **changes))
        record = self.store.update(
            self.table, record_id, {self.entity.column(k): v for k, v in changes.items()}
        )
        logger.info(f"Updated {self.table} {record_id} ({', '.join(changes)})")
        return self.entity.from_record(record)

    def delete(self, ctx, record_id):
        self.get(ctx, record_id)
        self.store.delete(self.table, record_id)
        logger.info(f"Deleted {self.table} {record_id} for user {ctx.user_id}")
        return {"success": True}


class TransactionAccess(EntityAccess):
    table = TRANSACTIONS
    entity = Transaction
    label = "Transaction"
    required = ("type", "amount", "category", "description", "date")
    order_by = "date"

    def validate(self, entity):
        _check_type_and_category(entity.type, entity.category)
        _check_positive("Amount", entity.amount)
        if entity.date is None:
            raise ValidationError("Invalid date")

    def update(self, ctx, record_id, update):
        # full replacement: every field must be supplied
        missing = [
            Transaction.json_key(f.name)
            for f in dataclasses.fields(update)
            if _blank(getattr(update, f.name))
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing=missing)
        return super().update(ctx, record_id, update)


class BudgetAccess(EntityAccess):
    table = BUDGETS
    entity = Budget
    label = "Budget"
    required = ("category", "limit", "period")

    def validate(self, entity):
        if entity.category not in CATEGORIES:
            raise ValidationError(f"Invalid category: {entity.category}")
        _check_positive("Limit", entity.limit)
        if entity.period not in BUDGET_PERIODS:
            raise ValidationError(f"Invalid period: {entity.period}")

    def _check_unique(self, ctx, category, budget_id=None):
        rows = self.store.select(self.table, ctx.user_id, where={"category": category}, order_by=None)
        if any(r["id"] != budget_id for r in rows):
            raise ValidationError(f"A budget for {category} already exists")

    def create(self, ctx, payload):
        category = payload.get("category")
        if isinstance(category, str) and category.strip():
            self._check_unique(ctx, category)
        return super().create(ctx, payload)

    def update(self, ctx, record_id, update):
        if isinstance(update.category, str) and update.category.strip():
            self._check_unique(ctx, update.category, budget_id=record_id)
        return super().update(ctx, record_id, update)

    def upsert(self, ctx, payload):
        """Create or replace the caller's budget for a category in one write"""
        _require(payload, self.required)
        budget = dataclasses.replace(self._parse(payload), id=None, owner_id=ctx.user_id)
        self.validate(budget)
        record = self.store.upsert(
            self.table, ctx.user_id,
            key={"category": budget.category},
            values={"limit": budget.limit, "period": budget.period},
        )
        logger.info(f"Upserted budget for {budget.category} (user {ctx.user_id})")
        return Budget.from_record(record)


class RecurringTransactionAccess(EntityAccess):
    table = RECURRING
    entity = RecurringTransaction
    label = "Recurring transaction"
    required = ("type", "amount", "category", "frequency", "startDate")
    conceal_foreign = True

    def validate(self, entity):
        _check_type_and_category(entity.type, entity.category)
        _check_positive("Amount", entity.amount)
        if entity.frequency not in FREQUENCIES:
            raise ValidationError(f"Invalid frequency: {entity.frequency}")
        if entity.start_date is None:
            raise ValidationError("Invalid start date")
        if entity.end_date is not None and entity.end_date < entity.start_date:
            raise ValidationError("End date cannot be before start date")

    def create(self, ctx, payload):
        payload = dict(payload)
        if payload.get("description") is None:
            payload["description"] = ""
        if payload.get("isActive") is None:
            payload["isActive"] = True
        return super().create(ctx, payload)


class SavingsGoalAccess(EntityAccess):
    table = GOALS
    entity = SavingsGoal
    label = "Savings goal"
    required = ("name", "targetAmount")
    conceal_foreign = True

    def validate(self, entity):
        if _blank(entity.name):
            raise ValidationError("Name is required")
        _check_positive("Target amount", entity.target_amount)
        if entity.current_amount is None or not math.isfinite(entity.current_amount) or entity.current_amount < 0:
            raise ValidationError("Current amount cannot be negative")

    def create(self, ctx, payload):
        payload = dict(payload)
        if payload.get("currentAmount") is None:
            payload["currentAmount"] = 0
        if payload.get("isCompleted") is None:
            payload["isCompleted"] = False
        return super().create(ctx, payload)

    def contribute(self, ctx, goal_id, amount, on_date: Optional[date] = None):
        """Move money from the available balance into a goal.

        The goal update and the matching expense transaction are written in
        one ``atomic()`` block. Stores without transactions get the goal's
        previous amount written back if the transaction insert fails.
        """
        goal = self.get(ctx, goal_id)
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise ValidationError("Please enter a valid amount")
        if not math.isfinite(amount) or not amount > 0:
            raise ValidationError("Amount must be greater than 0")

        balance = compute_stats(TransactionAccess(self.store).list(ctx)).balance
        if amount > balance:
            raise ValidationError(f"Insufficient balance. Available: {format_money(balance)}")

        new_amount = goal.current_amount + amount
        changes = {"current_amount": new_amount, "is_completed": new_amount >= goal.target_amount}
        previous = {"current_amount": goal.current_amount, "is_completed": goal.is_completed}
        tx_values = {
            "user_id": ctx.user_id,
            "type": "expense",
            "amount": amount,
            "category": CONTRIBUTION_CATEGORY,
            "description": f"Contribution to savings goal: {goal.name}",
            "date": on_date or date.today(),
        }

        goal_written = False
        try:
            with self.store.atomic():
                goal_record = self.store.update(GOALS, goal_id, changes)
                goal_written = True
                tx_record = self.store.insert(TRANSACTIONS, tx_values)
        except StorageError:
            if goal_written and not self.store.supports_transactions:
                logger.warning(f"Restoring goal {goal_id} after failed contribution transaction")
                self.store.update(GOALS, goal_id, previous)
            raise

        logger.info(f"Added {format_money(amount)} to goal {goal_id}. New total: {format_money(new_amount)}")
        return SavingsGoal.from_record(goal_record), Transaction.from_record(tx_record)


class AlertAccess(EntityAccess):
    table = ALERTS
    entity = Alert
    label = "Alert"
    required = ("type", "title", "message", "severity")
    conceal_foreign = True

    def validate(self, entity):
        if entity.type not in ALERT_TYPES:
            raise ValidationError(f"Invalid alert type: {entity.type}")
        if entity.severity not in ALERT_SEVERITIES:
            raise ValidationError(f"Invalid severity: {entity.severity}")
        if entity.metadata is not None and not isinstance(entity.metadata, dict):
            raise ValidationError("Metadata must be a JSON object")

    def list(self, ctx, unread_only=False):
        return super().list(ctx, where={"is_read": False} if unread_only else None)

    def create(self, ctx, payload):
        payload = dict(payload, isRead=False)
        return super().create(ctx, payload)

    def mark_read(self, ctx, alert_ids=None, mark_all=False):
        if mark_all:
            count = self.store.update_many(ALERTS, ctx.user_id, {"is_read": True}, where={"is_read": False})
        elif isinstance(alert_ids, list):
            count = self.store.update_many(ALERTS, ctx.user_id, {"is_read": True}, ids=alert_ids)
        else:
            raise ValidationError("Invalid request")
        logger.info(f"Marked {count} alert(s) read for user {ctx.user_id}")
        return count

    def remove(self, ctx, alert_id=None, delete_all=False):
        if delete_all:
            count = self.store.delete_many(ALERTS, ctx.user_id)
        elif alert_id:
            count = self.store.delete_many(ALERTS, ctx.user_id, ids=[alert_id])
        else:
            raise ValidationError("Invalid request")
        logger.info(f"Deleted {count} alert(s) for user {ctx.user_id}")
        return count


def parse_update(update_cls, payload):
    """Build an update struct from a JSON body; bad values are a 400"""
    try:
        return update_cls.from_json(payload)
    except (TypeError, ValueError) as e:
        raise ValidationError(str(e))
