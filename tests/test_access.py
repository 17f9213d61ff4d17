import unittest
from datetime import date
from unittest.mock import MagicMock

from pocketledger.backend.access import (
    BudgetAccess, RequestContext, SavingsGoalAccess, TransactionAccess, parse_update,
)
from pocketledger.backend.storage import ALERTS, BUDGETS, GOALS, TRANSACTIONS, RecordStore, SqlAlchemyRecordStore
from pocketledger.errors import Forbidden, NotFound, StorageError, ValidationError
from pocketledger.models import BudgetUpdate, SavingsGoalUpdate, TransactionUpdate

ALICE = RequestContext(user_id="alice")
BOB = RequestContext(user_id="bob")


class TestEntityAccess(unittest.TestCase):
    def setUp(self):
        self.store = SqlAlchemyRecordStore("sqlite://")

    def test_budget_crud_is_owner_scoped(self):
        budgets = BudgetAccess(self.store)
        created = budgets.create(ALICE, {"category": "Food", "limit": "150", "period": "weekly"})
        self.assertEqual(created.owner_id, "alice")
        self.assertEqual(created.limit, 150.0)

        with self.assertRaises(Forbidden):
            budgets.get(BOB, created.id)
        with self.assertRaises(Forbidden):
            budgets.update(BOB, created.id, BudgetUpdate(limit=1.0))
        with self.assertRaises(Forbidden):
            budgets.delete(BOB, created.id)
        self.assertEqual(budgets.list(BOB), [])
        self.assertEqual(budgets.get(ALICE, created.id).limit, 150.0)

    def test_owner_cannot_be_spoofed_on_create(self):
        tx = TransactionAccess(self.store).create(ALICE, {
            "type": "expense", "amount": 3, "category": "Food", "description": "Tea",
            "date": "2024-05-01", "userId": "bob",
        })
        self.assertEqual(tx.owner_id, "alice")

    def test_missing_record(self):
        with self.assertRaises(NotFound):
            BudgetAccess(self.store).get(ALICE, "nope")

    def test_empty_update_returns_current(self):
        budgets = BudgetAccess(self.store)
        created = budgets.create(ALICE, {"category": "Bills", "limit": 80, "period": "monthly"})
        self.assertEqual(budgets.update(ALICE, created.id, BudgetUpdate()), created)

    def test_update_validates_merged_record(self):
        goals = SavingsGoalAccess(self.store)
        goal = goals.create(ALICE, {"name": "Holiday", "targetAmount": 800})
        with self.assertRaises(ValidationError):
            goals.update(ALICE, goal.id, SavingsGoalUpdate(current_amount=-5.0))

    def test_parse_update_distinguishes_null_from_absent(self):
        update = parse_update(SavingsGoalUpdate, {"deadline": None, "name": "New"})
        self.assertEqual(update.changes(), {"name": "New", "deadline": None})

    def test_parse_update_rejects_bad_values(self):
        with self.assertRaises(ValidationError):
            parse_update(TransactionUpdate, {"amount": "lots"})


class TestSqlAlchemyColumns(unittest.TestCase):
    def setUp(self):
        self.store = SqlAlchemyRecordStore("sqlite://")

    def test_alert_metadata_round_trip(self):
        meta = {"dedupeKeys": ["goal:g1:50"], "milestone": 50}
        row = self.store.insert(ALERTS, {
            "user_id": "alice", "type": "goal_milestone", "title": "Halfway", "message": "50%",
            "severity": "success", "is_read": False, "metadata": meta,
        })
        self.assertEqual(row["metadata"], meta)
        self.assertEqual(self.store.get(ALERTS, row["id"])["metadata"], meta)
        self.assertEqual(self.store.select(ALERTS, "alice")[0]["metadata"], meta)

        self.store.update_many(ALERTS, "alice", {"is_read": True})
        updated = self.store.get(ALERTS, row["id"])
        self.assertTrue(updated["is_read"])
        self.assertEqual(updated["metadata"], meta)

        changed = self.store.update(ALERTS, row["id"], {"metadata": {"dedupeKeys": []}})
        self.assertEqual(changed["metadata"], {"dedupeKeys": []})

    def test_budget_upsert_updates_in_place(self):
        first = self.store.upsert(BUDGETS, "alice", {"category": "Food"}, {"limit": 100.0, "period": "monthly"})
        second = self.store.upsert(BUDGETS, "alice", {"category": "Food"}, {"limit": 250.0, "period": "weekly"})
        self.assertEqual(second["id"], first["id"])
        self.assertEqual(second["limit"], 250.0)
        self.assertEqual(len(self.store.select(BUDGETS, "alice")), 1)


class TestContributionCompensation(unittest.TestCase):
    def setUp(self):
        self.store = MagicMock(spec=RecordStore)
        self.store.supports_transactions = False
        # atomic() must not swallow errors
        self.store.atomic.return_value.__exit__.return_value = False
        self.store.get.return_value = {
            "id": "g1", "user_id": "alice", "name": "Bike", "target_amount": 100.0,
            "current_amount": 20.0, "is_completed": False,
        }
        self.store.select.return_value = [{
            "id": "t1", "user_id": "alice", "type": "income", "amount": 500.0,
            "category": "Salary", "description": "Pay", "date": date(2024, 5, 1),
        }]
        self.store.update.side_effect = lambda table, record_id, changes: dict(self.store.get.return_value, **changes)

    def test_failed_transaction_insert_restores_goal(self):
        self.store.insert.side_effect = StorageError("insert failed")
        with self.assertRaises(StorageError):
            SavingsGoalAccess(self.store).contribute(ALICE, "g1", 50)
        self.assertEqual(self.store.update.call_count, 2)
        restore = self.store.update.call_args_list[-1]
        self.assertEqual(restore.args, (GOALS, "g1", {"current_amount": 20.0, "is_completed": False}))

    def test_successful_contribution(self):
        self.store.insert.side_effect = lambda table, values: dict(values, id="t2")
        goal, tx = SavingsGoalAccess(self.store).contribute(ALICE, "g1", 80, on_date=date(2024, 5, 2))
        self.assertEqual(goal.current_amount, 100.0)
        self.assertTrue(goal.is_completed)
        self.assertEqual(tx.amount, 80.0)
        self.assertEqual(tx.date, date(2024, 5, 2))
        self.assertEqual(self.store.insert.call_args.args[0], TRANSACTIONS)

    def test_insufficient_balance(self):
        with self.assertRaises(ValidationError):
            SavingsGoalAccess(self.store).contribute(ALICE, "g1", 500.01)
        self.store.update.assert_not_called()

    def test_foreign_goal(self):
        with self.assertRaises(NotFound):
            SavingsGoalAccess(self.store).contribute(BOB, "g1", 10)


if __name__ == "__main__":
    unittest.main()
