import unittest
from datetime import date, datetime

from pocketledger.backend.access import (
    AlertAccess, BudgetAccess, RecurringTransactionAccess, RequestContext, SavingsGoalAccess,
    TransactionAccess,
)
from pocketledger.backend.jobs import AlertGenerator, RecurringMaterializer, run_jobs_for_all
from pocketledger.backend.storage import ALERTS, USERS, SqlAlchemyRecordStore
from pocketledger.models import RecurringTransaction, SavingsGoalUpdate

NOW = datetime(2024, 5, 15, 9, 30)


class JobsTestCase(unittest.TestCase):
    def setUp(self):
        self.store = SqlAlchemyRecordStore("sqlite://")
        user = self.store.insert(USERS, {"email": "dana@example.com", "password_hash": "x"})
        self.ctx = RequestContext(user_id=user["id"])

    def add_tx(self, amount, category="Food", day="2024-05-10", tx_type="expense"):
        return TransactionAccess(self.store).create(self.ctx, {
            "type": tx_type, "amount": amount, "category": category,
            "description": f"{category} spend", "date": day,
        })

    def alerts(self, alert_type=None):
        alerts = AlertAccess(self.store).list(self.ctx)
        return [a for a in alerts if alert_type is None or a.type == alert_type]


class TestDueDates(unittest.TestCase):
    def template(self, **overrides):
        values = dict(type="expense", amount=10.0, category="Bills", frequency="monthly",
                      start_date=date(2024, 1, 31), id="r1")
        values.update(overrides)
        return RecurringTransaction(**values)

    def test_monthly_follows_month_end(self):
        dates = RecurringMaterializer(None).due_dates(self.template(), date(2024, 4, 15))
        self.assertEqual(dates, [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)])

    def test_skips_dates_up_to_last_run(self):
        template = self.template(last_run=datetime(2024, 2, 29))
        self.assertEqual(RecurringMaterializer(None).due_dates(template, date(2024, 4, 15)), [date(2024, 3, 31)])

    def test_stops_at_end_date(self):
        template = self.template(frequency="weekly", start_date=date(2024, 5, 1), end_date=date(2024, 5, 10))
        dates = RecurringMaterializer(None).due_dates(template, date(2024, 6, 1))
        self.assertEqual(dates, [date(2024, 5, 1), date(2024, 5, 8)])

    def test_future_start(self):
        template = self.template(start_date=date(2024, 7, 1))
        self.assertEqual(RecurringMaterializer(None).due_dates(template, date(2024, 6, 1)), [])


class TestRecurringMaterializer(JobsTestCase):
    def setUp(self):
        super().setUp()
        self.template = RecurringTransactionAccess(self.store).create(self.ctx, {
            "type": "income", "amount": 1500, "category": "Salary", "frequency": "monthly",
            "startDate": "2024-03-01", "description": "Paycheck",
        })

    def test_materializes_each_due_occurrence_once(self):
        created = RecurringMaterializer(self.store).run(self.ctx, NOW)
        self.assertEqual(sorted(t.date for t in created), [date(2024, 3, 1), date(2024, 4, 1), date(2024, 5, 1)])
        self.assertTrue(all(t.description == "Paycheck" for t in created))

        template = RecurringTransactionAccess(self.store).get(self.ctx, self.template.id)
        self.assertEqual(template.last_run, datetime(2024, 5, 1))

        self.assertEqual(RecurringMaterializer(self.store).run(self.ctx, NOW), [])
        self.assertEqual(len(TransactionAccess(self.store).list(self.ctx)), 3)
        self.assertEqual(len(self.alerts("recurring_reminder")), 1)

    def test_inactive_templates_are_skipped(self):
        RecurringTransactionAccess(self.store).create(self.ctx, {
            "type": "expense", "amount": 9.99, "category": "Entertainment", "frequency": "monthly",
            "startDate": "2024-01-01", "isActive": False,
        })
        created = RecurringMaterializer(self.store).run(self.ctx, NOW)
        self.assertTrue(all(t.category == "Salary" for t in created))


class TestAlertGenerator(JobsTestCase):
    def test_budget_warning_once_per_window(self):
        BudgetAccess(self.store).create(self.ctx, {"category": "Food", "limit": 100, "period": "monthly"})
        self.add_tx(85)
        generator = AlertGenerator(self.store)

        first = generator.run(self.ctx, NOW)
        self.assertEqual([(a.type, a.severity) for a in first], [("budget_warning", "warning")])
        self.assertEqual(generator.run(self.ctx, NOW), [])

        self.add_tx(30, day="2024-05-14")
        second = generator.run(self.ctx, NOW)
        self.assertEqual([(a.type, a.severity) for a in second], [("budget_warning", "error")])

    def test_goal_milestones(self):
        goals = SavingsGoalAccess(self.store)
        goal = goals.create(self.ctx, {"name": "Camera", "targetAmount": 100, "currentAmount": 60})
        generator = AlertGenerator(self.store)

        first = generator.run(self.ctx, NOW)
        self.assertEqual(len(first), 1)
        self.assertEqual(first[0].metadata["milestone"], 50)
        self.assertEqual(generator.run(self.ctx, NOW), [])

        goals.update(self.ctx, goal.id, SavingsGoalUpdate(current_amount=100.0, is_completed=True))
        second = generator.run(self.ctx, NOW)
        self.assertEqual(second[0].metadata["milestone"], 100)
        self.assertEqual(set(second[0].metadata["dedupeKeys"]), {f"goal:{goal.id}:75", f"goal:{goal.id}:100"})

    def test_unusual_spending(self):
        for i in range(9):
            self.add_tx(10.0, category="Transportation", day=f"2024-04-{i + 10}")
        spike = self.add_tx(500.0, category="Transportation", day="2024-04-25")
        generator = AlertGenerator(self.store)

        alerts = generator.run(self.ctx, NOW)
        unusual = [a for a in alerts if a.type == "unusual_spending"]
        self.assertEqual(len(unusual), 1)
        self.assertEqual(unusual[0].metadata["transactionId"], spike.id)
        self.assertEqual(generator.run(self.ctx, NOW), [])

    def test_too_few_points_for_unusual_spending(self):
        self.add_tx(10.0)
        self.add_tx(10.0)
        self.add_tx(900.0)
        self.assertEqual(AlertGenerator(self.store).unusual_transactions(TransactionAccess(self.store).list(self.ctx)), [])


class TestRunForAll(JobsTestCase):
    def test_summary(self):
        RecurringTransactionAccess(self.store).create(self.ctx, {
            "type": "expense", "amount": 20, "category": "Bills", "frequency": "weekly",
            "startDate": "2024-05-01",
        })
        summary = run_jobs_for_all(self.store, now=NOW)
        self.assertEqual(summary["users"], 1)
        self.assertEqual(summary["transactions"], 3)
        self.assertEqual(summary["failed"], 0)

    def test_second_run_emits_nothing(self):
        BudgetAccess(self.store).create(self.ctx, {"category": "Food", "limit": 50, "period": "monthly"})
        SavingsGoalAccess(self.store).create(self.ctx, {"name": "Phone", "targetAmount": 200, "currentAmount": 120})
        for i in range(6):
            self.add_tx(5.0, day=f"2024-05-0{i + 1}")
        self.add_tx(400.0, day="2024-05-08")

        first = run_jobs_for_all(self.store, now=NOW)
        self.assertGreaterEqual(first["alerts"], 2)
        second = run_jobs_for_all(self.store, now=NOW)
        self.assertEqual(second["alerts"], 0)
        self.assertEqual(second["failed"], 0)
        self.assertEqual(len(self.alerts()), first["alerts"])


class TestMalformedAlertMetadata(JobsTestCase):
    def insert_alert(self, metadata):
        self.store.insert(ALERTS, {
            "user_id": self.ctx.user_id, "type": "budget_warning", "title": "old", "message": "old",
            "severity": "info", "is_read": False, "metadata": metadata,
        })

    def test_non_object_metadata_is_skipped(self):
        self.insert_alert(["x"])
        self.insert_alert("abc")
        self.insert_alert({"dedupeKeys": "goal:g1:25"})
        self.insert_alert({"dedupeKeys": ["unusual:t1", 7]})
        generator = AlertGenerator(self.store)

        self.assertEqual(generator._seen_keys(self.ctx), {"unusual:t1"})
        self.assertEqual(generator.run(self.ctx, NOW), [])
        summary = run_jobs_for_all(self.store, now=NOW)
        self.assertEqual(summary["users"], 1)
        self.assertEqual(summary["failed"], 0)


if __name__ == "__main__":
    unittest.main()
