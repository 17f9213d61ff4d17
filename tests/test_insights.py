import unittest
from datetime import date, datetime

from pocketledger.insights import (
    FilterOptions, alert_severity, alert_type_label, budget_status, classify_spend,
    compute_stats, days_remaining, filter_transactions, format_money, goal_progress,
    next_occurrence, period_window, unread_count,
)
from pocketledger.models import Alert, Budget, SavingsGoal, Transaction

NOW = datetime(2024, 5, 15, 12, 0)


def tx(tx_type, amount, category, day, description="", tx_id=None):
    return Transaction(type=tx_type, amount=amount, category=category,
                       description=description, date=day, id=tx_id)


class TestStats(unittest.TestCase):
    def test_balance_is_income_minus_expense(self):
        transactions = [
            tx("income", 1000.0, "Salary", date(2024, 5, 1)),
            tx("income", 250.5, "Freelance", date(2024, 5, 3)),
            tx("expense", 80.25, "Food", date(2024, 5, 4)),
            tx("expense", 19.75, "Bills", date(2024, 5, 5)),
        ]
        stats = compute_stats(transactions)
        self.assertAlmostEqual(stats.total_income, 1250.5)
        self.assertAlmostEqual(stats.total_expense, 100.0)
        self.assertAlmostEqual(stats.balance, stats.total_income - stats.total_expense)
        self.assertEqual(stats.transaction_count, 4)

    def test_empty_list(self):
        stats = compute_stats([])
        self.assertEqual(stats.to_json(), {
            "totalIncome": 0, "totalExpense": 0, "balance": 0, "transactionCount": 0,
        })


class TestFiltering(unittest.TestCase):
    def setUp(self):
        self.transactions = [
            tx("expense", 12.0, "Food", date(2024, 5, 2), "Lunch at cafe", "a"),
            tx("expense", 40.0, "Transportation", date(2024, 5, 6), "Train pass", "b"),
            tx("income", 900.0, "Salary", date(2024, 5, 10), "May salary", "c"),
            tx("expense", 8.5, "Food", date(2024, 5, 20), "CAFE breakfast", "d"),
        ]

    def test_no_filters_keeps_everything_in_order(self):
        result = filter_transactions(self.transactions, FilterOptions())
        self.assertEqual([t.id for t in result], ["a", "b", "c", "d"])

    def test_predicates_are_combined(self):
        filters = FilterOptions(type="expense", category="Food", search_term="cafe",
                                date_from=date(2024, 5, 1), date_to=date(2024, 5, 15))
        self.assertEqual([t.id for t in filter_transactions(self.transactions, filters)], ["a"])

    def test_search_is_case_insensitive(self):
        result = filter_transactions(self.transactions, FilterOptions(search_term="Cafe"))
        self.assertEqual([t.id for t in result], ["a", "d"])

    def test_date_bounds_are_inclusive(self):
        filters = FilterOptions(date_from=date(2024, 5, 6), date_to=date(2024, 5, 10))
        self.assertEqual([t.id for t in filter_transactions(self.transactions, filters)], ["b", "c"])

    def test_filtering_is_idempotent(self):
        filters = FilterOptions(type="expense", search_term="a")
        once = filter_transactions(self.transactions, filters)
        self.assertEqual(filter_transactions(once, filters), once)

    def test_from_json_parses_dates(self):
        filters = FilterOptions.from_json({"type": "income", "dateFrom": "2024-05-01", "searchTerm": ""})
        self.assertEqual(filters.type, "income")
        self.assertEqual(filters.date_from, date(2024, 5, 1))
        self.assertIsNone(filters.search_term)


class TestBudgets(unittest.TestCase):
    def test_monthly_spend_ignores_other_months(self):
        budget = Budget(category="Food", limit=200.0, period="monthly", id="b1")
        transactions = [
            tx("expense", 50.0, "Food", date(2024, 5, 3)),
            tx("expense", 60.0, "Food", date(2024, 5, 31)),
            tx("expense", 999.0, "Food", date(2024, 4, 28)),
            tx("expense", 30.0, "Bills", date(2024, 5, 3)),
            tx("income", 500.0, "Salary", date(2024, 5, 3)),
        ]
        status = budget_status(budget, transactions, now=NOW)
        self.assertAlmostEqual(status.spent, 110.0)
        self.assertAlmostEqual(status.percentage, 55.0)
        self.assertEqual(status.status, "normal")
        self.assertAlmostEqual(status.remaining, 90.0)
        self.assertEqual(status.window_start, date(2024, 5, 1))
        self.assertEqual(status.window_end, date(2024, 5, 31))

    def test_eighty_percent_is_near_limit(self):
        self.assertEqual(classify_spend(80.0, 100.0), "near_limit")
        self.assertEqual(classify_spend(79.99, 100.0), "normal")

    def test_exactly_at_limit_is_not_over_budget(self):
        self.assertEqual(classify_spend(100.0, 100.0), "near_limit")

    def test_over_limit(self):
        self.assertEqual(classify_spend(100.01, 100.0), "over_budget")

    def test_weekly_window_starts_on_sunday(self):
        # 2024-05-15 is a Wednesday
        self.assertEqual(period_window("weekly", NOW), (date(2024, 5, 12), date(2024, 5, 18)))

    def test_weekly_window_with_monday_start(self):
        self.assertEqual(period_window("weekly", NOW, week_start=0), (date(2024, 5, 13), date(2024, 5, 19)))

    def test_weekly_budget_counts_only_this_week(self):
        budget = Budget(category="Food", limit=50.0, period="weekly")
        transactions = [
            tx("expense", 20.0, "Food", date(2024, 5, 12)),
            tx("expense", 25.0, "Food", date(2024, 5, 18)),
            tx("expense", 100.0, "Food", date(2024, 5, 11)),
        ]
        status = budget_status(budget, transactions, now=NOW)
        self.assertAlmostEqual(status.spent, 45.0)
        self.assertTrue(status.is_near_limit)
        self.assertFalse(status.is_over_budget)


class TestGoals(unittest.TestCase):
    def test_progress_is_capped(self):
        goal = SavingsGoal(name="Bike", target_amount=100.0, current_amount=150.0, is_completed=True)
        self.assertEqual(goal_progress(goal), 100.0)

    def test_progress_partial(self):
        goal = SavingsGoal(name="Trip", target_amount=400.0, current_amount=100.0)
        self.assertAlmostEqual(goal_progress(goal), 25.0)

    def test_days_remaining_rounds_up(self):
        self.assertEqual(days_remaining(date(2024, 5, 20), NOW), 5)

    def test_days_remaining_negative_when_overdue(self):
        self.assertEqual(days_remaining(date(2024, 5, 10), NOW), -5)

    def test_days_remaining_without_deadline(self):
        self.assertIsNone(days_remaining(None, NOW))


class TestLabels(unittest.TestCase):
    def test_alert_type_labels(self):
        self.assertEqual(alert_type_label("budget_warning"), "Budget Warning")
        self.assertEqual(alert_type_label("recurring_reminder"), "Recurring Transaction")
        self.assertEqual(alert_type_label("something_else"), "something_else")

    def test_unknown_severity_is_info(self):
        self.assertEqual(alert_severity("error"), "error")
        self.assertEqual(alert_severity("critical"), "info")

    def test_unread_count(self):
        alerts = [
            Alert(type="budget_warning", title="t", message="m", severity="warning", is_read=False),
            Alert(type="budget_warning", title="t", message="m", severity="warning", is_read=True),
        ]
        self.assertEqual(unread_count(alerts), 1)

    def test_format_money(self):
        self.assertEqual(format_money(1234.5), "1,234.50")


class TestNextOccurrence(unittest.TestCase):
    def test_monthly_clamps_to_month_end(self):
        self.assertEqual(next_occurrence(date(2024, 1, 31), "monthly", 31), date(2024, 2, 29))
        self.assertEqual(next_occurrence(date(2024, 2, 29), "monthly", 31), date(2024, 3, 31))

    def test_yearly_on_leap_day(self):
        self.assertEqual(next_occurrence(date(2024, 2, 29), "yearly", 29), date(2025, 2, 28))

    def test_daily_and_weekly(self):
        self.assertEqual(next_occurrence(date(2024, 5, 31), "daily"), date(2024, 6, 1))
        self.assertEqual(next_occurrence(date(2024, 5, 31), "weekly"), date(2024, 6, 7))

    def test_unknown_frequency(self):
        with self.assertRaises(ValueError):
            next_occurrence(date(2024, 5, 31), "hourly")


if __name__ == "__main__":
    unittest.main()
