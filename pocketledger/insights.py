# pocketledger/insights.py
"""Derived figures computed on demand from in-memory entities.

Nothing here touches storage: the API and the client cache both feed
their current transaction, budget and goal lists through these
functions whenever a view needs refreshing.
"""
import math
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from .models import parse_date

NEAR_LIMIT_PERCENT = 80
SUNDAY = 6

ALERT_TYPE_LABELS = {
    "budget_warning": "Budget Warning",
    "goal_milestone": "Goal Milestone",
    "unusual_spending": "Unusual Spending",
    "recurring_reminder": "Recurring Transaction",
}
SEVERITY_RANK = {"info": 0, "warning": 1, "error": 2}


@dataclass
class TransactionStats:
    total_income: float
    total_expense: float
    balance: float
    transaction_count: int

    def to_json(self):
        return {
            "totalIncome": round(self.total_income, 2),
            "totalExpense": round(self.total_expense, 2),
            "balance": round(self.balance, 2),
            "transactionCount": self.transaction_count,
        }


@dataclass
class FilterOptions:
    type: Optional[str] = None
    category: Optional[str] = None
    search_term: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @classmethod
    def from_json(cls, payload):
        return cls(
            type=payload.get("type") or None,
            category=payload.get("category") or None,
            search_term=payload.get("searchTerm") or None,
            date_from=parse_date(payload.get("dateFrom")),
            date_to=parse_date(payload.get("dateTo")),
        )


@dataclass
class BudgetStatus:
    budget_id: Optional[str]
    category: str
    period: str
    limit: float
    spent: float
    percentage: float
    window_start: date
    window_end: date
    status: str

    @property
    def remaining(self):
        return self.limit - self.spent

    @property
    def is_over_budget(self):
        return self.status == "over_budget"

    @property
    def is_near_limit(self):
        return self.status == "near_limit"

    def to_json(self):
        return {
            "budgetId": self.budget_id,
            "category": self.category,
            "period": self.period,
            "limit": round(self.limit, 2),
            "spent": round(self.spent, 2),
            "remaining": round(self.remaining, 2),
            "percentage": round(self.percentage, 2),
            "windowStart": self.window_start.isoformat(),
            "windowEnd": self.window_end.isoformat(),
            "status": self.status,
        }


def compute_stats(transactions: Iterable) -> TransactionStats:
    """Income, expense, balance and count over a transaction list"""
    transactions = list(transactions)
    total_income = sum(t.amount for t in transactions if t.type == "income")
    total_expense = sum(t.amount for t in transactions if t.type == "expense")
    return TransactionStats(
        total_income=total_income,
        total_expense=total_expense,
        balance=total_income - total_expense,
        transaction_count=len(transactions),
    )


def matches_filters(transaction, filters: FilterOptions) -> bool:
    if filters.type and transaction.type != filters.type:
        return False
    if filters.category and transaction.category != filters.category:
        return False
    if filters.search_term and filters.search_term.lower() not in (transaction.description or "").lower():
        return False
    if filters.date_from and transaction.date < filters.date_from:
        return False
    if filters.date_to and transaction.date > filters.date_to:
        return False
    return True


def filter_transactions(transactions: Iterable, filters: FilterOptions) -> List:
    """Keep transactions matching every filter that is set; order is preserved."""
    return [t for t in transactions if matches_filters(t, filters)]


def _as_date(now):
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def period_window(period: str, now=None, week_start: int = SUNDAY):
    """Inclusive (start, end) dates of the budget period containing ``now``.

    ``week_start`` uses Python weekday numbers (Monday is 0).
    """
    today = _as_date(now)
    if period == "weekly":
        offset = (today.weekday() - week_start) % 7
        start = today - timedelta(days=offset)
        return start, start + timedelta(days=6)
    start = today.replace(day=1)
    return start, today.replace(day=monthrange(today.year, today.month)[1])


def classify_spend(spent: float, limit: float) -> str:
    percentage = (spent / limit) * 100 if limit else 0.0
    if spent > limit:
        return "over_budget"
    if percentage >= NEAR_LIMIT_PERCENT:
        return "near_limit"
    return "normal"


def budget_status(budget, transactions: Iterable, now=None, week_start: int = SUNDAY) -> BudgetStatus:
    """Spend-to-date for a budget over its current period window"""
    start, end = period_window(budget.period, now, week_start)
    spent = sum(
        t.amount
        for t in transactions
        if t.type == "expense" and t.category == budget.category and start <= t.date <= end
    )
    percentage = (spent / budget.limit) * 100 if budget.limit else 0.0
    return BudgetStatus(
        budget_id=budget.id,
        category=budget.category,
        period=budget.period,
        limit=budget.limit,
        spent=spent,
        percentage=percentage,
        window_start=start,
        window_end=end,
        status=classify_spend(spent, budget.limit),
    )


def goal_progress(goal) -> float:
    """Percent of target saved, capped at 100"""
    if not goal.target_amount or goal.target_amount <= 0:
        return 0.0
    return min((goal.current_amount / goal.target_amount) * 100, 100.0)


def days_remaining(deadline, now=None) -> Optional[int]:
    """Whole days until the deadline, rounded up; negative when overdue."""
    if deadline is None:
        return None
    now = now or datetime.now()
    if not isinstance(now, datetime):
        now = datetime.combine(now, time.min)
    if not isinstance(deadline, datetime):
        deadline = datetime.combine(deadline, time.min)
    return math.ceil((deadline - now).total_seconds() / 86400)


def goal_summary(goal, now=None):
    remaining = days_remaining(goal.deadline, now)
    body = goal.to_json()
    body.update({
        "progress": round(goal_progress(goal), 2),
        "daysRemaining": remaining,
        "isOverdue": remaining is not None and remaining < 0 and not goal.is_completed,
    })
    return body


def alert_type_label(alert_type: str) -> str:
    return ALERT_TYPE_LABELS.get(alert_type, alert_type)


def alert_severity(severity: str) -> str:
    """Unknown severities render as info"""
    return severity if severity in SEVERITY_RANK else "info"


def unread_count(alerts: Iterable) -> int:
    return sum(1 for a in alerts if not a.is_read)


def format_money(amount: float) -> str:
    return f"{amount:,.2f}"


def add_months(day: date, months: int, anchor_day: Optional[int] = None) -> date:
    total = (day.month - 1) + months
    year = day.year + total // 12
    month = total % 12 + 1
    target = min(anchor_day or day.day, monthrange(year, month)[1])
    return date(year, month, target)


def next_occurrence(day: date, frequency: str, anchor_day: Optional[int] = None) -> date:
    """Date of the occurrence following ``day`` for a recurring frequency"""
    if frequency == "daily":
        return day + timedelta(days=1)
    if frequency == "weekly":
        return day + timedelta(days=7)
    if frequency == "monthly":
        return add_months(day, 1, anchor_day)
    if frequency == "yearly":
        return add_months(day, 12, anchor_day)
    raise ValueError(f"Unknown frequency: {frequency}")
