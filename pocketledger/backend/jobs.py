# backend/jobs.py
"""Background jobs run by ``flask run-jobs``.

``RecurringMaterializer`` turns due recurring templates into transactions;
``AlertGenerator`` emits budget, goal milestone and unusual spending alerts.
Both are safe to re-run: recurring templates advance ``last_run`` and every
generated alert records the dedupe keys it covers in its metadata.
"""
import logging
from datetime import date, datetime, time

import pandas as pd

from pocketledger.errors import StorageError
from pocketledger.insights import (
    SUNDAY, budget_status, format_money, goal_progress, next_occurrence,
)
from pocketledger.models import RecurringTransaction, Transaction

from .access import (
    AlertAccess, BudgetAccess, RequestContext, SavingsGoalAccess, TransactionAccess,
)
from .storage import ALERTS, RECURRING, TRANSACTIONS, USERS

logger = logging.getLogger("pocketledger-jobs")

GOAL_MILESTONES = (25, 50, 75, 100)
Z_THRESHOLD = 2.0
MIN_CATEGORY_POINTS = 4


def _today(now):
    if now is None:
        return date.today()
    return now.date() if isinstance(now, datetime) else now


class RecurringMaterializer:
    def __init__(self, store):
        self.store = store

    def due_dates(self, template: RecurringTransaction, today: date):
        """Occurrence dates not yet materialized, up to today or the end date"""
        if template.start_date is None:
            return []
        last = min(today, template.end_date) if template.end_date else today
        after = template.last_run.date() if template.last_run else None
        anchor_day = template.start_date.day

        dates = []
        day = template.start_date
        while day <= last:
            if after is None or day > after:
                dates.append(day)
            day = next_occurrence(day, template.frequency, anchor_day)
        return dates

    def run(self, ctx, now=None):
        today = _today(now)
        templates = [
            RecurringTransaction.from_record(r)
            for r in self.store.select(RECURRING, ctx.user_id, where={"is_active": True}, order_by=None)
        ]
        created = []
        for template in templates:
            dates = self.due_dates(template, today)
            if not dates:
                continue
            description = template.description or f"Recurring {template.category.lower()}"
            for day in dates:
                # the transaction and the last_run bump commit together
                with self.store.atomic():
                    record = self.store.insert(TRANSACTIONS, {
                        "user_id": ctx.user_id,
                        "type": template.type,
                        "amount": template.amount,
                        "category": template.category,
                        "description": description,
                        "date": day,
                    })
                    self.store.update(RECURRING, template.id, {"last_run": datetime.combine(day, time.min)})
                created.append(Transaction.from_record(record))

            AlertAccess(self.store).create(ctx, {
                "type": "recurring_reminder",
                "title": "Recurring transaction recorded",
                "message": (
                    f"{len(dates)} occurrence(s) of '{description}' added "
                    f"({format_money(template.amount * len(dates))} total)."
                ),
                "severity": "info",
                "metadata": {
                    "recurringId": template.id,
                    "dates": [d.isoformat() for d in dates],
                },
            })
            logger.info(f"Materialized {len(dates)} transaction(s) from recurring {template.id}")
        return created


class AlertGenerator:
    def __init__(self, store, week_start=SUNDAY, z_threshold=Z_THRESHOLD,
                 min_points=MIN_CATEGORY_POINTS):
        self.store = store
        self.week_start = week_start
        self.z_threshold = z_threshold
        self.min_points = min_points

    def _seen_keys(self, ctx):
        keys = set()
        for record in self.store.select(ALERTS, ctx.user_id, order_by=None):
            metadata = record.get("metadata")
            if not isinstance(metadata, dict):
                continue
            dedupe_keys = metadata.get("dedupeKeys")
            if isinstance(dedupe_keys, list):
                keys.update(k for k in dedupe_keys if isinstance(k, str))
        return keys

    def _emit(self, ctx, alert_type, severity, title, message, keys, **extra):
        metadata = dict(extra, dedupeKeys=list(keys))
        return AlertAccess(self.store).create(ctx, {
            "type": alert_type,
            "title": title,
            "message": message,
            "severity": severity,
            "metadata": metadata,
        })

    def budget_alerts(self, ctx, budgets, transactions, now, seen):
        alerts = []
        for budget in budgets:
            status = budget_status(budget, transactions, now, self.week_start)
            if status.status == "normal":
                continue
            key = f"budget:{budget.id}:{status.status}:{status.window_start.isoformat()}"
            if key in seen:
                continue
            if status.is_over_budget:
                severity, title = "error", f"{budget.category} budget exceeded"
            else:
                severity, title = "warning", f"{budget.category} budget almost used"
            message = (
                f"You have spent {format_money(status.spent)} of your "
                f"{format_money(status.limit)} {budget.period} {budget.category} budget "
                f"({status.percentage:.0f}%)."
            )
            alerts.append(self._emit(ctx, "budget_warning", severity, title, message, [key],
                                     budgetId=budget.id, percentage=round(status.percentage, 2)))
        return alerts

    def goal_alerts(self, ctx, goals, seen):
        alerts = []
        for goal in goals:
            progress = goal_progress(goal)
            new = [m for m in GOAL_MILESTONES if progress >= m and f"goal:{goal.id}:{m}" not in seen]
            if not new:
                continue
            # one alert for the highest milestone reached since the last run
            milestone = max(new)
            if milestone == 100:
                title = f"Goal reached: {goal.name}"
            else:
                title = f"{milestone}% of {goal.name} saved"
            message = (
                f"You have saved {format_money(goal.current_amount)} of "
                f"{format_money(goal.target_amount)} for {goal.name}."
            )
            keys = [f"goal:{goal.id}:{m}" for m in new]
            alerts.append(self._emit(ctx, "goal_milestone", "info", title, message, keys,
                                     goalId=goal.id, milestone=milestone))
        return alerts

    def unusual_transactions(self, transactions):
        """Expenses whose z-score within their category exceeds the threshold"""
        expenses = [t for t in transactions if t.type == "expense"]
        if len(expenses) < self.min_points:
            return []
        df = pd.DataFrame(
            [{"id": t.id, "category": t.category, "amount": t.amount} for t in expenses]
        )
        grouped = df.groupby("category")["amount"]
        df["points"] = grouped.transform("count")
        df["avg"] = grouped.transform("mean")
        df["sd"] = grouped.transform("std")
        df = df[(df["points"] >= self.min_points) & (df["sd"] > 0)].copy()
        if df.empty:
            return []
        df["z_score"] = (df["amount"] - df["avg"]) / df["sd"]
        flagged = df[df["z_score"] > self.z_threshold]
        by_id = {t.id: t for t in expenses}
        return [
            (by_id[tx_id], float(z), float(avg))
            for tx_id, z, avg in zip(flagged["id"], flagged["z_score"], flagged["avg"])
        ]

    def spending_alerts(self, ctx, transactions, seen):
        alerts = []
        for tx, z_score, mean in self.unusual_transactions(transactions):
            key = f"unusual:{tx.id}"
            if key in seen:
                continue
            message = (
                f"{tx.category} expense of {format_money(tx.amount)} on {tx.date.isoformat()} "
                f"is well above your usual {format_money(mean)}."
            )
            alerts.append(self._emit(ctx, "unusual_spending", "warning", "Unusual spending detected",
                                     message, [key], transactionId=tx.id, zScore=round(z_score, 2)))
        return alerts

    def run(self, ctx, now=None):
        transactions = TransactionAccess(self.store).list(ctx)
        budgets = BudgetAccess(self.store).list(ctx)
        goals = SavingsGoalAccess(self.store).list(ctx)
        seen = self._seen_keys(ctx)

        alerts = []
        alerts += self.budget_alerts(ctx, budgets, transactions, now, seen)
        alerts += self.goal_alerts(ctx, goals, seen)
        alerts += self.spending_alerts(ctx, transactions, seen)
        if alerts:
            logger.info(f"Generated {len(alerts)} alert(s) for user {ctx.user_id}")
        return alerts


def run_jobs_for_all(store, week_start=SUNDAY, now=None):
    """Run both jobs for every user; a storage failure skips that user only."""
    materializer = RecurringMaterializer(store)
    generator = AlertGenerator(store, week_start=week_start)
    summary = {"users": 0, "transactions": 0, "alerts": 0, "failed": 0}
    for user in store.select(USERS, order_by=None):
        ctx = RequestContext(user_id=user["id"])
        try:
            summary["transactions"] += len(materializer.run(ctx, now))
            summary["alerts"] += len(generator.run(ctx, now))
        except StorageError:
            logger.exception(f"Jobs failed for user {ctx.user_id}")
            summary["failed"] += 1
            continue
        summary["users"] += 1
    return summary
