# backend/reports.py
from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import jwt_required

from pocketledger.insights import budget_status, compute_stats, goal_summary, unread_count

from .access import AlertAccess, BudgetAccess, SavingsGoalAccess, TransactionAccess
from .auth import current_context
from .db import get_store

bp = Blueprint("reports", __name__, url_prefix="/reports")


@bp.route("/overview", methods=["GET"])
@jwt_required()
def overview():
    ctx = current_context()
    store = get_store()
    week_start = current_app.config.get("WEEK_START", 6)

    transactions = TransactionAccess(store).list(ctx)
    budgets = BudgetAccess(store).list(ctx)
    goals = SavingsGoalAccess(store).list(ctx)
    alerts = AlertAccess(store).list(ctx, unread_only=True)

    return jsonify({
        "stats": compute_stats(transactions).to_json(),
        "budgets": [budget_status(b, transactions, week_start=week_start).to_json() for b in budgets],
        "goals": [goal_summary(g) for g in goals],
        "unreadAlerts": unread_count(alerts),
    })
