# backend/goals.py
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from pocketledger.errors import ValidationError
from pocketledger.insights import goal_summary
from pocketledger.models import SavingsGoalUpdate, parse_date

from .access import SavingsGoalAccess, parse_update
from .auth import current_context, json_body
from .db import get_store

bp = Blueprint("goals", __name__, url_prefix="/savings-goals")


def _access():
    return SavingsGoalAccess(get_store())


@bp.route("", methods=["GET"])
@jwt_required()
def list_goals():
    return jsonify([goal_summary(g) for g in _access().list(current_context())])


@bp.route("", methods=["POST"])
@jwt_required()
def create_goal():
    goal = _access().create(current_context(), json_body())
    return jsonify(goal_summary(goal)), 201


@bp.route("/<goal_id>", methods=["GET"])
@jwt_required()
def get_goal(goal_id):
    return jsonify(goal_summary(_access().get(current_context(), goal_id)))


@bp.route("/<goal_id>", methods=["PUT"])
@jwt_required()
def update_goal(goal_id):
    update = parse_update(SavingsGoalUpdate, json_body())
    return jsonify(goal_summary(_access().update(current_context(), goal_id, update)))


@bp.route("/<goal_id>", methods=["DELETE"])
@jwt_required()
def delete_goal(goal_id):
    return jsonify(_access().delete(current_context(), goal_id))


@bp.route("/<goal_id>/contributions", methods=["POST"])
@jwt_required()
def contribute(goal_id):
    data = json_body()
    if data.get("amount") in (None, ""):
        raise ValidationError("Missing required fields: amount", missing=["amount"])
    try:
        on_date = parse_date(data.get("date"))
    except ValueError as e:
        raise ValidationError(str(e))
    goal, tx = _access().contribute(current_context(), goal_id, data["amount"], on_date=on_date)
    return jsonify({"goal": goal_summary(goal), "transaction": tx.to_json()}), 201
