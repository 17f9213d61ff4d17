# backend/budgets.py
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from pocketledger.models import BudgetUpdate

from .access import BudgetAccess, parse_update
from .auth import current_context, json_body
from .db import get_store

bp = Blueprint("budgets", __name__, url_prefix="/budgets")


def _access():
    return BudgetAccess(get_store())


@bp.route("", methods=["GET"])
@jwt_required()
def list_budgets():
    return jsonify([b.to_json() for b in _access().list(current_context())])


@bp.route("", methods=["POST"])
@jwt_required()
def create_budget():
    budget = _access().create(current_context(), json_body())
    return jsonify(budget.to_json()), 201


@bp.route("", methods=["PUT"])
@jwt_required()
def upsert_budget():
    """Create or replace the budget for the body's category"""
    budget = _access().upsert(current_context(), json_body())
    return jsonify(budget.to_json())


@bp.route("/<budget_id>", methods=["GET"])
@jwt_required()
def get_budget(budget_id):
    return jsonify(_access().get(current_context(), budget_id).to_json())


@bp.route("/<budget_id>", methods=["PUT"])
@jwt_required()
def update_budget(budget_id):
    update = parse_update(BudgetUpdate, json_body())
    return jsonify(_access().update(current_context(), budget_id, update).to_json())


@bp.route("/<budget_id>", methods=["DELETE"])
@jwt_required()
def delete_budget(budget_id):
    return jsonify(_access().delete(current_context(), budget_id))
