# backend/recurring.py
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from pocketledger.models import RecurringTransactionUpdate

from .access import RecurringTransactionAccess, parse_update
from .auth import current_context, json_body
from .db import get_store

bp = Blueprint("recurring", __name__, url_prefix="/recurring-transactions")


def _access():
    return RecurringTransactionAccess(get_store())


@bp.route("", methods=["GET"])
@jwt_required()
def list_recurring():
    return jsonify([r.to_json() for r in _access().list(current_context())])


@bp.route("", methods=["POST"])
@jwt_required()
def create_recurring():
    recurring = _access().create(current_context(), json_body())
    return jsonify(recurring.to_json()), 201


@bp.route("/<recurring_id>", methods=["GET"])
@jwt_required()
def get_recurring(recurring_id):
    return jsonify(_access().get(current_context(), recurring_id).to_json())


@bp.route("/<recurring_id>", methods=["PUT"])
@jwt_required()
def update_recurring(recurring_id):
    update = parse_update(RecurringTransactionUpdate, json_body())
    return jsonify(_access().update(current_context(), recurring_id, update).to_json())


@bp.route("/<recurring_id>", methods=["DELETE"])
@jwt_required()
def delete_recurring(recurring_id):
    return jsonify(_access().delete(current_context(), recurring_id))
