# backend/transactions.py
from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from pocketledger.errors import ValidationError
from pocketledger.insights import FilterOptions, filter_transactions
from pocketledger.models import TransactionUpdate

from .access import TransactionAccess, parse_update
from .auth import current_context, json_body
from .db import get_store

bp = Blueprint("transactions", __name__, url_prefix="/transactions")


def _access():
    return TransactionAccess(get_store())


@bp.route("", methods=["GET"])
@jwt_required()
def list_transactions():
    ctx = current_context()
    try:
        filters = FilterOptions.from_json(request.args)
    except ValueError as e:
        raise ValidationError(str(e))
    transactions = filter_transactions(_access().list(ctx), filters)
    return jsonify([t.to_json() for t in transactions])


@bp.route("", methods=["POST"])
@jwt_required()
def create_transaction():
    tx = _access().create(current_context(), json_body())
    return jsonify(tx.to_json()), 201


@bp.route("/<tx_id>", methods=["GET"])
@jwt_required()
def get_transaction(tx_id):
    return jsonify(_access().get(current_context(), tx_id).to_json())


@bp.route("/<tx_id>", methods=["PUT"])
@jwt_required()
def update_transaction(tx_id):
    update = parse_update(TransactionUpdate, json_body())
    tx = _access().update(current_context(), tx_id, update)
    return jsonify(tx.to_json())


@bp.route("/<tx_id>", methods=["DELETE"])
@jwt_required()
def delete_transaction(tx_id):
    return jsonify(_access().delete(current_context(), tx_id))
