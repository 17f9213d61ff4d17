# backend/alerts.py
from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from pocketledger.models import parse_bool

from .access import AlertAccess
from .auth import current_context, json_body
from .db import get_store

bp = Blueprint("alerts", __name__, url_prefix="/alerts")


def _access():
    return AlertAccess(get_store(), list_limit=current_app.config.get("ALERT_LIST_LIMIT", 50))


@bp.route("", methods=["GET"])
@jwt_required()
def list_alerts():
    unread_only = parse_bool(request.args.get("unreadOnly", "false"))
    alerts = _access().list(current_context(), unread_only=unread_only)
    return jsonify([a.to_json() for a in alerts])


@bp.route("", methods=["POST"])
@jwt_required()
def create_alert():
    alert = _access().create(current_context(), json_body())
    return jsonify(alert.to_json()), 201


@bp.route("", methods=["PATCH"])
@jwt_required()
def mark_alerts_read():
    data = json_body()
    count = _access().mark_read(
        current_context(),
        alert_ids=data.get("alertIds"),
        mark_all=parse_bool(data.get("markAllAsRead", False)),
    )
    return jsonify({"success": True, "updated": count})


@bp.route("", methods=["DELETE"])
@jwt_required()
def delete_alerts():
    count = _access().remove(
        current_context(),
        alert_id=request.args.get("id"),
        delete_all=parse_bool(request.args.get("deleteAll", "false")),
    )
    return jsonify({"success": True, "deleted": count})
