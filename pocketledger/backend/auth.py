# backend/auth.py
import logging
import re

from flask import Blueprint, jsonify, request
from flask_jwt_extended import JWTManager, create_access_token, get_jwt_identity
from werkzeug.security import check_password_hash, generate_password_hash

from pocketledger.errors import Unauthenticated, ValidationError
from pocketledger.models import User

from .access import RequestContext
from .db import get_store
from .storage import USERS

logger = logging.getLogger("pocketledger-backend")

auth_bp = Blueprint("auth", __name__)

MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def json_body():
    """Request body as a dict; anything else is a 400"""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _find_user(email):
    rows = get_store().select(USERS, where={"email": email}, order_by=None, limit=1)
    return User.from_record(rows[0]) if rows else None


def current_context():
    """RequestContext for the token's user; a token for a deleted user is a 401"""
    user_id = get_jwt_identity()
    if not user_id or get_store().get(USERS, str(user_id)) is None:
        raise Unauthenticated()
    return RequestContext(user_id=str(user_id))


def init_jwt(app):
    jwt = JWTManager(app)

    @jwt.unauthorized_loader
    def missing_token(reason):
        logger.info(f"Rejected request without token: {reason}")
        return jsonify({"error": "Unauthorized"}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        logger.info(f"Rejected invalid token: {reason}")
        return jsonify({"error": "Unauthorized"}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Unauthorized"}), 401

    return jwt


@auth_bp.route("/register", methods=["POST"])
def register():
    data = json_body()
    email = str(data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = data.get("name") or ""
    if not isinstance(password, str) or not isinstance(name, str):
        raise ValidationError("Password and name must be strings")
    name = name.strip() or None

    missing = [k for k, v in (("email", email), ("password", password)) if not v]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing=missing)
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if _find_user(email) is not None:
        raise ValidationError("Email already registered")

    record = get_store().insert(USERS, {
        "email": email,
        "password_hash": generate_password_hash(password),
        "name": name,
    })
    user = User.from_record(record)
    logger.info(f"Registered user {user.id}")
    token = create_access_token(identity=user.id)
    return jsonify({"access_token": token, "user": user.to_json()}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = json_body()
    email = str(data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise ValidationError("Email and password required")
    if not isinstance(password, str):
        raise ValidationError("Password must be a string")

    user = _find_user(email)
    if user is None or not check_password_hash(user.password_hash, password):
        logger.warning(f"Failed login for {email}")
        raise Unauthenticated("Invalid credentials")

    token = create_access_token(identity=user.id)
    return jsonify({"access_token": token, "user": user.to_json()})
