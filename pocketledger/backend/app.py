# backend/app.py
import logging

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from pocketledger.errors import LedgerError

from . import alerts, budgets, goals, recurring, reports, transactions
from .auth import auth_bp, init_jwt
from .config import Config
from .db import get_store, init_store
from .jobs import run_jobs_for_all

# ---------------- Configuration ----------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("pocketledger-backend")


# ---------------- Flask App Factory ----------------
def create_app(config=None, store=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    init_jwt(app)

    # CORS
    origins = [o.strip() for o in str(app.config.get("CORS_ORIGINS", "")).split(",") if o.strip()]
    CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)

    # Blueprints
    app.register_blueprint(auth_bp, url_prefix="/auth")
    for module in (transactions, budgets, recurring, goals, alerts, reports):
        app.register_blueprint(module.bp)

    init_store(app, store)

    # ---------------- Error Handlers ----------------
    @app.errorhandler(LedgerError)
    def handle_ledger_error(e):
        if e.status_code >= 500:
            logger.error(f"Internal error: {e}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error")
        return jsonify({"error": "Something went wrong"}), 500

    # ---------------- Core Endpoints ----------------
    @app.route("/")
    def root():
        return jsonify({"msg": "PocketLedger backend root"})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.cli.command("run-jobs")
    def run_jobs_command():
        """Materialize due recurring transactions and emit alerts for every user."""
        summary = run_jobs_for_all(get_store(), week_start=app.config.get("WEEK_START", 6))
        logger.info(f"Jobs finished: {summary}")

    return app


# ---------------- Run ----------------
if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, host="0.0.0.0", port=5000)
