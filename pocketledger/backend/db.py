# backend/db.py
import logging

from flask import current_app

from .storage import build_record_store

logger = logging.getLogger("pocketledger-backend")

EXTENSION_KEY = "pocketledger.store"


def init_store(app, store=None):
    """Attach a record store to the app, building one from config if none is given"""
    if store is None:
        store = build_record_store(app.config)
    app.extensions[EXTENSION_KEY] = store
    logger.info(f"Record store initialized ({type(store).__name__})")
    return store


def get_store():
    return current_app.extensions[EXTENSION_KEY]
