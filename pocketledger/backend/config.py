# backend/config.py
import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _int_env(name, default):
    value = os.environ.get(name)
    try:
        return int(value) if value not in (None, "") else default
    except ValueError:
        return default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-for-local-use-only")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-jwt-key-for-local-use-only-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=_int_env("JWT_ACCESS_TOKEN_HOURS", 24))

    # sqlalchemy | supabase
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "sqlalchemy")
    DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///data/pocketledger.db")
    SUPABASE_URL = os.environ.get("SUPABASE_URL")
    SUPABASE_KEY = os.environ.get("SUPABASE_KEY")

    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "http://localhost:8501,http://localhost:3000")
    ALERT_LIST_LIMIT = _int_env("ALERT_LIST_LIMIT", 50)
    # Python weekday numbers, Monday is 0
    WEEK_START = _int_env("WEEK_START", 6)
