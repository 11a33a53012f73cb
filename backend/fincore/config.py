from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from exc


def database_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL or SQLALCHEMY_DATABASE_URL must be set to create the database engine."
        )
    return url


def create_tables_on_startup() -> bool:
    return (os.getenv("FINCORE_CREATE_TABLES") or "").strip().lower() in {"1", "true", "yes"}


def cors_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS")
    if raw is None:
        return ["http://localhost:5173", "http://127.0.0.1:5173"]
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not be empty.")
    return origins


def log_level() -> str:
    return (os.getenv("LOG_LEVEL") or "INFO").upper()


def anomaly_list_limit() -> int:
    return _int_env("ANOMALY_LIST_LIMIT", 50)


def anomaly_trend_days() -> int:
    return _int_env("ANOMALY_TREND_DAYS", 30)


def forecast_accuracy_days() -> int:
    return _int_env("FORECAST_ACCURACY_DAYS", 30)
