"""Database helpers for the worker."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

import psycopg2
from psycopg2 import extras, pool

from prospector.core.config import get_settings

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None

PROSPECT_COLUMNS = (
    "organization_id",
    "place_id",
    "name",
    "address",
    "phone",
    "phone_e164",
    "website",
    "rating",
    "user_ratings_count",
    "business_status",
    "lat",
    "lng",
    "category",
    "city",
    "automation_need_score",
    "score_reasons",
    "score_signals",
    "website_verified",
    "website_trust_score",
    "website_flags",
    "primary_email",
    "emails",
    "linkedin_url",
    "facebook_url",
    "instagram_url",
    "twitter_url",
    "yelp_url",
    "bbb_url",
    "cms",
    "has_booking_system",
    "has_live_chat",
    "employee_count",
    "founded_year",
    "data_completeness",
    "run_id",
    "search_query",
    "search_city",
    "search_category",
    "search_lat",
    "search_lng",
    "search_radius_m",
    "page_index",
    "result_rank",
    "discovered_at",
    "raw",
)
_JSON_COLUMNS = {"score_signals", "raw"}
_CONFLICT_COLUMNS = ("organization_id", "place_id")


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    except psycopg2.Error:
        conn.rollback()
        raise
    finally:
        pg_pool.putconn(conn)


def _prepare_params(row: Dict[str, Any], organization_id: str) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for column in PROSPECT_COLUMNS:
        value = organization_id if column == "organization_id" else row.get(column)
        if column in _JSON_COLUMNS:
            value = extras.Json(value) if value is not None else None
        params[column] = value
    return params


def _build_upsert_sql() -> str:
    columns = ",\n    ".join(PROSPECT_COLUMNS)
    values = ",\n    ".join(f"%({column})s" for column in PROSPECT_COLUMNS)
    updates = ",\n    ".join(
        f"{column} = EXCLUDED.{column}" for column in PROSPECT_COLUMNS if column not in _CONFLICT_COLUMNS
    )
    return (
        f"INSERT INTO prospects (\n    {columns},\n    updated_at\n) VALUES (\n    {values},\n    NOW()\n)\n"
        f"ON CONFLICT ({', '.join(_CONFLICT_COLUMNS)}) DO UPDATE SET\n    {updates},\n    updated_at = NOW();"
    )


_UPSERT_PROSPECT = _build_upsert_sql()


def upsert_prospect(row: Dict[str, Any], organization_id: Optional[str] = None) -> None:
    """Persist an enriched prospect row, performing an idempotent upsert."""
    if organization_id is None:
        organization_id = get_settings().organization_id
    params = _prepare_params(row, organization_id)
    if not params["place_id"] or not params["name"]:
        raise ValueError("place_id and name are required for upsert")

    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_UPSERT_PROSPECT, params)
        conn.commit()
        logger.debug("Upserted prospect %s", params["name"])
