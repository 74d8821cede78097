"""HTTP entrypoint that queues prospect searches and enriches single websites."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from prospector.core.config import get_settings
from prospector.enrichment.email_discovery import discover_emails, get_best_email
from prospector.enrichment.http import build_session
from prospector.enrichment.social_verifier import verify_social_profiles
from prospector.enrichment.website_intelligence import extract_website_intelligence
from prospector.enrichment.website_trust import deep_verify_website, quick_verify_website
from prospector.jobs.run_search import SearchConfig, run_search_job

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
# One worker: candidate processing must stay sequential across runs too.
_executor = ThreadPoolExecutor(max_workers=1)

_BOOL_FLAGS = ("enrich_emails", "enrich_social", "enrich_intelligence", "skip_suspicious", "deep_verify")

# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": getattr(settings, "worker_port", None),
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


def _parse_number(payload: Dict[str, Any], key: str, cast, required: bool = False):
    raw = payload.get(key)
    if raw is None or raw == "":
        if required:
            raise ValueError(f"{key} is required")
        return None
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be numeric") from exc


@app.post("/search")
def enqueue_search() -> Any:
    """
    Queue a prospect search run.
    Required JSON fields: query, city, lat, lng
    Optional: radius, category, pages, min_score, run_id and the enrichment booleans
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    missing = [f for f in ("query", "city") if not str(payload.get(f) or "").strip()]
    if missing:
        return jsonify({"error": f"missing fields: {', '.join(missing)}"}), 400

    try:
        lat = _parse_number(payload, "lat", float, required=True)
        lng = _parse_number(payload, "lng", float, required=True)
        radius = _parse_number(payload, "radius", int)
        pages = _parse_number(payload, "pages", int)
        min_score = _parse_number(payload, "min_score", int)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    if pages is not None and pages <= 0:
        return jsonify({"error": "pages must be positive"}), 400

    query = str(payload["query"]).strip()
    config = SearchConfig(
        query=query,
        city=str(payload["city"]).strip(),
        lat=lat,
        lng=lng,
        radius=radius or 30000,
        category=str(payload.get("category") or query).strip(),
        run_id=payload.get("run_id"),
        min_score=min_score,
        pages=pages or get_settings().max_pages,
        **{flag: bool(payload.get(flag, False)) for flag in _BOOL_FLAGS},
    )

    logger.info("Queueing search job: %s", config)
    _executor.submit(_run_job_safe, config)

    return jsonify({"data": {"status": "queued"}}), 202


@app.post("/verify")
def verify_website() -> Any:
    """Score a single website; pass ``deep: true`` to confirm it with a HEAD request."""

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    website = str(payload.get("website") or "").strip()
    if not website:
        return jsonify({"error": "website is required"}), 400

    if payload.get("deep"):
        with build_session() as session:
            verdict = deep_verify_website(website, session=session)
    else:
        verdict = quick_verify_website(website)
    return jsonify({"data": asdict(verdict)}), 200


@app.post("/enrich")
def enrich_website() -> Any:
    """Run every website analyzer for one business."""

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    name = str(payload.get("name") or "").strip()
    website: Optional[str] = str(payload.get("website") or "").strip() or None
    if not name:
        return jsonify({"error": "name is required"}), 400

    verification = quick_verify_website(website) if website else None
    trusted = bool(verification and verification.is_valid)

    try:
        with build_session() as session:
            emails = discover_emails(name, website, session=session) if trusted else None
            social = verify_social_profiles(name, website, session=session)
            intelligence = extract_website_intelligence(website, session=session) if trusted else None
    except Exception as exc:  # noqa: BLE001
        logger.exception("Enrichment failed for %s: %s", name, exc)
        return jsonify({"error": "enrichment failed"}), 500

    return (
        jsonify(
            {
                "data": {
                    "name": name,
                    "website": website,
                    "verification": asdict(verification) if verification else None,
                    "primary_email": get_best_email(emails) if emails else None,
                    "emails": asdict(emails) if emails else None,
                    "social": asdict(social),
                    "intelligence": asdict(intelligence) if intelligence else None,
                }
            }
        ),
        200,
    )


# ---------- Internals ----------


def _run_job_safe(config: SearchConfig) -> None:
    try:
        run_search_job(config)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Search job failed: %s", exc)


def main() -> None:
    port = int(os.getenv("PORT") or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
