"""CLI job that searches Google Places, enriches each business and persists prospects."""

import argparse
import logging
import sys
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from prospector.core.config import ConfigError, Settings, get_settings
from prospector.core.db import upsert_prospect
from prospector.enrichment.email_discovery import discover_emails, get_best_email, get_emails_by_confidence
from prospector.enrichment.http import build_session
from prospector.enrichment.social_verifier import verify_social_profiles
from prospector.enrichment.website_intelligence import extract_website_intelligence
from prospector.enrichment.website_trust import deep_verify_website, quick_verify_website
from prospector.etl.scoring import compute_automation_need_score
from prospector.etl.transform import merge_place, to_candidate, to_prospect_row, to_score_input
from prospector.vendors import google_places

logger = logging.getLogger(__name__)

PAGE_TOKEN_DELAY_SECONDS = 2.5
HIGH_CONFIDENCE_EMAIL_THRESHOLD = 60

SAVED = "saved"
SKIPPED_SPAM = "skipped_spam"
SKIPPED_SCORE = "skipped_score"
SKIPPED_INVALID = "skipped_invalid"
SAVE_FAILED = "save_failed"


@dataclass(frozen=True)
class SearchConfig:
    query: str
    city: str
    lat: float
    lng: float
    radius: int = 30000
    category: Optional[str] = None
    run_id: Optional[str] = None
    min_score: Optional[int] = None
    pages: int = 3
    enrich_emails: bool = False
    enrich_social: bool = False
    enrich_intelligence: bool = False
    skip_suspicious: bool = False
    deep_verify: bool = False


@dataclass
class RunStats:
    seen: int = 0
    saved: int = 0
    skipped_spam: int = 0
    skipped_score: int = 0
    save_failures: int = 0


def generate_run_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"run_{now.strftime('%Y-%m-%d')}_{uuid.uuid4().hex[:6]}"


def _safe_enrich(label: str, place_id: str, fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except Exception as exc:  # noqa: BLE001
        logger.warning("%s failed for %s: %s", label, place_id, exc)
        return None


def process_candidate(
    result: Dict[str, Any],
    *,
    config: SearchConfig,
    settings: Settings,
    run_id: str,
    page_index: int,
    rank: int,
) -> str:
    """Enrich, score and persist one search result. Returns the outcome label."""

    place_id = result.get("place_id")
    if not place_id:
        logger.debug("Skipping result without place_id: %s", result)
        return SKIPPED_INVALID

    details: Dict[str, Any] = {}
    try:
        details = google_places.place_details(place_id=place_id, api_key=settings.google_api_key)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to fetch details for %s: %s", place_id, exc)

    candidate = to_candidate(merge_place(result, details), default_region=settings.default_phone_region)
    logger.info("[%s] Processing %s (page=%d rank=%d)", run_id, candidate.name, page_index + 1, rank)

    with build_session() as session:
        verification = None
        if candidate.website:
            if config.deep_verify:
                verification = deep_verify_website(candidate.website, session=session)
            else:
                verification = quick_verify_website(candidate.website)
            logger.info(
                "Website %s trust=%d flags=%s", candidate.website, verification.trust_score, verification.flags
            )
            if config.skip_suspicious and verification.is_likely_spam:
                logger.info("Skipping %s: likely spam website", candidate.name)
                return SKIPPED_SPAM

        website_trusted = bool(candidate.website and verification and verification.is_valid)

        emails = best_email = None
        high_confidence_emails = []
        if config.enrich_emails and website_trusted:
            emails = _safe_enrich(
                "Email discovery", place_id, discover_emails, candidate.name, candidate.website, session=session
            )
            if emails:
                best_email = get_best_email(emails)
                high_confidence_emails = get_emails_by_confidence(emails, HIGH_CONFIDENCE_EMAIL_THRESHOLD)
                logger.info("Best email for %s: %s (%d candidates)", candidate.name, best_email, len(emails.emails))

        social = None
        if config.enrich_social:
            social = _safe_enrich(
                "Social verification", place_id, verify_social_profiles, candidate.name, candidate.website,
                session=session,
            )
            if social:
                logger.info("Found %d social profiles: %s", social.summary.total_found, social.summary.platforms)

        intelligence = None
        if config.enrich_intelligence and website_trusted:
            intelligence = _safe_enrich(
                "Intelligence extraction", place_id, extract_website_intelligence, candidate.website,
                session=session,
            )
            if intelligence:
                logger.info("Website intelligence completeness=%d", intelligence.completeness)

    scored = compute_automation_need_score(to_score_input(candidate))
    logger.info("Automation score for %s: %d (%s)", candidate.name, scored.score, "; ".join(scored.reasons))

    if config.min_score is not None and scored.score < config.min_score:
        logger.info("Skipping %s: score %d below minimum %d", candidate.name, scored.score, config.min_score)
        return SKIPPED_SCORE

    discovery = {
        "run_id": run_id,
        "query": config.query,
        "city": config.city,
        "category": config.category or config.query,
        "lat": config.lat,
        "lng": config.lng,
        "radius_m": config.radius,
        "page_index": page_index,
        "result_rank": rank,
        "discovered_at": datetime.now(timezone.utc),
    }
    row = to_prospect_row(
        candidate,
        score=scored,
        discovery=discovery,
        verification=verification,
        emails=emails,
        best_email=best_email,
        high_confidence_emails=high_confidence_emails,
        social=social,
        intelligence=intelligence,
    )

    try:
        upsert_prospect(row, organization_id=settings.organization_id)
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to upsert %s: %s", place_id, exc)
        return SAVE_FAILED

    logger.info("Saved %s", candidate.name)
    return SAVED


def run_search_job(config: SearchConfig, settings: Optional[Settings] = None) -> RunStats:
    settings = settings or get_settings()
    if not settings.google_api_key:
        raise ConfigError("GOOGLE_PLACES_API_KEY is required")

    query = config.query.strip()
    if not query:
        raise ValueError("Query parameters are empty")

    run_id = config.run_id or generate_run_id()
    logger.info(
        "[%s] Starting search for %r around %s (pages=%d, emails=%s, social=%s, intelligence=%s, skip_suspicious=%s)",
        run_id,
        query,
        config.city,
        config.pages,
        config.enrich_emails,
        config.enrich_social,
        config.enrich_intelligence,
        config.skip_suspicious,
    )

    stats = RunStats()
    page_token = None

    for page_index in range(config.pages):
        response = google_places.text_search(
            query=query,
            api_key=settings.google_api_key,
            lat=config.lat,
            lng=config.lng,
            radius=config.radius,
            pagetoken=page_token,
        )
        results = response.get("results", [])
        logger.info("Fetched %d results on page %d", len(results), page_index + 1)
        if not results:
            break

        for rank, result in enumerate(results, start=1):
            stats.seen += 1
            outcome = process_candidate(
                result,
                config=config,
                settings=settings,
                run_id=run_id,
                page_index=page_index,
                rank=rank,
            )
            if outcome == SAVED:
                stats.saved += 1
            elif outcome == SKIPPED_SPAM:
                stats.skipped_spam += 1
            elif outcome == SKIPPED_SCORE:
                stats.skipped_score += 1
            elif outcome == SAVE_FAILED:
                stats.save_failures += 1

        page_token = response.get("next_page_token")
        if not page_token or page_index + 1 >= config.pages:
            break
        # Google rejects a next_page_token that is used too soon.
        time.sleep(PAGE_TOKEN_DELAY_SECONDS)

    logger.info(
        "[%s] Completed run: seen=%d saved=%d skipped_spam=%d skipped_score=%d save_failures=%d",
        run_id,
        stats.seen,
        stats.saved,
        stats.skipped_spam,
        stats.skipped_score,
        stats.save_failures,
    )
    return stats


USAGE_EXAMPLES = """examples:
  basic search:
    python -m prospector.jobs.run_search --query "roofing contractor" --city "Miami, FL" --lat 25.7617 --lng -80.1918
  with email discovery:
    python -m prospector.jobs.run_search --query "roofing contractor" --city "Miami, FL" --lat 25.7617 --lng -80.1918 --enrichEmails --skipSuspicious
  full enrichment:
    python -m prospector.jobs.run_search --query "roofing contractor" --city "Miami, FL" --lat 25.7617 --lng -80.1918 --enrichEmails --enrichSocial --enrichIntelligence --skipSuspicious --minScore 35
"""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        self.print_help(sys.stderr)
        self.exit(1, f"\n{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        description="Search Google Places and save enriched prospects",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--query", required=True, help='Search query, e.g. "roofing contractor"')
    parser.add_argument("--city", required=True, help='City name, e.g. "Miami, FL"')
    parser.add_argument("--lat", type=float, required=True, help="City center latitude")
    parser.add_argument("--lng", type=float, required=True, help="City center longitude")
    parser.add_argument("--radius", type=int, default=30000, help="Search radius in meters")
    parser.add_argument("--category", help="Business category (defaults to the query)")
    parser.add_argument(
        "--pages",
        type=int,
        help="Maximum number of result pages to process (defaults to WORKER_MAX_PAGES)",
    )
    parser.add_argument("--minScore", dest="min_score", type=int, help="Minimum automation score to save")
    parser.add_argument("--runId", dest="run_id", help="Run identifier (generated when omitted)")
    parser.add_argument("--enrichEmails", dest="enrich_emails", action="store_true", help="Discover and validate emails")
    parser.add_argument(
        "--enrichSocial", dest="enrich_social", action="store_true", help="Verify LinkedIn, Facebook, Instagram"
    )
    parser.add_argument(
        "--enrichIntelligence",
        dest="enrich_intelligence",
        action="store_true",
        help="Extract tech stack, employees, founded year",
    )
    parser.add_argument(
        "--skipSuspicious", dest="skip_suspicious", action="store_true", help="Skip businesses with spam websites"
    )
    parser.add_argument(
        "--deepVerify", dest="deep_verify", action="store_true", help="Confirm websites with a HEAD request"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> SearchConfig:
    return SearchConfig(
        query=args.query,
        city=args.city,
        lat=args.lat,
        lng=args.lng,
        radius=args.radius,
        category=args.category or args.query,
        run_id=args.run_id,
        min_score=args.min_score,
        pages=args.pages if args.pages is not None else get_settings().max_pages,
        enrich_emails=args.enrich_emails,
        enrich_social=args.enrich_social,
        enrich_intelligence=args.enrich_intelligence,
        skip_suspicious=args.skip_suspicious,
        deep_verify=args.deep_verify,
    )


def main(argv: Optional[list] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    started = time.monotonic()
    try:
        run_search_job(config_from_args(args))
    except (ConfigError, ValueError) as exc:
        logger.error("Configuration error: %s", exc)
        parser.print_usage(sys.stderr)
        raise SystemExit(1) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("Search run failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc

    logger.info("Total time: %ds", round(time.monotonic() - started))


if __name__ == "__main__":
    main()
