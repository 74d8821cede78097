"""Utilities for turning Google Places payloads and enrichment results into rows."""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import phonenumbers

from prospector.enrichment.email_discovery import EmailDiscoveryResult
from prospector.enrichment.social_verifier import SocialVerificationResult
from prospector.enrichment.website_intelligence import IntelligenceSnapshot
from prospector.enrichment.website_trust import TrustVerdict
from prospector.etl.scoring import AutomationScore, ScoreInput
from prospector.models import CandidateBusiness

logger = logging.getLogger(__name__)

SOCIAL_COLUMNS = ("linkedin", "facebook", "instagram", "twitter", "yelp", "bbb")

_STUB_FIELDS = (
    "place_id",
    "name",
    "formatted_address",
    "rating",
    "user_ratings_total",
    "geometry",
    "types",
    "business_status",
)


def normalize_phone(raw: Optional[str], default_region: Optional[str]) -> Optional[str]:
    """Return an E.164 phone string, or None when the number cannot be parsed."""

    if not raw:
        return None
    try:
        parsed = phonenumbers.parse(raw, default_region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_possible_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def merge_place(stub: Dict[str, Any], details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Overlay place details on top of the text-search stub."""

    merged = {key: stub.get(key) for key in _STUB_FIELDS if key in stub}
    merged.update(details or {})
    return merged


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def to_candidate(place: Dict[str, Any], default_region: Optional[str] = None) -> CandidateBusiness:
    location = (place.get("geometry") or {}).get("location") or {}
    phone = _strip_or_none(place.get("formatted_phone_number") or place.get("international_phone_number"))
    types: Iterable[str] = place.get("types") or []

    return CandidateBusiness(
        place_id=place.get("place_id") or "",
        name=(place.get("name") or "").strip(),
        address=_strip_or_none(place.get("formatted_address")),
        phone=phone,
        phone_e164=normalize_phone(phone, default_region),
        website=_strip_or_none(place.get("website")),
        rating=_safe_float(place.get("rating")),
        review_count=_safe_int(place.get("user_ratings_total")),
        business_status=_strip_or_none(place.get("business_status")),
        types=list(types),
        lat=_safe_float(location.get("lat")),
        lng=_safe_float(location.get("lng")),
        raw=place,
    )


def to_score_input(candidate: CandidateBusiness) -> ScoreInput:
    return ScoreInput(
        rating=candidate.rating,
        user_ratings_total=candidate.review_count,
        website=candidate.website,
        phone=candidate.phone,
        business_status=candidate.business_status,
    )


def to_prospect_row(
    candidate: CandidateBusiness,
    *,
    score: AutomationScore,
    discovery: Dict[str, Any],
    verification: Optional[TrustVerdict] = None,
    emails: Optional[EmailDiscoveryResult] = None,
    best_email: Optional[str] = None,
    high_confidence_emails: Optional[List[str]] = None,
    social: Optional[SocialVerificationResult] = None,
    intelligence: Optional[IntelligenceSnapshot] = None,
) -> Dict[str, Any]:
    """Assemble the enriched prospect row handed to persistence.

    ``discovery`` carries the run metadata (run_id, query, city, category, lat,
    lng, radius_m, page_index, result_rank, discovered_at).
    """

    discovered_at = discovery.get("discovered_at")
    if isinstance(discovered_at, datetime):
        discovered_at = discovered_at.isoformat()

    row: Dict[str, Any] = {
        "place_id": candidate.place_id,
        "name": candidate.name,
        "address": candidate.address,
        "phone": candidate.phone,
        "phone_e164": candidate.phone_e164,
        "website": candidate.website,
        "rating": candidate.rating,
        "user_ratings_count": candidate.review_count,
        "business_status": candidate.operating_status.value,
        "lat": candidate.lat,
        "lng": candidate.lng,
        "category": discovery.get("category"),
        "city": discovery.get("city"),
        "automation_need_score": score.score,
        "score_reasons": score.reasons or None,
        "score_signals": score.signals or None,
        "website_verified": verification.is_valid if verification else None,
        "website_trust_score": verification.trust_score if verification else None,
        "website_flags": verification.flags if verification else None,
        "primary_email": best_email,
        "emails": high_confidence_emails or None,
        "cms": intelligence.technology.cms if intelligence else None,
        "has_booking_system": intelligence.contact_methods.has_booking_system if intelligence else None,
        "has_live_chat": intelligence.contact_methods.has_live_chat if intelligence else None,
        "employee_count": intelligence.business_facts.employee_count if intelligence else None,
        "founded_year": intelligence.business_facts.founded_year if intelligence else None,
        "data_completeness": intelligence.completeness if intelligence else None,
        "run_id": discovery.get("run_id"),
        "search_query": discovery.get("query"),
        "search_city": discovery.get("city"),
        "search_category": discovery.get("category"),
        "search_lat": discovery.get("lat"),
        "search_lng": discovery.get("lng"),
        "search_radius_m": discovery.get("radius_m"),
        "page_index": discovery.get("page_index"),
        "result_rank": discovery.get("result_rank"),
        "discovered_at": discovered_at,
    }

    for platform in SOCIAL_COLUMNS:
        row[f"{platform}_url"] = social.url_for(platform) if social else None

    row["raw"] = {
        **candidate.raw,
        "_score": asdict(score),
        "_verification": asdict(verification) if verification else None,
        "_emails": asdict(emails) if emails else None,
        "_social": asdict(social) if social else None,
        "_intelligence": asdict(intelligence) if intelligence else None,
        "_discovery": {**discovery, "discovered_at": discovered_at},
    }
    return row
