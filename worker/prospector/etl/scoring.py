"""Automation-need scoring derived from public Google Places fields."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

SITE_BUILDER_HOSTS = (
    "wixsite",
    "wix.com",
    "square.site",
    "squarespace",
    "weebly",
    "godaddysites",
    "webflow",
)

# (upper bound inclusive, points, reason)
REVIEW_TIERS: Tuple[Tuple[float, int, str], ...] = (
    (5, 18, "Very low review volume (weak online footprint)"),
    (20, 14, "Low review volume (weak online footprint)"),
    (60, 10, "Moderate review volume (growth opportunity)"),
    (150, 6, "Decent review volume (established presence)"),
    (float("inf"), 2, "High review volume (strong presence)"),
)

# (upper bound exclusive, points, reason)
RATING_TIERS: Tuple[Tuple[float, int, str], ...] = (
    (3.6, 18, "Poor rating (major ops / CX gap)"),
    (4.0, 14, "Below average rating (ops / CX improvement needed)"),
    (4.3, 9, "Mediocre rating (ops / CX gap)"),
    (4.6, 4, "Good rating (minor improvement opportunities)"),
    (float("inf"), 1, "Excellent rating (well-established business)"),
)

NO_RATING_POINTS = 6
NO_RATING_REASON = "No rating data (possible low activity / incomplete profile)"
FALLBACK_REASON = "Automation opportunity detected"


@dataclass(frozen=True)
class ScoreInput:
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    business_status: Optional[str] = None


@dataclass
class AutomationScore:
    score: int
    reasons: List[str] = field(default_factory=list)
    signals: Dict[str, int] = field(default_factory=dict)


def site_builder_points(website: str) -> int:
    lowered = website.lower()
    return 8 if any(host in lowered for host in SITE_BUILDER_HOSTS) else 0


def compute_automation_need_score(data: ScoreInput) -> AutomationScore:
    reasons: List[str] = []
    signals: Dict[str, int] = {}

    rating = data.rating or 0
    reviews = data.user_ratings_total or 0
    website = (data.website or "").strip()
    phone = (data.phone or "").strip()
    status = (data.business_status or "").strip().upper()

    if "CLOSED_PERMANENTLY" in status or "PERMANENTLY CLOSED" in status:
        return AutomationScore(score=0, reasons=["Permanently closed (skip)"], signals={"closed": 100})

    score = 0

    if not website:
        signals["no_website"] = 25
        reasons.append("No website (big automation + marketing gap)")
        score += 25
    else:
        builder = site_builder_points(website)
        if builder:
            signals["site_builder"] = builder
            reasons.append("Website looks like a site-builder (upgrade opportunity)")
            score += builder
        else:
            signals["has_website"] = 0

    for bound, points, reason in REVIEW_TIERS:
        if reviews <= bound:
            signals["low_reviews"] = points
            reasons.append(reason)
            score += points
            break

    if rating > 0:
        for bound, points, reason in RATING_TIERS:
            if rating < bound:
                signals["rating_gap"] = points
                reasons.append(reason)
                score += points
                break
    else:
        signals["rating_gap"] = NO_RATING_POINTS
        reasons.append(NO_RATING_REASON)
        score += NO_RATING_POINTS

    if not phone:
        signals["no_phone"] = 8
        reasons.append("No phone listed (conversion friction)")
        score += 8
    else:
        signals["phone_present"] = 0

    if "OPERATIONAL" in status:
        signals["operational"] = -2
        score -= 2
        # Not worth calling out once the opportunity is already marginal.
        if score > 20:
            reasons.append("Currently operational (active business)")

    score = max(0, min(100, int(round(score))))

    deduped = list(dict.fromkeys(reasons))
    if score > 0 and not deduped:
        deduped.append(FALLBACK_REASON)

    return AutomationScore(score=score, reasons=deduped, signals=signals)


def compute_automation_need_score_value(data: ScoreInput) -> int:
    return compute_automation_need_score(data).score
