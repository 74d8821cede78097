"""Discover and confirm social profiles for a business."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup

from prospector.enrichment.http import build_session, normalize_url

logger = logging.getLogger(__name__)

WEBSITE_TIMEOUT = 10
PROBE_TIMEOUT = 8
METRICS_TIMEOUT = 10
PROBE_DELAY_SECONDS = 0.5

WEBSITE_CONFIDENCE = 95
SOURCE_WEBSITE = "website"
SOURCE_GUESSED = "guessed"

# Ordered: the first anchor matching a platform wins.
WEBSITE_PROFILE_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("linkedin", re.compile(r"^(https?://(?:[a-z]{2,3}\.)?linkedin\.com/company/[a-zA-Z0-9_-]+)", re.IGNORECASE)),
    ("facebook", re.compile(r"^(https?://(?:www\.|m\.)?facebook\.com/[a-zA-Z0-9_.]+)", re.IGNORECASE)),
    ("instagram", re.compile(r"^(https?://(?:www\.)?instagram\.com/[a-zA-Z0-9_.]+)", re.IGNORECASE)),
    ("twitter", re.compile(r"^(https?://(?:www\.)?(?:twitter|x)\.com/[a-zA-Z0-9_]+)", re.IGNORECASE)),
    ("yelp", re.compile(r"^(https?://(?:www\.)?yelp\.com/biz/[a-zA-Z0-9_-]+)", re.IGNORECASE)),
    ("bbb", re.compile(r"^(https?://(?:www\.)?bbb\.org/[a-zA-Z0-9_/-]+)", re.IGNORECASE)),
)
SHARE_LINK_MARKERS = ("/sharer", "/share", "/intent/", "/dialog/", "/plugins/")

_LEGAL_SUFFIX_REGEX = re.compile(r"\s+(llc|inc|corp|ltd|limited|company|co|group)\s*$", re.IGNORECASE)
_LINKEDIN_FOLLOWERS_REGEX = re.compile(r"(\d[\d,]*)\s+followers?", re.IGNORECASE)
_FACEBOOK_FOLLOWERS_REGEX = re.compile(r"(\d[\d,.]*[km]?)\s+(?:followers?|likes?)", re.IGNORECASE)


@dataclass
class SocialMetrics:
    followers: Optional[int] = None
    posts: Optional[int] = None
    rating: Optional[float] = None
    last_active: Optional[str] = None


@dataclass
class SocialProfile:
    platform: str
    url: str
    exists: bool = True
    confidence: int = 0
    source: str = SOURCE_GUESSED
    metrics: Optional[SocialMetrics] = None


@dataclass
class SocialSummary:
    total_found: int = 0
    platforms: List[str] = field(default_factory=list)
    best_profile: Optional[str] = None


@dataclass
class SocialVerificationResult:
    profiles: List[SocialProfile] = field(default_factory=list)
    summary: SocialSummary = field(default_factory=SocialSummary)

    def url_for(self, platform: str) -> Optional[str]:
        for profile in self.profiles:
            if profile.platform == platform:
                return profile.url
        return None


def _clean_name(business_name: str) -> List[str]:
    return re.sub(r"[^a-z0-9\s]", "", (business_name or "").lower()).split()


def _unique(values: List[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def _first_word(words: List[str]) -> str:
    return words[0] if words and len(words[0]) > 2 else ""


def generate_linkedin_urls(business_name: str) -> List[str]:
    words = _clean_name(business_name)
    if not words:
        return []
    stripped = _LEGAL_SUFFIX_REGEX.sub("", " ".join(words)).split()
    slugs = ["-".join(words), _first_word(words), "".join(words), "-".join(stripped)]
    return [f"https://www.linkedin.com/company/{slug}" for slug in _unique(slugs)]


def generate_facebook_urls(business_name: str) -> List[str]:
    words = _clean_name(business_name)
    if not words:
        return []
    slugs = ["".join(words), ".".join(words), _first_word(words)]
    return [f"https://www.facebook.com/{slug}" for slug in _unique(slugs)]


def generate_instagram_urls(business_name: str) -> List[str]:
    words = _clean_name(business_name)
    if not words:
        return []
    slugs = ["_".join(words), "".join(words), _first_word(words)]
    return [f"https://www.instagram.com/{slug}/" for slug in _unique(slugs)]


def check_url_exists(session: requests.Session, url: str, timeout: float = PROBE_TIMEOUT) -> bool:
    try:
        response = session.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.debug("Probe failed for %s: %s", url, exc)
        return False
    return response.ok


def parse_follower_count(value: str) -> Optional[int]:
    """Turn strings like ``1,204``, ``3.4K`` or ``2m`` into integers."""

    text = value.strip().lower().replace(",", "")
    multiplier = 1
    if text.endswith("k"):
        multiplier, text = 1_000, text[:-1]
    elif text.endswith("m"):
        multiplier, text = 1_000_000, text[:-1]
    try:
        return int(round(float(text) * multiplier))
    except ValueError:
        return None


def _fetch_html(session: requests.Session, url: str, timeout: float) -> Optional[str]:
    try:
        response = session.get(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.debug("Fetch failed for %s: %s", url, exc)
        return None
    if not response.ok:
        return None
    return response.text or ""


def scrape_linkedin_metrics(session: requests.Session, url: str) -> Optional[SocialMetrics]:
    html = _fetch_html(session, url, METRICS_TIMEOUT)
    if html is None:
        return None
    match = _LINKEDIN_FOLLOWERS_REGEX.search(html)
    return SocialMetrics(followers=parse_follower_count(match.group(1)) if match else None)


def scrape_facebook_metrics(session: requests.Session, url: str) -> Optional[SocialMetrics]:
    html = _fetch_html(session, url, METRICS_TIMEOUT)
    if html is None:
        return None
    match = _FACEBOOK_FOLLOWERS_REGEX.search(html)
    return SocialMetrics(followers=parse_follower_count(match.group(1)) if match else None)


MetricsScraper = Callable[[requests.Session, str], Optional[SocialMetrics]]

# platform, candidate generator, confidence for a guessed hit, metrics scraper
GUESSED_PLATFORMS: Tuple[Tuple[str, Callable[[str], List[str]], int, Optional[MetricsScraper]], ...] = (
    ("linkedin", generate_linkedin_urls, 85, scrape_linkedin_metrics),
    ("facebook", generate_facebook_urls, 80, scrape_facebook_metrics),
    ("instagram", generate_instagram_urls, 75, None),
)


def extract_socials_from_website(session: requests.Session, website: str) -> List[SocialProfile]:
    """Return at most one profile per platform linked from the homepage."""

    html = _fetch_html(session, normalize_url(website), WEBSITE_TIMEOUT)
    if html is None:
        logger.info("Could not fetch %s for social links", website)
        return []

    found: Dict[str, SocialProfile] = {}
    soup = BeautifulSoup(html, "html.parser")
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if any(marker in href.lower() for marker in SHARE_LINK_MARKERS):
            continue
        for platform, pattern in WEBSITE_PROFILE_PATTERNS:
            if platform in found:
                continue
            match = pattern.match(href)
            if match:
                found[platform] = SocialProfile(
                    platform=platform,
                    url=match.group(1),
                    confidence=WEBSITE_CONFIDENCE,
                    source=SOURCE_WEBSITE,
                )
                break

    return list(found.values())


def _probe_platform(
    session: requests.Session,
    platform: str,
    candidates: List[str],
    confidence: int,
    metrics_scraper: Optional[MetricsScraper],
) -> Optional[SocialProfile]:
    for url in candidates:
        logger.debug("Checking %s: %s", platform, url)
        if check_url_exists(session, url):
            logger.info("Found %s profile: %s", platform, url)
            metrics = metrics_scraper(session, url) if metrics_scraper else None
            return SocialProfile(platform=platform, url=url, confidence=confidence, metrics=metrics)
        time.sleep(PROBE_DELAY_SECONDS)
    return None


def verify_social_profiles(
    business_name: str,
    website: Optional[str],
    *,
    session: Optional[requests.Session] = None,
) -> SocialVerificationResult:
    """Find profiles linked from the website, then guess the remaining platforms."""

    session = build_session(session)
    profiles: List[SocialProfile] = []

    logger.info("Verifying social profiles for %s", business_name)
    if website:
        profiles.extend(extract_socials_from_website(session, website))
        if profiles:
            logger.info("Found %d profiles linked from %s", len(profiles), website)

    for platform, generator, confidence, metrics_scraper in GUESSED_PLATFORMS:
        if any(profile.platform == platform for profile in profiles):
            continue
        profile = _probe_platform(session, platform, generator(business_name), confidence, metrics_scraper)
        if profile:
            profiles.append(profile)

    profiles.sort(key=lambda profile: profile.confidence, reverse=True)
    summary = SocialSummary(
        total_found=len(profiles),
        platforms=[profile.platform for profile in profiles],
        best_profile=profiles[0].url if profiles else None,
    )
    return SocialVerificationResult(profiles=profiles, summary=summary)
