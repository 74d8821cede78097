"""Static and single-request heuristics for website legitimacy.

``quick_verify_website`` never touches the network: it scores the URL string
alone. ``deep_verify_website`` adds one HEAD request and folds the response
(status, TLS, redirects) into the same score.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import List, Optional

import requests

from prospector.enrichment.http import USER_AGENT, build_session, extract_hostname, normalize_url

logger = logging.getLogger(__name__)

DEEP_VERIFY_TIMEOUT = 10

SPAM_DOMAINS = (
    "bit.ly",
    "tinyurl.com",
    "goo.gl",
    "ow.ly",
    "short.link",
    "spam-domain.com",
)

SUSPICIOUS_TLDS = (".tk", ".ml", ".ga", ".cf", ".gq", ".xyz", ".top", ".win")

SUSPICIOUS_KEYWORDS = (
    "casino",
    "viagra",
    "porn",
    "xxx",
    "loan",
    "crypto",
    "bitcoin",
    "pharma",
    "click here",
    "buy now",
    "limited time",
)

MAX_HOST_LABELS = 4
MAX_URL_LENGTH = 200

_IPV4_REGEX = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}")


@dataclass(frozen=True)
class TrustDetails:
    has_valid_ssl: Optional[bool] = None
    redirect_count: Optional[int] = None
    final_url: Optional[str] = None
    status_code: Optional[int] = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class TrustVerdict:
    is_valid: bool
    is_likely_spam: bool
    is_suspicious: bool
    trust_score: int
    flags: List[str] = field(default_factory=list)
    details: TrustDetails = field(default_factory=TrustDetails)


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def _verdict(score: int, flags: List[str], details: Optional[TrustDetails] = None) -> TrustVerdict:
    score = _clamp(score)
    return TrustVerdict(
        is_valid=score >= 50,
        is_likely_spam=score < 30,
        is_suspicious=score < 50,
        trust_score=score,
        flags=flags,
        details=details or TrustDetails(),
    )


def quick_verify_website(url: Optional[str]) -> TrustVerdict:
    """Score a website string for spam/phishing risk without fetching it."""

    if not url or not url.strip():
        return _verdict(0, ["No website provided"])

    clean_url = url.strip()
    host = extract_hostname(clean_url)
    if not host:
        return _verdict(0, ["Invalid URL format"])

    flags: List[str] = []
    score = 100

    if any(spam in host for spam in SPAM_DOMAINS):
        flags.append("Known spam/redirect domain")
        score -= 80

    if host.endswith(SUSPICIOUS_TLDS):
        flags.append("Suspicious TLD")
        score -= 30

    if _IPV4_REGEX.match(host):
        flags.append("IP address instead of domain")
        score -= 50

    if len(host.split(".")) > MAX_HOST_LABELS:
        flags.append("Excessive subdomains")
        score -= 20

    lowered = clean_url.lower()
    if any(keyword in lowered for keyword in SUSPICIOUS_KEYWORDS):
        flags.append("Contains suspicious keywords")
        score -= 40

    if len(clean_url) > MAX_URL_LENGTH:
        flags.append("Unusually long URL")
        score -= 15

    return _verdict(score, flags)


def deep_verify_website(
    url: str,
    timeout: float = DEEP_VERIFY_TIMEOUT,
    *,
    session: Optional[requests.Session] = None,
) -> TrustVerdict:
    """Run the static checks, then confirm the site with a single HEAD request."""

    quick = quick_verify_website(url)
    if quick.is_likely_spam:
        return quick

    target = normalize_url(url)
    flags = list(quick.flags)
    score = quick.trust_score
    session = build_session(session)

    try:
        response = session.head(
            target,
            timeout=timeout,
            allow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )
    except requests.Timeout:
        logger.info("Deep verification timed out for %s", target)
        flags.append("Request timeout")
        return replace(_verdict(score - 20, flags), is_likely_spam=False, is_suspicious=True)
    except requests.RequestException as exc:
        logger.info("Deep verification failed for %s: %s", target, exc)
        flags.append(f"Fetch error: {exc}")
        return replace(_verdict(score - 15, flags), is_likely_spam=False, is_suspicious=True)

    final_url = response.url or target
    details = TrustDetails(
        has_valid_ssl=final_url.startswith("https://"),
        redirect_count=len(response.history),
        final_url=final_url,
        status_code=response.status_code,
        content_type=response.headers.get("Content-Type"),
    )

    if response.status_code == 404:
        flags.append("Website not found (404)")
        score -= 50
    elif response.status_code >= 400:
        flags.append(f"HTTP error: {response.status_code}")
        score -= 30

    if not details.has_valid_ssl:
        flags.append("No HTTPS/SSL")
        score -= 20

    if final_url != target and not final_url.startswith(target):
        flags.append("Suspicious redirect")
        score -= 25

    return _verdict(score, flags, details)
