"""Email discovery: scrape, guess, validate and rank addresses for a business.

Validation stops at the domain level. An address marked ``unknown`` belongs to
a domain that accepts mail, but the mailbox itself was never confirmed, so
the confidence score is a ranking signal and not a deliverability guarantee.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import dns.exception
import dns.resolver
import requests
from bs4 import BeautifulSoup

from prospector.enrichment.http import build_session, extract_domain, normalize_url

logger = logging.getLogger(__name__)

SCRAPE_TIMEOUT = 10
MX_LIFETIME = 5
DEFAULT_MIN_CONFIDENCE = 60

SOURCE_MAILTO = "scraped-mailto"
SOURCE_HTML = "scraped-html"
SOURCE_PATTERN = "pattern-common"

VALID = "valid"
INVALID = "invalid"
UNKNOWN = "unknown"

COMMON_PREFIXES = (
    "info",
    "contact",
    "sales",
    "hello",
    "support",
    "admin",
    "office",
    "inquiries",
    "team",
    "mail",
)
INDUSTRY_PREFIXES = ("estimate", "quote", "service", "booking", "appointments")

SOURCE_POINTS = {SOURCE_MAILTO: 30, SOURCE_HTML: 20, SOURCE_PATTERN: 10}
VALIDATION_POINTS = {VALID: 20, INVALID: -40, UNKNOWN: 0}
PREFIX_POINTS = (
    (("info", "contact", "hello", "sales"), 15),
    (("support", "admin", "team"), 10),
    (("estimate", "quote", "service"), 8),
)

JUNK_EMAIL_MARKERS = (
    "example.com",
    "test.com",
    "sample.com",
    "domain.com",
    "yoursite.com",
    "yourdomain.com",
    "noreply",
    "no-reply",
    "mailer-daemon",
    "postmaster",
    ".png",
    ".jpg",
    ".jpeg",
    ".webp",
    ".svg",
)
JUNK_EMAIL_SUFFIXES = (".gif",)

EMAIL_REGEX = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_EMAIL_FORMAT_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


@dataclass
class EmailDiscoveryResult:
    emails: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    confidence: Dict[str, int] = field(default_factory=dict)
    validation_results: Dict[str, str] = field(default_factory=dict)
    sources: Dict[str, str] = field(default_factory=dict)


def is_valid_email_format(email: str) -> bool:
    return bool(_EMAIL_FORMAT_REGEX.match(email or ""))


def _is_junk(email: str) -> bool:
    return any(marker in email for marker in JUNK_EMAIL_MARKERS) or email.endswith(JUNK_EMAIL_SUFFIXES)


def check_mx_records(domain: str, lifetime: float = MX_LIFETIME) -> bool:
    """Return True when the domain publishes at least one MX record."""

    try:
        answers = dns.resolver.resolve(domain, "MX", lifetime=lifetime)
    except dns.exception.DNSException as exc:
        logger.debug("MX lookup failed for %s: %s", domain, exc)
        return False
    return len(answers) > 0


def generate_email_patterns(business_name: str, website: str) -> List[str]:
    """Guess likely role and name based addresses at the website's domain."""

    domain = extract_domain(website)
    if not domain:
        return []

    local_parts: List[str] = list(COMMON_PREFIXES)

    cleaned = re.sub(r"[^a-z0-9\s]", "", (business_name or "").lower()).strip()
    first_word = cleaned.split()[0] if cleaned else ""
    if len(first_word) > 2:
        local_parts.append(first_word)

    local_parts.extend(INDUSTRY_PREFIXES)

    emails: List[str] = []
    for local in local_parts:
        email = f"{local}@{domain}"
        if email not in emails:
            emails.append(email)
    return emails


def scrape_emails_from_website(
    website: str,
    timeout: float = SCRAPE_TIMEOUT,
    *,
    session: Optional[requests.Session] = None,
) -> Dict[str, str]:
    """Fetch the homepage once and map each discovered address to its source tag."""

    url = normalize_url(website)
    session = build_session(session)
    try:
        response = session.get(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.warning("Email scraping failed for %s: %s", url, exc)
        return {}
    if not response.ok:
        logger.info("Email scraping skipped for %s: HTTP %s", url, response.status_code)
        return {}

    html = response.text or ""
    found: Dict[str, str] = {}

    for match in EMAIL_REGEX.finditer(html):
        email = match.group(0).lower()
        if not _is_junk(email):
            found.setdefault(email, SOURCE_HTML)

    soup = BeautifulSoup(html, "html.parser")
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href.lower().startswith("mailto:"):
            continue
        email = href.split(":", 1)[1].split("?")[0].strip().lower()
        if is_valid_email_format(email) and not _is_junk(email):
            found[email] = SOURCE_MAILTO

    return found


def score_email_confidence(email: str, source: str, validation: str, domain: str) -> int:
    score = 50
    score += SOURCE_POINTS.get(source, 0)
    score += VALIDATION_POINTS.get(validation, 0)

    prefix = email.split("@")[0].lower()
    for prefixes, points in PREFIX_POINTS:
        if prefix in prefixes:
            score += points
            break

    if domain and domain in email:
        score += 10

    return max(0, min(100, score))


def discover_emails(
    business_name: str,
    website: str,
    *,
    session: Optional[requests.Session] = None,
    resolver: Optional[Callable[[str], bool]] = None,
) -> EmailDiscoveryResult:
    """Combine scraped and guessed addresses into a ranked candidate list.

    ``resolver`` answers whether a domain accepts mail; it defaults to an MX lookup.
    """

    domain = extract_domain(website)
    if not domain:
        logger.debug("No usable domain in %r; skipping email discovery", website)
        return EmailDiscoveryResult()

    result = EmailDiscoveryResult()

    logger.info("Scraping emails from %s", website)
    for email, source in scrape_emails_from_website(website, session=session).items():
        result.sources[email] = source

    logger.info("Generating email patterns for %s", business_name)
    result.patterns = generate_email_patterns(business_name, website)
    for email in result.patterns:
        result.sources.setdefault(email.lower(), SOURCE_PATTERN)

    has_mx = (resolver or check_mx_records)(domain)
    logger.info("Validating %d emails (mx=%s)", len(result.sources), has_mx)

    for email, source in result.sources.items():
        if not is_valid_email_format(email):
            result.validation_results[email] = INVALID
            result.confidence[email] = 0
            continue
        result.validation_results[email] = UNKNOWN if has_mx else INVALID
        result.confidence[email] = score_email_confidence(email, source, result.validation_results[email], domain)

    candidates = [email for email in result.sources if result.validation_results[email] != INVALID]
    result.emails = sorted(candidates, key=lambda email: result.confidence.get(email, 0), reverse=True)
    return result


def get_best_email(result: EmailDiscoveryResult) -> Optional[str]:
    return result.emails[0] if result.emails else None


def get_emails_by_confidence(result: EmailDiscoveryResult, min_confidence: int = DEFAULT_MIN_CONFIDENCE) -> List[str]:
    return [email for email in result.emails if result.confidence.get(email, 0) >= min_confidence]
