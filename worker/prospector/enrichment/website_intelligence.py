"""Technology and business fact extraction from a single homepage fetch."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from prospector.enrichment.http import build_session, normalize_url

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15
MAX_SERVICE_AREAS = 10
TEAM_IMAGE_RANGE = (3, 100)
MIN_FOUNDED_YEAR = 1900


@dataclass(frozen=True)
class Signature:
    """A detector: matches when any needle in ``any_of`` and every needle in ``all_of`` occur."""

    label: str
    any_of: Tuple[str, ...]
    all_of: Tuple[str, ...] = ()

    def matches(self, haystack: str) -> bool:
        return any(needle in haystack for needle in self.any_of) and all(
            needle in haystack for needle in self.all_of
        )


# Ordered: the first matching CMS wins.
CMS_SIGNATURES = (
    Signature("WordPress", ("wp-content", "wordpress")),
    Signature("Shopify", ("shopify", "cdn.shopify.com")),
    Signature("Wix", ("wixsite", "wix.com")),
    Signature("Squarespace", ("squarespace",)),
    Signature("Webflow", ("webflow",)),
    Signature("Weebly", ("weebly",)),
    Signature("GoDaddy Website Builder", ("godaddy",)),
)
CMS_HEADER_SIGNATURES = (
    Signature("WordPress", ("wordpress",)),
    Signature("Wix", ("wix",)),
)

ANALYTICS_SIGNATURES = (
    Signature("Google Analytics", ("google-analytics", "googletagmanager")),
    Signature("Facebook Pixel", ("facebook.com/tr", "fbevents")),
    Signature("Hotjar", ("hotjar",)),
    Signature("Mixpanel", ("mixpanel",)),
)

CHAT_SIGNATURES = (
    Signature("Intercom", ("intercom", "intercomcdn")),
    Signature("Drift", ("drift.com", "js.driftt.com")),
    Signature("Tawk.to", ("tawk.to", "tawkto")),
    Signature("LiveChat", ("livechat",)),
    Signature("Zendesk Chat", ("zendesk", "zdassets")),
    Signature("Crisp", ("crisp.chat",)),
)

BOOKING_SIGNATURES = (
    Signature("Calendly", ("calendly",)),
    Signature("Acuity Scheduling", ("acuityscheduling",)),
    Signature("Square Appointments", ("squareup.com",), ("appointments",)),
    Signature("ScheduleOnce", ("scheduleonce", "oncehub")),
    Signature("Setmore", ("setmore",)),
    Signature("SimplyBook.me", ("simplybook",)),
)

FRAMEWORK_SIGNATURES = (
    Signature("Next.js", ("__next_data__", "/_next/")),
    Signature("React", ("data-reactroot", "react-dom")),
    Signature("Vue", ("data-v-app", "vue.min.js", "vue.js")),
    Signature("Angular", ("ng-version",)),
)

# Matched against "<header-name>: <value>" lines of the response headers.
HOSTING_SIGNATURES = (
    Signature("Cloudflare", ("server: cloudflare", "cf-ray:")),
    Signature("Netlify", ("server: netlify", "x-nf-request-id:")),
    Signature("Vercel", ("server: vercel", "x-vercel-id:")),
    Signature("Amazon CloudFront", ("x-amz-cf-id:",)),
)

CERTIFICATIONS = (
    "BBB Accredited",
    "Licensed & Insured",
    "Certified",
    "ISO Certified",
    "Insured",
    "Bonded",
    "Veteran Owned",
    "Woman Owned",
    "Minority Owned",
    "Green Certified",
    "Energy Star Partner",
)

CONTACT_FORM_MARKERS = ("<form", "contact", "get in touch", "send message")

EMPLOYEE_PATTERNS = (
    re.compile(r"(\d+)\+?\s+employees?", re.IGNORECASE),
    re.compile(r"team of (\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s+team members?", re.IGNORECASE),
    re.compile(r"staff of (\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s+professionals?", re.IGNORECASE),
)

FOUNDED_PATTERNS = (
    re.compile(r"(?:established|founded|since)\s+(\d{4})", re.IGNORECASE),
    re.compile(r"(?:©|&copy;|copyright)\s*(\d{4})", re.IGNORECASE),
    re.compile(r"(\d{4})\s*-\s*(?:present|now|\d{4})", re.IGNORECASE),
)

SERVICE_AREA_PATTERNS = (
    re.compile(r"(?:serving|service areas?)[:\s]+([^<.]*)", re.IGNORECASE),
    re.compile(r"we serve[:\s]+([^<.]*)", re.IGNORECASE),
)
_CAPITALIZED_REGEX = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*")
_CONTACT_HREF_REGEX = re.compile(r"href=[\"']([^\"']*contact[^\"']*)[\"']", re.IGNORECASE)
_CALENDLY_REGEX = re.compile(r"calendly\.com/([a-zA-Z0-9_-]+)", re.IGNORECASE)

COMPLETENESS_WEIGHTS = {
    "cms": 15,
    "analytics": 10,
    "contact_form": 15,
    "live_chat": 10,
    "booking": 15,
    "employee_count": 15,
    "founded_year": 10,
    "certifications": 10,
}


@dataclass
class TechnologyStack:
    cms: Optional[str] = None
    analytics: List[str] = field(default_factory=list)
    chat_widgets: List[str] = field(default_factory=list)
    booking_systems: List[str] = field(default_factory=list)
    hosting: List[str] = field(default_factory=list)
    frameworks: List[str] = field(default_factory=list)


@dataclass
class ContactMethods:
    has_contact_form: bool = False
    has_live_chat: bool = False
    has_booking_system: bool = False
    has_phone_click: bool = False
    contact_form_url: Optional[str] = None
    booking_url: Optional[str] = None


@dataclass
class BusinessFacts:
    employee_count: Optional[int] = None
    founded_year: Optional[int] = None
    certifications: List[str] = field(default_factory=list)
    service_areas: List[str] = field(default_factory=list)


@dataclass
class IntelligenceSnapshot:
    technology: TechnologyStack = field(default_factory=TechnologyStack)
    contact_methods: ContactMethods = field(default_factory=ContactMethods)
    business_facts: BusinessFacts = field(default_factory=BusinessFacts)
    completeness: int = 0
    findings: List[str] = field(default_factory=list)


def match_all(signatures: Sequence[Signature], haystack: str) -> List[str]:
    return [signature.label for signature in signatures if signature.matches(haystack)]


def match_first(signatures: Sequence[Signature], haystack: str) -> Optional[str]:
    for signature in signatures:
        if signature.matches(haystack):
            return signature.label
    return None


def detect_cms(html: str, headers: Mapping[str, str]) -> Optional[str]:
    cms = match_first(CMS_SIGNATURES, html.lower())
    if cms:
        return cms
    powered_by = (headers.get("X-Powered-By") or "").lower()
    if powered_by:
        return match_first(CMS_HEADER_SIGNATURES, powered_by)
    return None


def detect_hosting(headers: Mapping[str, str]) -> List[str]:
    flattened = "\n".join(f"{name}: {value}" for name, value in headers.items()).lower()
    return match_all(HOSTING_SIGNATURES, flattened)


def detect_booking_systems(html: str) -> Tuple[List[str], List[str]]:
    systems = match_all(BOOKING_SIGNATURES, html.lower())
    urls: List[str] = []
    if "Calendly" in systems:
        match = _CALENDLY_REGEX.search(html)
        if match:
            urls.append(f"https://calendly.com/{match.group(1)}")
    return systems, urls


def detect_contact_form(html: str, base_url: str) -> Tuple[bool, Optional[str]]:
    lowered = html.lower()
    has_form = any(marker in lowered for marker in CONTACT_FORM_MARKERS)
    match = _CONTACT_HREF_REGEX.search(html)
    url = urljoin(base_url, match.group(1)) if match else None
    return has_form, url


def _count_team_images(soup: BeautifulSoup) -> Optional[int]:
    for section in soup.find_all("section"):
        descriptor = " ".join(
            " ".join(value) if isinstance(value, list) else str(value) for value in section.attrs.values()
        ).lower()
        if "team" in descriptor or "about" in descriptor:
            return len(section.find_all("img"))
    return None


def extract_employee_count(html: str, soup: BeautifulSoup) -> Optional[int]:
    for pattern in EMPLOYEE_PATTERNS:
        match = pattern.search(html)
        if match:
            return int(match.group(1))

    images = _count_team_images(soup)
    low, high = TEAM_IMAGE_RANGE
    if images is not None and low <= images <= high:
        return images
    return None


def extract_founded_year(html: str, current_year: Optional[int] = None) -> Optional[int]:
    current_year = current_year or datetime.now(timezone.utc).year
    for pattern in FOUNDED_PATTERNS:
        match = pattern.search(html)
        if match:
            year = int(match.group(1))
            if MIN_FOUNDED_YEAR <= year <= current_year:
                return year
    return None


def extract_certifications(html: str) -> List[str]:
    lowered = html.lower()
    return [cert for cert in CERTIFICATIONS if cert.lower() in lowered]


def extract_service_areas(html: str) -> List[str]:
    areas: List[str] = []
    for pattern in SERVICE_AREA_PATTERNS:
        for match in pattern.finditer(html):
            for city in _CAPITALIZED_REGEX.findall(match.group(1)):
                if city not in areas:
                    areas.append(city)
    return areas[:MAX_SERVICE_AREAS]


def score_completeness(snapshot: IntelligenceSnapshot) -> int:
    found = {
        "cms": bool(snapshot.technology.cms),
        "analytics": bool(snapshot.technology.analytics),
        "contact_form": snapshot.contact_methods.has_contact_form,
        "live_chat": snapshot.contact_methods.has_live_chat,
        "booking": snapshot.contact_methods.has_booking_system,
        "employee_count": bool(snapshot.business_facts.employee_count),
        "founded_year": bool(snapshot.business_facts.founded_year),
        "certifications": bool(snapshot.business_facts.certifications),
    }
    total = sum(COMPLETENESS_WEIGHTS[key] for key, present in found.items() if present)
    return min(100, total)


def analyze_html(html: str, headers: Mapping[str, str], base_url: str) -> IntelligenceSnapshot:
    """Run every detector against one HTML document."""

    lowered = html.lower()
    soup = BeautifulSoup(html, "html.parser")
    snapshot = IntelligenceSnapshot()

    booking_systems, booking_urls = detect_booking_systems(html)
    snapshot.technology = TechnologyStack(
        cms=detect_cms(html, headers),
        analytics=match_all(ANALYTICS_SIGNATURES, lowered),
        chat_widgets=match_all(CHAT_SIGNATURES, lowered),
        booking_systems=booking_systems,
        hosting=detect_hosting(headers),
        frameworks=match_all(FRAMEWORK_SIGNATURES, lowered),
    )

    has_form, form_url = detect_contact_form(html, base_url)
    snapshot.contact_methods = ContactMethods(
        has_contact_form=has_form,
        has_live_chat=bool(snapshot.technology.chat_widgets),
        has_booking_system=bool(booking_systems),
        has_phone_click="tel:" in lowered,
        contact_form_url=form_url,
        booking_url=booking_urls[0] if booking_urls else None,
    )

    snapshot.business_facts = BusinessFacts(
        employee_count=extract_employee_count(html, soup),
        founded_year=extract_founded_year(html),
        certifications=extract_certifications(html),
        service_areas=extract_service_areas(html),
    )

    tech, facts, findings = snapshot.technology, snapshot.business_facts, snapshot.findings
    if tech.cms:
        findings.append(f"CMS: {tech.cms}")
    if tech.analytics:
        findings.append(f"Analytics: {', '.join(tech.analytics)}")
    if tech.chat_widgets:
        findings.append(f"Chat: {', '.join(tech.chat_widgets)}")
    if tech.booking_systems:
        findings.append(f"Booking: {', '.join(tech.booking_systems)}")
    if facts.employee_count:
        findings.append(f"Employees: ~{facts.employee_count}")
    if facts.founded_year:
        findings.append(f"Founded: {facts.founded_year}")
    if facts.certifications:
        findings.append(f"Certs: {', '.join(facts.certifications)}")
    if facts.service_areas:
        findings.append(f"Service areas: {len(facts.service_areas)} found")

    snapshot.completeness = score_completeness(snapshot)
    return snapshot


def extract_website_intelligence(
    website: str,
    timeout: float = REQUEST_TIMEOUT,
    *,
    session: Optional[requests.Session] = None,
) -> IntelligenceSnapshot:
    """Fetch the website once and fingerprint it. Failures yield an empty snapshot."""

    url = normalize_url(website)
    session = build_session(session)
    findings = [f"Fetching {url}..."]

    try:
        response = session.get(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.warning("Intelligence fetch failed for %s: %s", url, exc)
        findings.append(f"Error: {exc}")
        return IntelligenceSnapshot(findings=findings)

    if not response.ok:
        findings.append(f"HTTP {response.status_code}: {response.reason}")
        return IntelligenceSnapshot(findings=findings)

    html = response.text or ""
    findings.append(f"Fetched {round(len(html) / 1024)}KB of HTML")

    snapshot = analyze_html(html, response.headers, response.url or url)
    snapshot.findings = findings + snapshot.findings
    return snapshot
