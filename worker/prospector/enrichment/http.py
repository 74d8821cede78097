"""HTTP and URL helpers shared by the website analyzers."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

import requests

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def normalize_url(raw_url: Optional[str]) -> str:
    """Prefix scheme-less website strings with https://."""

    url = (raw_url or "").strip()
    if not url:
        return ""
    if not url.lower().startswith("http"):
        url = f"https://{url}"
    return url


def extract_hostname(raw_url: Optional[str]) -> Optional[str]:
    """Return the lower-cased ASCII (punycode) hostname of a URL, or None when it cannot be parsed."""

    url = normalize_url(raw_url)
    if not url:
        return None
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    # Fully-qualified hosts carry one trailing dot.
    if host and host.endswith("."):
        host = host[:-1]
    if not host or any(char.isspace() for char in host):
        return None
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return None


def extract_domain(raw_url: Optional[str]) -> Optional[str]:
    """Hostname without a leading www. prefix."""

    host = extract_hostname(raw_url)
    if host and host.startswith("www."):
        host = host[4:]
    return host or None


def build_session(session: Optional[requests.Session] = None, user_agent: str = USER_AGENT) -> requests.Session:
    """Return ``session`` untouched, or a fresh session with browser-like headers."""

    if session is not None:
        return session
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml",
            "Accept-Language": "en-US,en;q=0.9",
        }
    )
    return session
