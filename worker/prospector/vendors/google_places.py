"""Client utilities for the Google Places API."""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
REQUEST_TIMEOUT = 10

DETAILS_FIELDS = "formatted_phone_number,international_phone_number,website,business_status,types"

# Statuses that leave the run usable; anything else not OK is fatal.
_TEXT_SEARCH_WARN_STATUSES = {"OVER_QUERY_LIMIT", "INVALID_REQUEST"}


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


def _get_json(endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
    response = _SESSION.get(f"{_BASE_URL}/{endpoint}/json", params=params, timeout=REQUEST_TIMEOUT)
    if response.status_code >= 400:
        logger.error("%s failed: http_status=%s", endpoint, response.status_code)
        raise GooglePlacesError(f"Google Places error: HTTP {response.status_code}")
    return response.json()


def text_search(
    query: str,
    api_key: str,
    lat: float,
    lng: float,
    radius: int,
    pagetoken: Optional[str] = None,
) -> Dict[str, Any]:
    """Fetch one page of text search results around a location.

    Returns the raw payload; ``results`` is always present and
    ``next_page_token`` is present when another page can be requested.
    """
    params = {
        "query": query,
        "key": api_key,
        "location": f"{lat},{lng}",
        "radius": str(radius),
    }
    if pagetoken:
        params["pagetoken"] = pagetoken
    payload = _get_json("textsearch", params)
    status = payload.get("status")
    if status in _TEXT_SEARCH_WARN_STATUSES:
        logger.warning("text_search non-OK status: status=%s, error_message=%s", status, payload.get("error_message"))
    elif status not in {"OK", "ZERO_RESULTS"}:
        logger.error("text_search failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    payload.setdefault("results", [])
    return payload


def place_details(place_id: str, api_key: str) -> Dict[str, Any]:
    params = {"place_id": place_id, "key": api_key, "fields": DETAILS_FIELDS}
    payload = _get_json("details", params)
    status = payload.get("status")
    if status != "OK":
        logger.warning("place_details status: status=%s, error_message=%s", status, payload.get("error_message"))
        return {}
    return payload.get("result", {})
