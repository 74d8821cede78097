import pytest

from prospector.enrichment import social_verifier
from prospector.enrichment.social_verifier import (
    generate_facebook_urls,
    generate_instagram_urls,
    generate_linkedin_urls,
    parse_follower_count,
    verify_social_profiles,
)

HOMEPAGE = """
<html><body>
  <a href="https://www.facebook.com/sharer/sharer.php?u=https://acmeroofing.com">Share</a>
  <a href="https://www.facebook.com/acmeroofingmiami">Facebook</a>
  <a href="https://www.linkedin.com/company/acme-roofing/">LinkedIn</a>
</body></html>
"""


class DummyResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400


class DummySession:
    def __init__(self, pages=None, live_urls=()):
        self.pages = pages or {}
        self.live_urls = set(live_urls)
        self.head_calls = []
        self.get_calls = []

    def head(self, url, timeout=None, allow_redirects=None):
        self.head_calls.append(url)
        return DummyResponse(200 if url in self.live_urls else 404)

    def get(self, url, timeout=None, allow_redirects=None):
        self.get_calls.append(url)
        if url in self.pages:
            return DummyResponse(text=self.pages[url])
        return DummyResponse(404)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr(social_verifier.time, "sleep", lambda seconds: sleeps.append(seconds))
    return sleeps


def test_generate_candidate_urls():
    assert generate_linkedin_urls("Acme Roofing LLC") == [
        "https://www.linkedin.com/company/acme-roofing-llc",
        "https://www.linkedin.com/company/acme",
        "https://www.linkedin.com/company/acmeroofingllc",
        "https://www.linkedin.com/company/acme-roofing",
    ]
    assert generate_facebook_urls("Acme Roofing") == [
        "https://www.facebook.com/acmeroofing",
        "https://www.facebook.com/acme.roofing",
        "https://www.facebook.com/acme",
    ]
    assert generate_instagram_urls("AC") == ["https://www.instagram.com/ac/"]
    assert generate_instagram_urls("!!!") == []


@pytest.mark.parametrize(
    "raw, expected",
    [("1,204", 1204), ("3.4K", 3400), ("2m", 2_000_000), ("n/a", None)],
)
def test_parse_follower_count(raw, expected):
    assert parse_follower_count(raw) == expected


def test_website_links_skip_probing_for_found_platforms(no_sleep):
    session = DummySession(pages={"https://acmeroofing.com": HOMEPAGE})

    result = verify_social_profiles("Acme Roofing", "acmeroofing.com", session=session)

    assert [p.platform for p in result.profiles] == ["facebook", "linkedin"]
    assert result.url_for("facebook") == "https://www.facebook.com/acmeroofingmiami"
    assert result.url_for("linkedin") == "https://www.linkedin.com/company/acme-roofing"
    assert all(p.confidence == 95 and p.source == "website" for p in result.profiles)
    assert all("instagram.com" in url for url in session.head_calls)
    assert len(session.head_calls) == 3
    assert no_sleep == [social_verifier.PROBE_DELAY_SECONDS] * 3
    assert result.summary.total_found == 2
    assert result.summary.best_profile == "https://www.facebook.com/acmeroofingmiami"


def test_guessed_profile_collects_metrics(no_sleep):
    linkedin = "https://www.linkedin.com/company/acme-roofing"
    session = DummySession(
        pages={linkedin: "<span>1,204 followers</span>"},
        live_urls={linkedin},
    )

    result = verify_social_profiles("Acme Roofing", None, session=session)

    assert session.get_calls == [linkedin]
    assert len(result.profiles) == 1
    profile = result.profiles[0]
    assert profile.platform == "linkedin"
    assert profile.confidence == 85
    assert profile.source == "guessed"
    assert profile.metrics.followers == 1204
    assert result.summary.platforms == ["linkedin"]
    # linkedin hit on the first candidate, then three misses each for facebook and instagram
    assert len(session.head_calls) == 7
    assert len(no_sleep) == 6


def test_nothing_found():
    session = DummySession()

    result = verify_social_profiles("Acme Roofing", "acmeroofing.com", session=session)

    assert result.profiles == []
    assert result.summary.total_found == 0
    assert result.summary.best_profile is None
    assert result.url_for("linkedin") is None
