import argparse

import pytest

from prospector.core.config import ConfigError, Settings
from prospector.enrichment.email_discovery import EmailDiscoveryResult
from prospector.enrichment.website_intelligence import IntelligenceSnapshot
from prospector.jobs import run_search
from prospector.jobs.run_search import SearchConfig


def _settings(api_key="abc", max_pages=3):
    return Settings(google_api_key=api_key, database_url="postgres://", organization_id="org-1", max_pages=max_pages)


def _config(**overrides):
    values = {"query": "roofing contractor", "city": "Miami, FL", "lat": 25.76, "lng": -80.19, "pages": 2}
    values.update(overrides)
    return SearchConfig(**values)


def _stub(place_id, website=None, rating=3.0, reviews=3):
    return {
        "place_id": place_id,
        "name": f"Company {place_id}",
        "formatted_address": "Main",
        "rating": rating,
        "user_ratings_total": reviews,
        "business_status": "OPERATIONAL",
        "geometry": {"location": {"lat": 25.7, "lng": -80.1}},
        "_website": website,
    }


@pytest.fixture
def places(monkeypatch):
    state = {"pages": [], "searches": [], "details_errors": set(), "sleeps": []}

    def fake_text_search(query, api_key, lat, lng, radius, pagetoken=None):
        state["searches"].append((query, pagetoken))
        index = len(state["searches"]) - 1
        return state["pages"][index] if index < len(state["pages"]) else {"results": []}

    def fake_place_details(place_id, api_key):
        if place_id in state["details_errors"]:
            raise RuntimeError("details unavailable")
        stub = state["by_id"][place_id]
        return {"website": stub["_website"], "formatted_phone_number": "(305) 555-0100"}

    def set_pages(*pages):
        state["pages"] = list(pages)
        state["by_id"] = {r["place_id"]: r for page in pages for r in page["results"]}

    state["set_pages"] = set_pages
    monkeypatch.setattr(run_search.google_places, "text_search", fake_text_search)
    monkeypatch.setattr(run_search.google_places, "place_details", fake_place_details)
    monkeypatch.setattr(run_search.time, "sleep", lambda seconds: state["sleeps"].append(seconds))
    return state


@pytest.fixture
def saved(monkeypatch):
    rows = []

    def fake_upsert(row, organization_id=None):
        rows.append((row, organization_id))

    monkeypatch.setattr(run_search, "upsert_prospect", fake_upsert)
    return rows


def test_run_search_job_requires_api_key():
    with pytest.raises(ConfigError):
        run_search.run_search_job(_config(), settings=_settings(api_key=""))


def test_run_search_job_requires_query():
    with pytest.raises(ValueError):
        run_search.run_search_job(_config(query="  "), settings=_settings())


def test_run_search_job_pages_and_skips_spam(places, saved):
    places["set_pages"](
        {"results": [_stub("1", "https://acme.com"), _stub("2", "https://bit.ly/x")], "next_page_token": "next"},
        {"results": [_stub("3")], "next_page_token": None},
    )

    stats = run_search.run_search_job(_config(skip_suspicious=True, run_id="run_test"), settings=_settings())

    assert places["searches"] == [("roofing contractor", None), ("roofing contractor", "next")]
    assert places["sleeps"] == [run_search.PAGE_TOKEN_DELAY_SECONDS]
    assert (stats.seen, stats.saved, stats.skipped_spam, stats.skipped_score) == (3, 2, 1, 0)

    rows = {row["place_id"]: (row, org) for row, org in saved}
    assert set(rows) == {"1", "3"}
    first, org = rows["1"]
    assert org == "org-1"
    assert first["run_id"] == "run_test"
    assert first["website_verified"] is True
    assert first["phone"] == "(305) 555-0100"
    assert first["page_index"] == 0
    assert first["result_rank"] == 1
    assert first["search_category"] == "roofing contractor"
    third, _ = rows["3"]
    assert third["website_verified"] is None
    assert third["automation_need_score"] == 59
    assert third["page_index"] == 1


def test_run_search_job_stops_at_page_limit(places, saved):
    places["set_pages"](
        {"results": [_stub("1")], "next_page_token": "next"},
        {"results": [_stub("2")], "next_page_token": "more"},
    )

    stats = run_search.run_search_job(_config(pages=1), settings=_settings())

    assert len(places["searches"]) == 1
    assert places["sleeps"] == []
    assert stats.seen == 1


def test_run_search_job_applies_min_score(places, saved):
    places["set_pages"]({"results": [_stub("1", rating=4.9, reviews=400)]})

    stats = run_search.run_search_job(_config(min_score=35), settings=_settings())

    assert stats.skipped_score == 1
    assert saved == []


def test_details_failure_is_not_fatal(places, saved):
    places["set_pages"]({"results": [_stub("1", "https://acme.com")]})
    places["details_errors"].add("1")

    stats = run_search.run_search_job(_config(), settings=_settings())

    assert stats.saved == 1
    row, _ = saved[0]
    assert row["name"] == "Company 1"
    assert row["website"] is None


def test_upsert_failure_is_counted(places, monkeypatch):
    places["set_pages"]({"results": [_stub("1"), _stub("2")]})

    def failing_upsert(row, organization_id=None):
        raise RuntimeError("db down")

    monkeypatch.setattr(run_search, "upsert_prospect", failing_upsert)

    stats = run_search.run_search_job(_config(), settings=_settings())

    assert stats.seen == 2
    assert stats.save_failures == 2
    assert stats.saved == 0


def test_enrichment_runs_only_for_trusted_websites(places, saved, monkeypatch):
    places["set_pages"]({"results": [_stub("1", "https://acme.com"), _stub("2", "https://casino.xyz")]})
    email_calls = []

    def fake_discover(name, website, session=None):
        email_calls.append(website)
        return EmailDiscoveryResult(
            emails=["info@acme.com", "team@acme.com"],
            confidence={"info@acme.com": 85, "team@acme.com": 40},
        )

    def failing_social(name, website, session=None):
        raise RuntimeError("blocked")

    monkeypatch.setattr(run_search, "discover_emails", fake_discover)
    monkeypatch.setattr(run_search, "verify_social_profiles", failing_social)
    monkeypatch.setattr(
        run_search, "extract_website_intelligence", lambda website, session=None: IntelligenceSnapshot(completeness=30)
    )

    stats = run_search.run_search_job(
        _config(enrich_emails=True, enrich_social=True, enrich_intelligence=True), settings=_settings()
    )

    assert stats.saved == 2
    assert email_calls == ["https://acme.com"]
    rows = {row["place_id"]: row for row, _ in saved}
    assert rows["1"]["primary_email"] == "info@acme.com"
    assert rows["1"]["emails"] == ["info@acme.com"]
    assert rows["1"]["data_completeness"] == 30
    assert rows["1"]["linkedin_url"] is None
    assert rows["2"]["website_verified"] is False
    assert rows["2"]["primary_email"] is None
    assert rows["2"]["data_completeness"] is None


def test_process_candidate_skips_missing_place_id():
    outcome = run_search.process_candidate(
        {"name": "No id"}, config=_config(), settings=_settings(), run_id="r", page_index=0, rank=1
    )
    assert outcome == run_search.SKIPPED_INVALID


def test_generate_run_id_format():
    run_id = run_search.generate_run_id()
    assert run_id.startswith("run_")
    assert len(run_id.split("_")[-1]) == 6


def test_build_parser_defaults(monkeypatch):
    monkeypatch.setattr(run_search, "get_settings", lambda: _settings(max_pages=7))
    parser = run_search.build_parser()
    args = parser.parse_args(["--query", "roofing", "--city", "Miami", "--lat", "25.7", "--lng", "-80.1"])

    assert isinstance(parser, argparse.ArgumentParser)
    assert args.pages is None
    assert args.radius == 30000
    assert args.enrich_emails is False

    config = run_search.config_from_args(args)
    assert config.category == "roofing"
    assert config.pages == 7
    assert config.min_score is None


def test_build_parser_flags(monkeypatch):
    monkeypatch.setattr(run_search, "get_settings", lambda: _settings())
    args = run_search.build_parser().parse_args(
        [
            "--query", "roofing", "--city", "Miami", "--lat", "1", "--lng", "2",
            "--minScore", "35", "--runId", "run_x", "--enrichEmails", "--skipSuspicious", "--deepVerify",
        ]
    )

    assert args.min_score == 35
    assert args.run_id == "run_x"
    assert args.enrich_emails is True
    assert args.skip_suspicious is True
    assert args.deep_verify is True


def test_missing_arguments_exit_with_one(monkeypatch):
    monkeypatch.setattr(run_search, "get_settings", lambda: _settings())

    with pytest.raises(SystemExit) as excinfo:
        run_search.build_parser().parse_args(["--query", "roofing"])

    assert excinfo.value.code == 1


def test_main_exits_on_config_error(monkeypatch):
    monkeypatch.setattr(run_search, "get_settings", lambda: _settings())

    def raise_config(config):
        raise ConfigError("GOOGLE_PLACES_API_KEY is required")

    monkeypatch.setattr(run_search, "run_search_job", raise_config)

    with pytest.raises(SystemExit) as excinfo:
        run_search.main(["--query", "roofing", "--city", "Miami", "--lat", "1", "--lng", "2"])

    assert excinfo.value.code == 1


def test_build_parser_does_not_load_settings(monkeypatch):
    def fail():
        raise AssertionError("settings loaded while building the parser")

    monkeypatch.setattr(run_search, "get_settings", fail)
    args = run_search.build_parser().parse_args(
        ["--query", "roofing", "--city", "Miami", "--lat", "1", "--lng", "2", "--pages", "2"]
    )

    assert run_search.config_from_args(args).pages == 2


def test_deep_verification_shares_the_closed_session(places, saved, monkeypatch):
    places["set_pages"]({"results": [_stub("1", "https://acme.com")]})

    class TrackingSession:
        def __init__(self):
            self.closed = False

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            self.closed = True
            return False

    sessions = []
    verified_with = []

    def fake_build_session():
        session = TrackingSession()
        sessions.append(session)
        return session

    def fake_deep_verify(url, session=None):
        verified_with.append(session)
        return run_search.quick_verify_website(url)

    monkeypatch.setattr(run_search, "build_session", fake_build_session)
    monkeypatch.setattr(run_search, "deep_verify_website", fake_deep_verify)

    stats = run_search.run_search_job(_config(deep_verify=True), settings=_settings())

    assert stats.saved == 1
    assert len(sessions) == 1
    assert verified_with == sessions
    assert sessions[0].closed is True
