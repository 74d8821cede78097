import pytest

from prospector.core.config import Settings
from prospector.enrichment.email_discovery import EmailDiscoveryResult
from prospector.enrichment.social_verifier import SocialVerificationResult
from prospector.enrichment.website_intelligence import IntelligenceSnapshot
from prospector.jobs import run_search_server


@pytest.fixture(autouse=True)
def reset_executor(monkeypatch):
    submitted = {}

    class DummyExecutor:
        def submit(self, fn, config):
            submitted["called"] = True
            submitted["fn"] = fn
            submitted["config"] = config

    monkeypatch.setattr(run_search_server, "_executor", DummyExecutor())
    monkeypatch.setattr(
        run_search_server,
        "get_settings",
        lambda: Settings(google_api_key="key", database_url="postgres://", max_pages=4),
    )
    yield submitted


@pytest.fixture
def client():
    return run_search_server.app.test_client()


def test_health_endpoint(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"
    assert response.get_json()["worker_port_config"] == 9000


def test_root_endpoint(client):
    assert client.get("/").status_code == 200


def test_enqueue_search_validates_payload(client, reset_executor):
    assert client.post("/search", json={}).status_code == 400
    assert client.post("/search", json={"query": "roofing"}).status_code == 400
    assert client.post("/search", json={"query": "roofing", "city": "Miami"}).status_code == 400
    assert client.post(
        "/search", json={"query": "roofing", "city": "Miami", "lat": "north", "lng": 1}
    ).status_code == 400
    assert client.post(
        "/search", json={"query": "roofing", "city": "Miami", "lat": 1, "lng": 2, "pages": 0}
    ).status_code == 400
    assert "called" not in reset_executor


def test_enqueue_search_builds_config(client, reset_executor):
    payload = {
        "query": " roofing contractor ",
        "city": "Miami, FL",
        "lat": "25.76",
        "lng": -80.19,
        "min_score": "35",
        "enrich_emails": True,
        "skip_suspicious": True,
    }
    response = client.post("/search", json=payload)

    assert response.status_code == 202
    assert response.get_json() == {"data": {"status": "queued"}}
    assert reset_executor["fn"] is run_search_server._run_job_safe
    config = reset_executor["config"]
    assert config.query == "roofing contractor"
    assert config.category == "roofing contractor"
    assert config.lat == 25.76
    assert config.radius == 30000
    assert config.pages == 4
    assert config.min_score == 35
    assert config.enrich_emails is True
    assert config.enrich_social is False
    assert config.skip_suspicious is True


def test_run_job_safe_swallows_failures(monkeypatch):
    def boom(config):
        raise RuntimeError("boom")

    monkeypatch.setattr(run_search_server, "run_search_job", boom)
    run_search_server._run_job_safe(object())


def test_verify_endpoint(client):
    assert client.post("/verify", json={}).status_code == 400

    response = client.post("/verify", json={"website": "https://bit.ly/abc"})
    data = response.get_json()["data"]

    assert response.status_code == 200
    assert data["is_likely_spam"] is True
    assert "Known spam/redirect domain" in data["flags"]


def test_enrich_endpoint_skips_untrusted_website(client, monkeypatch):
    calls = []
    monkeypatch.setattr(
        run_search_server, "discover_emails", lambda *args, **kwargs: calls.append("emails")
    )
    monkeypatch.setattr(
        run_search_server, "extract_website_intelligence", lambda *args, **kwargs: calls.append("intel")
    )
    monkeypatch.setattr(
        run_search_server, "verify_social_profiles", lambda *args, **kwargs: SocialVerificationResult()
    )

    assert client.post("/enrich", json={"website": "acme.com"}).status_code == 400

    response = client.post("/enrich", json={"name": "Acme", "website": "https://bit.ly/abc"})
    data = response.get_json()["data"]

    assert response.status_code == 200
    assert calls == []
    assert data["verification"]["trust_score"] == 20
    assert data["emails"] is None
    assert data["social"]["summary"]["total_found"] == 0


def test_enrich_endpoint_runs_all_analyzers(client, monkeypatch):
    monkeypatch.setattr(
        run_search_server,
        "discover_emails",
        lambda name, website, session=None: EmailDiscoveryResult(emails=["info@acme.com"]),
    )
    monkeypatch.setattr(
        run_search_server,
        "extract_website_intelligence",
        lambda website, session=None: IntelligenceSnapshot(completeness=45),
    )
    monkeypatch.setattr(
        run_search_server, "verify_social_profiles", lambda name, website, session=None: SocialVerificationResult()
    )

    response = client.post("/enrich", json={"name": "Acme", "website": "https://acme.com"})
    data = response.get_json()["data"]

    assert response.status_code == 200
    assert data["primary_email"] == "info@acme.com"
    assert data["intelligence"]["completeness"] == 45
    assert data["verification"]["is_valid"] is True
