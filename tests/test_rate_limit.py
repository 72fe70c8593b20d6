"""Tests for the rate limiting middleware on a minimal app."""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from churchledger.middleware.rate_limit import InMemoryRateLimitStore, RateLimitMiddleware

COOKIE = "churchledger_session"


@pytest.fixture
def limited_client() -> TestClient:
    app = FastAPI()
    app.add_middleware(
        RateLimitMiddleware,
        session_cookie_name=COOKIE,
        requests_per_minute_ip=20,
        requests_per_minute_user=5,
        sync_requests_per_minute=2,
        exempt_paths=["/health"],
        store=InMemoryRateLimitStore(window_seconds=3600),
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api/integrations/xero")
    def status():
        return {"connected": False}

    @app.post("/api/integrations/xero")
    def action():
        return {"success": True}

    return TestClient(app)


def _session(token: str) -> dict[str, str]:
    return {"Cookie": f"{COOKIE}={token}"}


def test_ip_budget(limited_client):
    codes = [limited_client.get("/api/integrations/xero").status_code for _ in range(21)]
    assert codes[:20] == [200] * 20
    assert codes[20] == 429


def test_session_budget(limited_client):
    codes = [limited_client.get("/api/integrations/xero", headers=_session("a")).status_code for _ in range(6)]
    assert codes == [200] * 5 + [429]


def test_integration_mutation_budget_is_tighter(limited_client):
    codes = [limited_client.post("/api/integrations/xero", headers=_session("b")).status_code for _ in range(3)]
    assert codes == [200, 200, 429]
    # reads for the same session still have budget left
    assert limited_client.get("/api/integrations/xero", headers=_session("b")).status_code == 200


def test_retry_after_header(limited_client):
    for _ in range(2):
        limited_client.post("/api/integrations/xero", headers=_session("c"))
    r = limited_client.post("/api/integrations/xero", headers=_session("c"))
    assert r.status_code == 429
    assert r.headers["Retry-After"] == "3600"
    assert r.json()["retry_after_seconds"] == 3600


def test_health_is_exempt(limited_client):
    codes = {limited_client.get("/health").status_code for _ in range(30)}
    assert codes == {200}
