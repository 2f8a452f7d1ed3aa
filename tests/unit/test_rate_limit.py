import pytest
from fastapi import FastAPI, Depends, Request
from fastapi.testclient import TestClient

from coursepay.utils.rate_limit import optional_rate_limit, rate_limit_health_info, rate_limit_key


def _make_app(times=2, seconds=60):
    app = FastAPI()

    @app.post("/sessions/{session_id}/pay", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def pay(session_id: str):
        return {"ok": True}

    @app.post("/sessions/{session_id}/promo/apply", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def apply_promo(session_id: str):
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    @app.get("/key/{session_id}")
    def key(session_id: str, request: Request):
        return {"key": rate_limit_key(request)}

    return app


def test_fallback_blocks_after_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2))

    assert client.post("/sessions/s1/pay").status_code == 200
    assert client.post("/sessions/s1/pay").status_code == 200
    assert client.post("/sessions/s1/pay").status_code == 429


def test_limit_is_shared_across_sessions_of_same_user(monkeypatch):
    # Clé = route templatée: ouvrir une nouvelle session ne remet pas le compteur à zéro
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2))
    client.cookies.set("sb_access", "some-session")

    assert client.post("/sessions/s1/pay").status_code == 200
    assert client.post("/sessions/s2/pay").status_code == 200
    assert client.post("/sessions/s3/pay").status_code == 429

    # route promo: compteur indépendant
    assert client.post("/sessions/s1/promo/apply").status_code == 200


def test_key_prefers_bearer_token_over_ip():
    client = TestClient(_make_app())

    by_ip = client.get("/key/s1").json()["key"]
    by_token = client.get("/key/s1", headers={"Authorization": "Bearer abc"}).json()["key"]

    assert by_ip.startswith("ip:")
    assert by_ip.endswith(":/key/{session_id}")
    assert by_token.startswith("user:")
    assert "abc" not in by_token


def test_disabled_flag_bypasses_limit(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1)
    app.state.rate_limit_enabled = False
    client = TestClient(app)

    for _ in range(3):
        assert client.post("/sessions/s1/pay").status_code == 200


def test_health_info_reports_memory_fallback(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    app = _make_app()
    app.state.rate_limit_enabled = True
    monkeypatch.setattr("fastapi_limiter.FastAPILimiter.redis", None, raising=False)

    info = TestClient(app).get("/rl_info").json()

    assert info == {"enabled": True, "ready": False, "backend": "memory"}
