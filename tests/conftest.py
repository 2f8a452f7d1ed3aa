import os

# Pas de Redis en tests: le lifespan désactive FastAPILimiter
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from typing import Generator, Dict, Any
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from coursepay.app_setup.factory import create_app
from coursepay.enrollment.sessions import get_registry
from coursepay.utils.security import require_user

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return create_app()

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture
def fake_user() -> Dict[str, Any]:
    return {
        "id": "user-1",
        "email": "jane@example.com",
        "metadata": {"full_name": "Jane Mary Doe"},
        "token": "fake-token",
    }

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app, fake_user):
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

@pytest.fixture(autouse=True)
def _fresh_registry():
    get_registry().clear()
    yield
    get_registry().clear()

# Aucun accès réseau à Supabase pendant les tests
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("coursepay.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("coursepay.infra.supabase_client.get_service_supabase", lambda: MagicMock())
    monkeypatch.setattr("coursepay.identity.repository.get_profile", lambda user_id: None)
    monkeypatch.setattr("coursepay.pricing.repository.fetch_course_price", lambda course_id: 0)
    monkeypatch.setattr("coursepay.payments.repository.probe_enrollments_table", lambda: None)
    monkeypatch.setattr("coursepay.health.router.health_supabase_info", lambda: {"connect_ok": True})
