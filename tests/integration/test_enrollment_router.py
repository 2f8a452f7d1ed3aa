import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from coursepay.enrollment.views import get_payment_initiator
from coursepay.payments.initiator import PaymentInitiator
from coursepay.payments.providers.base import PaymentMethod, PaymentProvider, ProviderResponse
from coursepay.utils.security import require_user

BASE = "/api/v1/enrollment"
COURSE = {"course": {"id": "C1", "title": "Masterclass", "creator": "Jane"}}


class _StubFlutterwave(PaymentProvider):
    method = PaymentMethod.FLUTTERWAVE

    async def create_payment(self, request):
        return ProviderResponse(success=True, payment_url=f"https://checkout.flutterwave.test/pay/{request.enrollment_id}", reference=request.enrollment_id)


class _StubEversend(PaymentProvider):
    method = PaymentMethod.EVERSEND

    async def create_payment(self, request):
        return ProviderResponse(success=True)


@pytest.fixture
def created_rows():
    return []


@pytest.fixture(autouse=True)
def _stub_initiator(app, created_rows):
    def _create(**row):
        created_rows.append(row)
        return {"id": "E9", **row}

    initiator = PaymentInitiator(
        [_StubFlutterwave(), _StubEversend()],
        create_enrollment=_create,
        update_enrollment=lambda enrollment_id, fields: True,
    )
    app.dependency_overrides[get_payment_initiator] = lambda: initiator
    yield initiator
    app.dependency_overrides.pop(get_payment_initiator, None)


@pytest.fixture
def paid_course(monkeypatch):
    monkeypatch.setattr("coursepay.pricing.repository.fetch_course_price", lambda course_id: 50000)


def _open(client: TestClient) -> dict:
    res = client.post(f"{BASE}/sessions", json=COURSE)
    assert res.status_code == 201
    return res.json()


def test_open_session_prefills_form(client: TestClient):
    body = _open(client)

    assert body["state"] == "details"
    assert body["session_id"]
    assert body["form"]["first_name"] == "Jane"
    assert body["form"]["last_name"] == "Mary Doe"
    assert body["form"]["email"] == "jane@example.com"
    assert body["pricing"] == {"base_price": "0", "final_price": "0", "discount": None}
    assert body["error"] is None


def test_paid_flow_with_promo_and_redirect(client: TestClient, paid_course, monkeypatch, created_rows):
    monkeypatch.setattr(
        "coursepay.promo.repository.call_validate_promo_code",
        lambda code, course_id, base_price: {"valid": True, "final_price": 40000, "discount_percentage": 20},
    )
    sid = _open(client)["session_id"]

    client.put(f"{BASE}/sessions/{sid}/promo", json={"code": "save20"})
    applied = client.post(f"{BASE}/sessions/{sid}/promo/apply").json()
    assert applied["promo_code"] == "SAVE20"
    assert applied["pricing"]["final_price"] == "40000"
    assert applied["pricing"]["discount"]["percentage"] == "20"

    client.patch(f"{BASE}/sessions/{sid}/form", json={"phone_number": "+256700000000", "accept_terms": True})
    selection = client.post(f"{BASE}/sessions/{sid}/submit").json()
    assert selection["state"] == "payment_selection"

    client.put(f"{BASE}/sessions/{sid}/payment-method", json={"method": "flutterwave"})
    paid = client.post(f"{BASE}/sessions/{sid}/pay")
    assert paid.status_code == 200
    body = paid.json()
    assert body["state"] == "redirected"
    assert body["enrollment_id"] == "E9"
    assert body["redirect_url"] == "https://checkout.flutterwave.test/pay/E9"
    assert created_rows[0]["payment_status"] == "pending"
    assert created_rows[0]["payment_method"] == "flutterwave"

    # La session est terminée côté serveur, l'inscription en attente est dans le cookie de session
    assert client.get(f"{BASE}/sessions/{sid}").status_code == 404
    pending = client.get(f"{BASE}/pending").json()["pending"]
    assert pending == {"enrollment_id": "E9", "course_id": "C1", "user_id": "user-1", "payment_method": "flutterwave"}
    assert client.get(f"{BASE}/pending").json() == {"pending": None}


def test_paid_course_requires_phone(client: TestClient, paid_course):
    sid = _open(client)["session_id"]
    client.patch(f"{BASE}/sessions/{sid}/form", json={"accept_terms": True})

    body = client.post(f"{BASE}/sessions/{sid}/submit").json()

    assert body["state"] == "details"
    assert body["error"]["field"] == "phone_number"
    assert body["error"]["message"] == "Phone number is required for paid courses"


def test_free_course_completes_on_submit(client: TestClient, created_rows):
    sid = _open(client)["session_id"]
    client.patch(f"{BASE}/sessions/{sid}/form", json={"accept_terms": True})

    body = client.post(f"{BASE}/sessions/{sid}/submit").json()

    assert body["state"] == "success"
    assert body["enrollment_id"] == "E9"
    assert created_rows[0]["payment_status"] == "completed"


def test_setup_required_when_storage_missing(client: TestClient, paid_course, monkeypatch, created_rows):
    def _missing_table():
        raise APIError({"code": "PGRST205", "message": "Could not find the table 'public.student_enrollments'"})

    monkeypatch.setattr("coursepay.payments.repository.probe_enrollments_table", _missing_table)
    sid = _open(client)["session_id"]
    client.patch(f"{BASE}/sessions/{sid}/form", json={"phone_number": "0700", "accept_terms": True})
    client.post(f"{BASE}/sessions/{sid}/submit")

    body = client.post(f"{BASE}/sessions/{sid}/pay").json()

    assert body["state"] == "failed"
    assert body["error"]["kind"] == "setup_required"
    assert body["error"]["retryable"] is False
    assert created_rows == []

    retried = client.post(f"{BASE}/sessions/{sid}/retry").json()
    assert retried["state"] == "details"
    assert retried["form"]["phone_number"] == "0700"


def test_invalid_transition_is_conflict(client: TestClient):
    sid = _open(client)["session_id"]

    res = client.post(f"{BASE}/sessions/{sid}/pay")

    assert res.status_code == 409
    assert res.json()["state"] == "details"


def test_unsupported_payment_method_is_rejected(client: TestClient):
    sid = _open(client)["session_id"]

    assert client.put(f"{BASE}/sessions/{sid}/payment-method", json={"method": "paypal"}).status_code == 422
    assert client.put(f"{BASE}/sessions/{sid}/payment-method", json={"method": "stripe"}).status_code == 422


def test_close_discards_session(client: TestClient):
    sid = _open(client)["session_id"]

    closed = client.delete(f"{BASE}/sessions/{sid}")

    assert closed.json()["state"] == "closed"
    assert client.get(f"{BASE}/sessions/{sid}").status_code == 404


def test_session_of_another_user_is_forbidden(app, client: TestClient):
    sid = _open(client)["session_id"]
    app.dependency_overrides[require_user] = lambda: {"id": "someone-else", "email": "x@example.com"}

    assert client.get(f"{BASE}/sessions/{sid}").status_code == 403
    assert client.get(f"{BASE}/sessions/unknown").status_code == 404


def test_unauthenticated_is_rejected(app, client: TestClient):
    def _no_user():
        raise HTTPException(status_code=401, detail="Not authenticated")

    app.dependency_overrides[require_user] = _no_user

    assert client.post(f"{BASE}/sessions", json=COURSE).status_code == 401


def test_health_endpoints(client: TestClient):
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/health/supabase").json() == {"connect_ok": True}
    info = client.get("/health/rate-limit").json()
    assert info["enabled"] is False
