import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from coursepay.enrollment.errors import ProviderError
from coursepay.payments.initiator import Completed, PaymentInitiator, RedirectRequired, build_callback_url
from coursepay.payments.providers.base import Contact, PaymentMethod, ProviderResponse

CONTACT = Contact(email="jane@example.com", name="Jane Doe", phone="+256700000000")


def _provider(method=PaymentMethod.EVERSEND, response=None):
    provider = MagicMock()
    provider.method = method
    provider.create_payment = AsyncMock(return_value=response or ProviderResponse(success=True, payment_url="https://pay.example/abc", reference="ref-1"))
    return provider


def _initiator(provider, row=None):
    create = MagicMock(return_value=row if row is not None else {"id": "E9"})
    update = MagicMock(return_value=True)
    return PaymentInitiator([provider], create_enrollment=create, update_enrollment=update, currency="UGX"), create, update


def test_build_callback_url(monkeypatch):
    url = build_callback_url("E9", PaymentMethod.FLUTTERWAVE)
    assert "/enrollment/callback?" in url
    assert "enrollment_id=E9" in url
    assert "provider=flutterwave" in url
    assert "status=return" in url


@pytest.mark.asyncio
async def test_free_amount_completes_without_provider_call():
    provider = _provider()
    initiator, create, _ = _initiator(provider)

    outcome = await initiator.initiate("u1", "C1", Decimal("0"), CONTACT, PaymentMethod.EVERSEND)

    assert outcome == Completed(enrollment_id="E9")
    assert create.call_args.kwargs["payment_status"] == "completed"
    provider.create_payment.assert_not_awaited()


@pytest.mark.asyncio
async def test_paid_amount_redirects_to_provider_url():
    provider = _provider()
    initiator, create, update = _initiator(provider)

    outcome = await initiator.initiate("u1", "C1", Decimal("40000"), CONTACT, PaymentMethod.EVERSEND)

    assert outcome == RedirectRequired(enrollment_id="E9", redirect_url="https://pay.example/abc")
    assert create.call_args.kwargs == {
        "user_id": "u1",
        "course_id": "C1",
        "amount_paid": Decimal("40000"),
        "payment_method": "eversend",
        "payment_status": "pending",
    }
    request = provider.create_payment.await_args.args[0]
    assert request.enrollment_id == "E9"
    assert request.amount == Decimal("40000")
    assert request.currency == "UGX"
    assert request.wire_amount == 40000
    update.assert_called_once_with("E9", {"payment_reference": "ref-1"})


@pytest.mark.asyncio
async def test_provider_without_url_completes():
    provider = _provider(response=ProviderResponse(success=True))
    initiator, _, update = _initiator(provider)

    outcome = await initiator.initiate("u1", "C1", Decimal("100"), CONTACT, PaymentMethod.EVERSEND)

    assert outcome == Completed(enrollment_id="E9")
    update.assert_not_called()


@pytest.mark.asyncio
async def test_provider_failure_marks_enrollment_failed():
    provider = _provider(response=ProviderResponse(success=False, error="Insufficient funds"))
    initiator, _, update = _initiator(provider)

    with pytest.raises(ProviderError) as exc:
        await initiator.initiate("u1", "C1", Decimal("100"), CONTACT, PaymentMethod.EVERSEND)

    assert exc.value.message == "Insufficient funds"
    update.assert_called_once_with("E9", {"payment_status": "failed"})


@pytest.mark.asyncio
async def test_missing_row_is_a_provider_error():
    provider = _provider()
    initiator, _, _ = _initiator(provider, row={})

    with pytest.raises(ProviderError):
        await initiator.initiate("u1", "C1", Decimal("100"), CONTACT, PaymentMethod.EVERSEND)
    provider.create_payment.assert_not_awaited()


@pytest.mark.asyncio
async def test_unregistered_method_fails_before_writing():
    provider = _provider(PaymentMethod.EVERSEND)
    initiator, create, _ = _initiator(provider)

    assert not initiator.supports(PaymentMethod.STRIPE)
    with pytest.raises(ProviderError):
        await initiator.initiate("u1", "C1", Decimal("100"), CONTACT, PaymentMethod.STRIPE)
    create.assert_not_called()


def test_repository_create_enrollment_returns_inserted_row(monkeypatch):
    import coursepay.payments.repository as repo

    client = MagicMock()
    client.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[{"id": "E9"}])
    monkeypatch.setattr("coursepay.infra.supabase_client.get_service_supabase", lambda: client)

    row = repo.create_enrollment(user_id="u1", course_id="C1", amount_paid=Decimal("40000"), payment_method="eversend", payment_status="pending")

    assert row == {"id": "E9"}
    client.table.assert_called_once_with("student_enrollments")
    inserted = client.table.return_value.insert.call_args.args[0]
    assert inserted["amount_paid"] == 40000.0
    assert inserted["payment_status"] == "pending"


def test_repository_create_enrollment_logs_and_returns_none(monkeypatch):
    import coursepay.payments.repository as repo

    def _no_service_key():
        raise RuntimeError("SUPABASE_SERVICE_KEY missing")

    monkeypatch.setattr("coursepay.infra.supabase_client.get_service_supabase", _no_service_key)
    assert repo.create_enrollment(user_id="u1", course_id="C1", amount_paid=Decimal("1"), payment_method="stripe", payment_status="pending") is None
