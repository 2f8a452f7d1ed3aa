import pytest
from decimal import Decimal

from coursepay.pricing.service import (
    ZERO,
    apply_discount,
    resolve_base_price,
    to_amount,
    undiscounted,
)
from coursepay.promo.client import InvalidPromo, ValidPromo


def test_to_amount_normalizes_raw_values():
    assert to_amount("50000") == Decimal("50000")
    assert to_amount(12.5) == Decimal("12.5")
    assert to_amount(None) == ZERO
    assert to_amount("") == ZERO
    assert to_amount("abc") == ZERO
    assert to_amount(-10) == ZERO
    assert to_amount("NaN") == ZERO


def test_undiscounted_keeps_base_price():
    ctx = undiscounted(Decimal("50000"))
    assert ctx.final_price == ctx.base_price == Decimal("50000")
    assert ctx.discount is None
    assert not ctx.is_free
    assert undiscounted(ZERO).is_free


def test_apply_discount_uses_validator_final_price():
    ctx = apply_discount(Decimal("50000"), ValidPromo(final_price=Decimal("40000"), discount_percentage=Decimal("20")))
    assert ctx.final_price == Decimal("40000")
    assert ctx.discount.percentage == Decimal("20")
    assert ctx.discount.amount is None


@pytest.mark.parametrize("validator_price", ["-5", "0", "1", "49999", "50000", "50001", "1000000"])
def test_final_price_always_within_zero_and_base(validator_price):
    base = Decimal("50000")
    ctx = apply_discount(base, ValidPromo(final_price=Decimal(validator_price)))
    assert ZERO <= ctx.final_price <= ctx.base_price


def test_apply_discount_invalid_result_is_undiscounted():
    ctx = apply_discount(Decimal("50000"), InvalidPromo("Invalid promo code"))
    assert ctx == undiscounted(Decimal("50000"))
    assert apply_discount(Decimal("100"), None).final_price == Decimal("100")


@pytest.mark.asyncio
async def test_resolve_base_price_reads_catalog():
    seen = []

    def _fetch(course_id):
        seen.append(course_id)
        return "50000"

    assert await resolve_base_price("C1", fetch=_fetch) == Decimal("50000")
    assert seen == ["C1"]


@pytest.mark.asyncio
async def test_resolve_base_price_fails_open_to_free():
    def _boom(course_id):
        raise RuntimeError("catalog down")

    assert await resolve_base_price("C1", fetch=_boom) == ZERO


@pytest.mark.asyncio
async def test_resolve_base_price_uses_repository_by_default(monkeypatch):
    monkeypatch.setattr("coursepay.pricing.repository.fetch_course_price", lambda course_id: 75000)
    assert await resolve_base_price("C2") == Decimal("75000")
