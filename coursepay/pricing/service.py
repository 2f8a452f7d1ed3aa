"""
Résolution du prix: prix de base (catalogue) + remise promo éventuelle.

Politique fail-open: si le prix ne peut pas être lu, le cours est traité
comme gratuit (prix 0). Ce comportement est volontaire mais risqué: un
incident sur le catalogue permet une inscription gratuite à un cours payant.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional
import logging

from starlette.concurrency import run_in_threadpool

from coursepay.promo.client import PromoValidationResult, ValidPromo
from . import repository

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class Discount:
    percentage: Optional[Decimal] = None
    amount: Optional[Decimal] = None


@dataclass(frozen=True)
class PricingContext:
    base_price: Decimal
    final_price: Decimal
    discount: Optional[Discount] = None

    @property
    def is_free(self) -> bool:
        return self.base_price == 0


def to_amount(value: Any) -> Decimal:
    """Convertit une valeur brute en montant >= 0 (0 si absente ou illisible)."""
    if value is None or value == "":
        return ZERO
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    if not amount.is_finite() or amount < 0:
        return ZERO
    return amount

def undiscounted(base_price: Decimal) -> PricingContext:
    return PricingContext(base_price=base_price, final_price=base_price)

def apply_discount(base_price: Decimal, validation: Optional[PromoValidationResult]) -> PricingContext:
    """
    Fonction pure: plie un résultat de validation promo dans le prix.
    - ValidPromo: final_price du validateur borné à [0, base_price]
    - autre: contexte sans remise (final_price == base_price)
    """
    if not isinstance(validation, ValidPromo):
        return undiscounted(base_price)
    final_price = min(max(validation.final_price, ZERO), base_price)
    discount = Discount(percentage=validation.discount_percentage, amount=validation.discount_amount)
    return PricingContext(base_price=base_price, final_price=final_price, discount=discount)

async def resolve_base_price(course_id: str, fetch: Optional[Callable[[str], Any]] = None) -> Decimal:
    fetch = fetch or repository.fetch_course_price
    try:
        raw = await run_in_threadpool(fetch, course_id)
    except Exception as e:
        logger.warning("pricing.resolve_base_price failed course_id=%s, defaulting to free: %s", course_id, e)
        return ZERO
    return to_amount(raw)
