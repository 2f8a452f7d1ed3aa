"""
Adaptateur Stripe Checkout: une session hébergée par inscription.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List
import logging

import stripe
from starlette.concurrency import run_in_threadpool

from coursepay.config import STRIPE_SECRET_KEY
from .base import PaymentMethod, PaymentProvider, PaymentRequest, ProviderResponse

logger = logging.getLogger(__name__)

# Devises sans unité mineure / à trois décimales chez Stripe (doc "Supported currencies")
ZERO_DECIMAL_CURRENCIES = {
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
}
THREE_DECIMAL_CURRENCIES = {"BHD", "JOD", "KWD", "OMR", "TND"}

# module coursepay.payments.providers.stripe_checkout
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    return stripe

def to_minor_units(amount: Decimal, currency: str) -> int:
    """Montant en unités mineures Stripe, arrondi au plus proche (ex: 49.99 USD -> 4999)."""
    code = (currency or "").upper()
    if code in ZERO_DECIMAL_CURRENCIES:
        exponent = 0
    elif code in THREE_DECIMAL_CURRENCIES:
        exponent = 3
    else:
        exponent = 2
    return int((Decimal(amount) * (10 ** exponent)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def to_line_items(request: PaymentRequest, title: str = "Course enrollment") -> List[Dict[str, Any]]:
    """
    Une seule ligne: l'inscription au cours au prix final (remise incluse).
    - unit_amount en unités mineures de la devise (UGX: montant entier, USD: centimes)
    """
    return [{
        "quantity": 1,
        "price_data": {
            "currency": request.currency.lower(),
            "unit_amount": to_minor_units(request.amount, request.currency),
            "product_data": {"name": title},
        },
    }]

def create_session(request: PaymentRequest) -> Dict[str, Any]:
    require_stripe()
    session = stripe.checkout.Session.create(
        line_items=to_line_items(request),
        mode="payment",
        success_url=request.callback_url,
        cancel_url=request.cancel_url or request.callback_url,
        customer_email=request.contact.email or None,
        client_reference_id=request.enrollment_id,
        metadata={
            "enrollment_id": request.enrollment_id,
            "user_id": request.user_id,
            "course_id": request.course_id,
        },
        payment_method_types=["card"],
    )
    # stripe retourne un objet; on le traite comme dict-compatible
    return dict(session)


class StripeCheckoutProvider(PaymentProvider):
    method = PaymentMethod.STRIPE

    async def create_payment(self, request: PaymentRequest) -> ProviderResponse:
        try:
            session = await run_in_threadpool(create_session, request)
        except stripe.StripeError as e:
            logger.warning("payments.stripe create_session failed enrollment_id=%s: %s", request.enrollment_id, e)
            return ProviderResponse(success=False, error=getattr(e, "user_message", None) or str(e))
        return ProviderResponse(success=True, payment_url=session.get("url"), reference=session.get("id"), raw=session)
