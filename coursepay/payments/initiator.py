"""
Initiation du paiement d'une inscription.

Étapes:
  1) Créer la ligne d'inscription (pending, ou completed si montant nul)
  2) Montant nul -> Completed sans appel prestataire
  3) Sinon déléguer au prestataire choisi et normaliser sa réponse:
     URL de paiement -> RedirectRequired, pas d'URL -> Completed, échec -> ProviderError
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Optional, Union
from urllib.parse import urlencode
import logging

from starlette.concurrency import run_in_threadpool

from coursepay.config import BASE_URL, PAYMENT_CALLBACK_PATH, PAYMENT_CURRENCY
from coursepay.enrollment.errors import ProviderError
from . import repository
from .providers.base import Contact, PaymentMethod, PaymentProvider, PaymentRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Completed:
    enrollment_id: str


@dataclass(frozen=True)
class RedirectRequired:
    enrollment_id: str
    redirect_url: str


PaymentOutcome = Union[Completed, RedirectRequired]


def build_callback_url(enrollment_id: str, payment_method: PaymentMethod, status: str = "return") -> str:
    query = urlencode({"enrollment_id": enrollment_id, "provider": payment_method.value, "status": status})
    return f"{BASE_URL.rstrip('/')}{PAYMENT_CALLBACK_PATH}?{query}"


class PaymentInitiator:
    def __init__(
        self,
        providers: Iterable[PaymentProvider],
        create_enrollment: Optional[Callable[..., Optional[Dict[str, Any]]]] = None,
        update_enrollment: Optional[Callable[[str, Dict[str, Any]], bool]] = None,
        currency: str = PAYMENT_CURRENCY,
    ):
        self.providers: Dict[PaymentMethod, PaymentProvider] = {p.method: p for p in providers}
        self._create_enrollment = create_enrollment or repository.create_enrollment
        self._update_enrollment = update_enrollment or repository.update_enrollment
        self.currency = currency

    def supports(self, method: PaymentMethod) -> bool:
        return method in self.providers

    async def initiate(
        self,
        user_id: str,
        course_id: str,
        final_amount: Decimal,
        contact: Contact,
        payment_method: PaymentMethod,
    ) -> PaymentOutcome:
        free = final_amount <= 0
        provider = self.providers.get(payment_method)
        if not free and provider is None:
            raise ProviderError(f"Payment method '{payment_method.value}' is not available")

        row = await run_in_threadpool(
            self._create_enrollment,
            user_id=user_id,
            course_id=course_id,
            amount_paid=final_amount,
            payment_method=payment_method.value,
            payment_status="completed" if free else "pending",
        )
        if not row or not row.get("id"):
            raise ProviderError("Could not create the enrollment, please try again")
        enrollment_id = str(row["id"])

        if free:
            logger.info("payments.initiate free enrollment_id=%s course_id=%s", enrollment_id, course_id)
            return Completed(enrollment_id=enrollment_id)

        request = PaymentRequest(
            enrollment_id=enrollment_id,
            user_id=user_id,
            course_id=course_id,
            amount=final_amount,
            currency=self.currency,
            contact=contact,
            callback_url=build_callback_url(enrollment_id, payment_method),
            cancel_url=build_callback_url(enrollment_id, payment_method, status="cancelled"),
        )
        response = await provider.create_payment(request)

        if not response.success:
            await run_in_threadpool(self._update_enrollment, enrollment_id, {"payment_status": "failed"})
            raise ProviderError(response.error)

        if response.reference:
            await run_in_threadpool(self._update_enrollment, enrollment_id, {"payment_reference": response.reference})

        if not response.payment_url:
            logger.info("payments.initiate completed without redirect enrollment_id=%s provider=%s", enrollment_id, payment_method.value)
            return Completed(enrollment_id=enrollment_id)

        logger.info("payments.initiate redirect enrollment_id=%s provider=%s", enrollment_id, payment_method.value)
        return RedirectRequired(enrollment_id=enrollment_id, redirect_url=response.payment_url)


def default_initiator() -> PaymentInitiator:
    from .providers.eversend import EversendProvider
    from .providers.flutterwave import FlutterwaveProvider
    from .providers.stripe_checkout import StripeCheckoutProvider
    return PaymentInitiator(providers=[EversendProvider(), FlutterwaveProvider(), StripeCheckoutProvider()])
