"""
Adaptateur Eversend: création d'un lien de paiement hébergé (mobile money, carte, virement).
"""
from typing import Any, Dict, Optional
import logging

import httpx

from coursepay.config import EVERSEND_API_URL, EVERSEND_API_KEY, PROVIDER_HTTP_TIMEOUT
from .base import PaymentMethod, PaymentProvider, PaymentRequest, ProviderResponse, error_message_from_body

logger = logging.getLogger(__name__)


class EversendProvider(PaymentProvider):
    method = PaymentMethod.EVERSEND

    def __init__(
        self,
        api_url: str = EVERSEND_API_URL,
        api_key: str = EVERSEND_API_KEY,
        timeout: float = PROVIDER_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def build_payload(self, request: PaymentRequest) -> Dict[str, Any]:
        return {
            "amount": request.wire_amount,
            "currency": request.currency,
            "reference": request.enrollment_id,
            "redirectUrl": request.callback_url,
            "customer": {
                "email": request.contact.email,
                "name": request.contact.name,
                "phone": request.contact.phone,
            },
            "metadata": {"user_id": request.user_id, "course_id": request.course_id},
        }

    async def create_payment(self, request: PaymentRequest) -> ProviderResponse:
        headers = {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}
        try:
            async with httpx.AsyncClient(base_url=self.api_url, headers=headers, timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post("/collections/checkout", json=self.build_payload(request))
        except httpx.HTTPError as e:
            logger.warning("payments.eversend request failed enrollment_id=%s: %s", request.enrollment_id, e)
            return ProviderResponse(success=False, error="Eversend is unreachable, please try again")

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            logger.warning("payments.eversend unexpected body enrollment_id=%s status=%s", request.enrollment_id, resp.status_code)
            return ProviderResponse(success=False, error=f"Unexpected response from Eversend (HTTP {resp.status_code})")
        if resp.status_code >= 400:
            error = error_message_from_body(body, f"Eversend error (HTTP {resp.status_code})")
            logger.warning("payments.eversend rejected enrollment_id=%s status=%s error=%s", request.enrollment_id, resp.status_code, error)
            return ProviderResponse(success=False, error=error, raw=body)

        data = body.get("data")
        if not isinstance(data, dict):
            data = {}
        return ProviderResponse(
            success=True,
            payment_url=data.get("url") or data.get("checkoutUrl"),
            reference=data.get("reference") or request.enrollment_id,
            raw=body,
        )
