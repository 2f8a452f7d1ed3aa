"""
Adaptateur Flutterwave (Standard payments v3): POST /payments -> data.link.
"""
from typing import Any, Dict, Optional
import logging

import httpx

from coursepay.config import FLUTTERWAVE_API_URL, FLUTTERWAVE_SECRET_KEY, PROVIDER_HTTP_TIMEOUT
from .base import PaymentMethod, PaymentProvider, PaymentRequest, ProviderResponse, error_message_from_body

logger = logging.getLogger(__name__)


class FlutterwaveProvider(PaymentProvider):
    method = PaymentMethod.FLUTTERWAVE

    def __init__(
        self,
        api_url: str = FLUTTERWAVE_API_URL,
        secret_key: str = FLUTTERWAVE_SECRET_KEY,
        timeout: float = PROVIDER_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.secret_key = secret_key
        self.timeout = timeout
        self.transport = transport

    def build_payload(self, request: PaymentRequest) -> Dict[str, Any]:
        """
        Corps Flutterwave:
        - tx_ref = identifiant d'inscription (rapprochement au retour)
        - customer.phonenumber requis pour le mobile money
        """
        return {
            "tx_ref": request.enrollment_id,
            "amount": request.wire_amount,
            "currency": request.currency,
            "redirect_url": request.callback_url,
            "customer": {
                "email": request.contact.email,
                "phonenumber": request.contact.phone,
                "name": request.contact.name,
            },
            "meta": {"user_id": request.user_id, "course_id": request.course_id},
            "customizations": {"title": "Course enrollment"},
        }

    async def create_payment(self, request: PaymentRequest) -> ProviderResponse:
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        try:
            async with httpx.AsyncClient(base_url=self.api_url, headers=headers, timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post("/payments", json=self.build_payload(request))
        except httpx.HTTPError as e:
            logger.warning("payments.flutterwave request failed tx_ref=%s: %s", request.enrollment_id, e)
            return ProviderResponse(success=False, error="Flutterwave is unreachable, please try again")

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            logger.warning("payments.flutterwave unexpected body tx_ref=%s status=%s", request.enrollment_id, resp.status_code)
            return ProviderResponse(success=False, error=f"Unexpected response from Flutterwave (HTTP {resp.status_code})")
        if resp.status_code >= 400 or body.get("status") != "success":
            error = error_message_from_body(body, f"Flutterwave error (HTTP {resp.status_code})")
            logger.warning("payments.flutterwave rejected tx_ref=%s status=%s error=%s", request.enrollment_id, resp.status_code, error)
            return ProviderResponse(success=False, error=error, raw=body)

        data = body.get("data")
        if not isinstance(data, dict):
            data = {}
        return ProviderResponse(success=True, payment_url=data.get("link"), reference=request.enrollment_id, raw=body)
