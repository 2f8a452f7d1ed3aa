"""
Contrat commun des prestataires de paiement.

Chaque adaptateur traduit sa propre requête/réponse vers ProviderResponse;
aucune forme spécifique à un prestataire ne remonte à l'orchestrateur.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


class PaymentMethod(str, Enum):
    EVERSEND = "eversend"
    FLUTTERWAVE = "flutterwave"
    STRIPE = "stripe"


@dataclass(frozen=True)
class Contact:
    email: str
    name: str = ""
    phone: str = ""


@dataclass(frozen=True)
class PaymentRequest:
    enrollment_id: str
    user_id: str
    course_id: str
    amount: Decimal
    currency: str
    contact: Contact
    callback_url: str
    cancel_url: str = ""

    @property
    def wire_amount(self) -> Any:
        # UGX est une devise sans décimales: on envoie un entier quand c'est possible
        if self.amount == self.amount.to_integral_value():
            return int(self.amount)
        return float(self.amount)


@dataclass(frozen=True)
class ProviderResponse:
    success: bool
    payment_url: Optional[str] = None
    reference: Optional[str] = None
    error: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


class PaymentProvider(ABC):
    method: PaymentMethod

    @abstractmethod
    async def create_payment(self, request: PaymentRequest) -> ProviderResponse: ...


def error_message_from_body(body: Any, fallback: str) -> str:
    """Extrait un message d'erreur lisible d'un corps JSON de prestataire."""
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return fallback
