"""
Module 'payments' (feature-first): point d'entrée public.
Réunit l'initiation du paiement, les adaptateurs prestataires, la sonde de stockage et le repository.
"""

from .providers.base import Contact, PaymentMethod, PaymentProvider, PaymentRequest, ProviderResponse
from .initiator import Completed, RedirectRequired, PaymentOutcome, PaymentInitiator, build_callback_url, default_initiator
from .probe import check_enrollment_storage, NOT_PROVISIONED_CODES

__all__ = [
    # contrat prestataires
    "Contact",
    "PaymentMethod",
    "PaymentProvider",
    "PaymentRequest",
    "ProviderResponse",
    # initiation
    "Completed",
    "RedirectRequired",
    "PaymentOutcome",
    "PaymentInitiator",
    "build_callback_url",
    "default_initiator",
    # sonde
    "check_enrollment_storage",
    "NOT_PROVISIONED_CODES",
]
