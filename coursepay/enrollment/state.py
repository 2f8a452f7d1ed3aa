"""
États du workflow d'inscription (union taguée, valeurs immuables).

Chaque état ne porte que les données qui le concernent; une transition
remplace l'état entier (dataclasses.replace ou nouvel état).
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from coursepay.payments.providers.base import PaymentMethod
from coursepay.pricing.service import PricingContext
from .errors import EnrollmentError, PromoInvalid, ValidationError
from .form import EnrollmentForm


@dataclass(frozen=True)
class Draft:
    """Saisie en cours: formulaire, prix courant, code promo et prestataire choisi."""
    form: EnrollmentForm
    pricing: PricingContext
    promo_code: str = ""
    payment_method: PaymentMethod = PaymentMethod.EVERSEND


@dataclass(frozen=True)
class Details:
    draft: Draft
    error: Optional[ValidationError] = None
    promo_error: Optional[PromoInvalid] = None
    name = "details"


@dataclass(frozen=True)
class PaymentSelection:
    draft: Draft
    name = "payment_selection"


@dataclass(frozen=True)
class Processing:
    draft: Draft
    name = "processing"


@dataclass(frozen=True)
class Success:
    enrollment_id: str
    name = "success"


@dataclass(frozen=True)
class Failed:
    draft: Draft
    error: EnrollmentError
    name = "failed"


@dataclass(frozen=True)
class Redirected:
    """Terminal spécial: le contrôle part chez le prestataire."""
    enrollment_id: str
    redirect_url: str
    name = "redirected"


@dataclass(frozen=True)
class Closed:
    name = "closed"


WorkflowState = Union[Details, PaymentSelection, Processing, Success, Failed, Redirected, Closed]

TERMINAL_STATES = (Redirected, Closed)


def _amount(value) -> str:
    return format(value, "f")

def _draft_to_dict(draft: Draft) -> Dict[str, Any]:
    pricing = draft.pricing
    discount = None
    if pricing.discount is not None:
        discount = {
            "percentage": _amount(pricing.discount.percentage) if pricing.discount.percentage is not None else None,
            "amount": _amount(pricing.discount.amount) if pricing.discount.amount is not None else None,
        }
    return {
        "form": {
            "first_name": draft.form.first_name,
            "last_name": draft.form.last_name,
            "email": draft.form.email,
            "phone_number": draft.form.phone_number,
            "accept_terms": draft.form.accept_terms,
        },
        "pricing": {
            "base_price": _amount(pricing.base_price),
            "final_price": _amount(pricing.final_price),
            "discount": discount,
        },
        "promo_code": draft.promo_code,
        "payment_method": draft.payment_method.value,
    }

def state_to_dict(state: WorkflowState) -> Dict[str, Any]:
    """Représentation JSON d'un état (API HTTP, logs)."""
    data: Dict[str, Any] = {"state": state.name}
    if isinstance(state, (Details, PaymentSelection, Processing, Failed)):
        data.update(_draft_to_dict(state.draft))
    if isinstance(state, Details):
        data["error"] = state.error.to_dict() if state.error else None
        data["promo_error"] = state.promo_error.to_dict() if state.promo_error else None
    elif isinstance(state, Failed):
        data["error"] = state.error.to_dict()
    elif isinstance(state, Success):
        data["enrollment_id"] = state.enrollment_id
    elif isinstance(state, Redirected):
        data["enrollment_id"] = state.enrollment_id
        data["redirect_url"] = state.redirect_url
    return data
