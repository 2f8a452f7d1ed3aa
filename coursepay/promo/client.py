"""
Client du service de validation des codes promo.

- Normalise le code (trim + majuscules) avant l'envoi.
- Code vide: échec local, le collaborateur n'est pas appelé.
- Toute erreur du collaborateur est normalisée en InvalidPromo.
L'application du résultat (et le rejet des réponses périmées) relève de
l'orchestrateur, qui compare le code d'origine au code courant.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union
import logging

from starlette.concurrency import run_in_threadpool

from . import repository

logger = logging.getLogger(__name__)

CODE_REQUIRED = "code required"
DEFAULT_INVALID_REASON = "Invalid promo code"
UNAVAILABLE_REASON = "Could not validate promo code, please try again"


@dataclass(frozen=True)
class ValidPromo:
    final_price: Decimal
    discount_percentage: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class InvalidPromo:
    reason: str = DEFAULT_INVALID_REASON


PromoValidationResult = Union[ValidPromo, InvalidPromo]


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()

def _decimal_or_none(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None

def parse_validation_payload(payload: Dict[str, Any]) -> PromoValidationResult:
    """
    Adapte la réponse brute du collaborateur.
    - valid=True ET final_price exploitable -> ValidPromo
    - sinon -> InvalidPromo(error du collaborateur ou message par défaut)
    """
    payload = payload or {}
    final_price = _decimal_or_none(payload.get("final_price"))
    if payload.get("valid") and final_price is not None:
        return ValidPromo(
            final_price=final_price,
            discount_percentage=_decimal_or_none(payload.get("discount_percentage")),
            discount_amount=_decimal_or_none(payload.get("discount_amount")),
        )
    return InvalidPromo(reason=payload.get("error") or DEFAULT_INVALID_REASON)

async def validate_promo_code(code: str, course_id: str, base_price: Decimal) -> PromoValidationResult:
    normalized = normalize_code(code)
    if not normalized:
        return InvalidPromo(reason=CODE_REQUIRED)
    try:
        payload = await run_in_threadpool(repository.call_validate_promo_code, normalized, course_id, base_price)
    except Exception:
        logger.exception("promo.validate failed code=%s course_id=%s", normalized, course_id)
        return InvalidPromo(reason=UNAVAILABLE_REASON)
    result = parse_validation_payload(payload)
    logger.info("promo.validate code=%s course_id=%s valid=%s", normalized, course_id, isinstance(result, ValidPromo))
    return result
