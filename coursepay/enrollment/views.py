import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from coursepay.identity.service import identity_from_user
from coursepay.payments.initiator import PaymentInitiator, default_initiator
from coursepay.payments.providers.base import PaymentMethod
from coursepay.resumption.store import SessionResumptionStore
from coursepay.utils.rate_limit import optional_rate_limit
from coursepay.utils.security import require_user
from .course import Course
from .orchestrator import EnrollmentOrchestrator
from .sessions import SessionEntry, SessionRegistry, get_registry
from .state import state_to_dict

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/enrollment", tags=["Enrollment API"])

_initiator: Optional[PaymentInitiator] = None

def get_payment_initiator() -> PaymentInitiator:
    global _initiator
    if _initiator is None:
        _initiator = default_initiator()
    return _initiator


class CourseIn(BaseModel):
    id: str = Field(min_length=1)
    title: str = ""
    thumbnail_url: str = ""
    is_premium: bool = False
    creator: str = ""

class OpenSessionRequest(BaseModel):
    course: CourseIn

class FormUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    accept_terms: Optional[bool] = None

class PromoCodeBody(BaseModel):
    code: str = ""

class PaymentMethodBody(BaseModel):
    method: PaymentMethod


def _payload(entry: SessionEntry) -> Dict[str, Any]:
    return {"session_id": entry.session_id, **state_to_dict(entry.orchestrator.state)}

def _owned_session(session_id: str, user: Dict[str, Any], registry: SessionRegistry) -> SessionEntry:
    """
    Récupère la session et vérifie qu'elle appartient à l'utilisateur courant.
    - 404 si inconnue (ou déjà fermée), 403 si elle appartient à un autre utilisateur
    """
    entry = registry.get(session_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Enrollment session not found")
    if entry.user_id != str(user.get("id")):
        raise HTTPException(status_code=403, detail="Enrollment session belongs to another user")
    return entry

# module coursepay.enrollment.views
@router.post("/sessions", status_code=201)
async def open_session(
    body: OpenSessionRequest,
    request: Request,
    user: Dict[str, Any] = Depends(require_user),
    registry: SessionRegistry = Depends(get_registry),
    initiator: PaymentInitiator = Depends(get_payment_initiator),
):
    """
    Ouvre une session d'inscription pour un cours.
    - Pré-remplit le formulaire depuis le profil (nom, email)
    - Résout le prix de base (repli: gratuit si le catalogue est indisponible)
    """
    identity = identity_from_user(user)
    course = Course(**body.course.model_dump())

    def _build(on_close):
        return EnrollmentOrchestrator(
            course,
            identity,
            initiator=initiator,
            resumption=SessionResumptionStore(request.session),
            on_enrollment_complete=lambda: logger.info("enrollment.complete user_id=%s course_id=%s", identity.user_id, course.id),
            on_close=on_close,
        )

    entry = registry.create(str(user.get("id")), _build)
    await entry.orchestrator.open()
    return _payload(entry)

@router.get("/sessions/{session_id}")
def get_session_state(session_id: str, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    return _payload(_owned_session(session_id, user, registry))

@router.patch("/sessions/{session_id}/form")
def update_form(session_id: str, body: FormUpdate, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    entry = _owned_session(session_id, user, registry)
    entry.orchestrator.update_form(**body.model_dump(exclude_none=True))
    return _payload(entry)

@router.put("/sessions/{session_id}/promo")
def set_promo_code(session_id: str, body: PromoCodeBody, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    entry = _owned_session(session_id, user, registry)
    entry.orchestrator.set_promo_code(body.code)
    return _payload(entry)

@router.post("/sessions/{session_id}/promo/apply", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def apply_promo(session_id: str, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    """
    Valide le code promo courant.
    - Un code invalide n'empêche pas la suite: promo_error est renseigné dans l'état Details
    - Une réponse arrivée après modification du code est ignorée
    """
    entry = _owned_session(session_id, user, registry)
    await entry.orchestrator.apply_promo()
    return _payload(entry)

@router.put("/sessions/{session_id}/payment-method")
def select_payment_method(session_id: str, body: PaymentMethodBody, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    entry = _owned_session(session_id, user, registry)
    try:
        entry.orchestrator.select_payment_method(body.method)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _payload(entry)

@router.post("/sessions/{session_id}/submit")
async def submit(session_id: str, request: Request, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    entry = _owned_session(session_id, user, registry)
    entry.orchestrator.bind_resumption_store(SessionResumptionStore(request.session))
    await entry.orchestrator.submit()
    return _payload(entry)

@router.post("/sessions/{session_id}/back")
def back(session_id: str, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    entry = _owned_session(session_id, user, registry)
    entry.orchestrator.back()
    return _payload(entry)

@router.post("/sessions/{session_id}/pay", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
async def pay(session_id: str, request: Request, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    """
    Lance le paiement avec le prestataire choisi.
    - state=redirected: l'inscription en attente est écrite dans la session signée
      (cookie posé sur cette réponse), le client navigue vers redirect_url
    - state=success: inscription terminée sans redirection
    - state=failed: error.kind/message, retry possible
    """
    entry = _owned_session(session_id, user, registry)
    entry.orchestrator.bind_resumption_store(SessionResumptionStore(request.session))
    await entry.orchestrator.pay()
    logger.info("enrollment.pay session=%s state=%s", session_id, entry.orchestrator.state.name)
    return _payload(entry)

@router.post("/sessions/{session_id}/retry")
def retry(session_id: str, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    entry = _owned_session(session_id, user, registry)
    entry.orchestrator.retry()
    return _payload(entry)

@router.post("/sessions/{session_id}/acknowledge")
def acknowledge(session_id: str, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    entry = _owned_session(session_id, user, registry)
    entry.orchestrator.acknowledge()
    return _payload(entry)

@router.delete("/sessions/{session_id}")
def close_session(session_id: str, user: Dict[str, Any] = Depends(require_user), registry: SessionRegistry = Depends(get_registry)):
    """Ferme la session (409 pendant le traitement d'un paiement)."""
    entry = _owned_session(session_id, user, registry)
    entry.orchestrator.close()
    return _payload(entry)

@router.get("/pending")
def consume_pending_enrollment(request: Request, user: Dict[str, Any] = Depends(require_user)):
    """
    Relit et efface l'inscription en attente écrite avant la redirection prestataire.
    - Consommée une seule fois; un enregistrement d'un autre utilisateur est ignoré
    """
    record = SessionResumptionStore(request.session).consume()
    if record is None or record.user_id != str(user.get("id")):
        return {"pending": None}
    return {
        "pending": {
            "enrollment_id": record.enrollment_id,
            "course_id": record.course_id,
            "user_id": record.user_id,
            "payment_method": record.payment_method,
        }
    }
