"""
Orchestrateur d'inscription: machine à états d'une session (modale) d'inscription.

    Details --submit(valide, prix 0)--> Processing
    Details --submit(valide, prix > 0)--> PaymentSelection
    Details --submit(invalide)--> Details (erreur de champ)
    PaymentSelection --back--> Details
    PaymentSelection --pay--> Processing
    Processing --sonde: non provisionné--> Failed[SetupRequired]
    Processing --Completed--> Success --(délai)--> on_enrollment_complete + fermeture
    Processing --RedirectRequired--> Redirected (enregistrement sauvegardé puis navigation)
    Processing --échec--> Failed[raison]
    Failed --retry--> Details ; Failed --acknowledge--> fermeture

Une seule opération modifiant l'état est en vol à la fois. Les validations
promo peuvent se chevaucher: un résultat n'est appliqué que si le code pour
lequel il a été demandé est toujours le code courant, sur le même prix de
base (identité de requête, pas ordre d'arrivée). Tant que le prix de base
n'est pas résolu, apply_promo et submit sont refusés (PricePending).
"""
from dataclasses import replace
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Type, Union
import asyncio
import logging

from coursepay.config import SUCCESS_CLOSE_DELAY_SECONDS
from coursepay.identity.service import Identity
from coursepay.payments.initiator import PaymentInitiator, RedirectRequired
from coursepay.payments.probe import check_enrollment_storage
from coursepay.payments.providers.base import PaymentMethod
from coursepay.pricing.service import apply_discount, resolve_base_price, undiscounted, ZERO
from coursepay.promo.client import PromoValidationResult, ValidPromo, normalize_code, validate_promo_code
from coursepay.resumption.store import PendingEnrollmentRecord, ResumptionStore
from .course import Course
from .errors import (
    CloseNotAllowed,
    EnrollmentError,
    InvalidTransition,
    NotAuthenticated,
    PricePending,
    PromoInvalid,
    UnknownError,
    ValidationError,
)
from .form import EnrollmentForm, validate_form
from .state import (
    Closed,
    Details,
    Draft,
    Failed,
    PaymentSelection,
    Processing,
    Redirected,
    Success,
    TERMINAL_STATES,
    WorkflowState,
)

logger = logging.getLogger(__name__)

PriceResolver = Callable[[str], Awaitable[Decimal]]
PromoValidator = Callable[[str, str, Decimal], Awaitable[PromoValidationResult]]
StorageCheck = Callable[[], Awaitable[None]]


class EnrollmentOrchestrator:
    def __init__(
        self,
        course: Course,
        identity: Optional[Identity],
        *,
        initiator: PaymentInitiator,
        resumption: ResumptionStore,
        resolve_price: PriceResolver = resolve_base_price,
        validate_promo: PromoValidator = validate_promo_code,
        check_storage: StorageCheck = check_enrollment_storage,
        navigate: Optional[Callable[[str], None]] = None,
        on_enrollment_complete: Optional[Callable[[], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        success_delay: float = SUCCESS_CLOSE_DELAY_SECONDS,
    ):
        self.course = course
        self.identity = identity
        self.initiator = initiator
        self.resumption = resumption
        self._resolve_price = resolve_price
        self._validate_promo = validate_promo
        self._check_storage = check_storage
        self._navigate = navigate
        self._on_enrollment_complete = on_enrollment_complete
        self._on_close = on_close
        self._success_delay = success_delay
        # Incrémenté à chaque ouverture/fermeture: invalide les réponses asynchrones d'une session précédente
        self._generation = 0
        # Faux tant que le prix de base de la session courante n'est pas résolu
        self._price_ready = False
        self._completion: Optional[asyncio.Task] = None
        self.state: WorkflowState = self._initial_state()

    # --- helpers -----------------------------------------------------------

    def default_form(self) -> EnrollmentForm:
        return EnrollmentForm.from_identity(self.identity)

    def _initial_state(self, base_price: Decimal = ZERO) -> Details:
        return Details(draft=Draft(form=self.default_form(), pricing=undiscounted(base_price)))

    def _set(self, state: WorkflowState) -> WorkflowState:
        previous = self.state
        self.state = state
        if previous.name != state.name:
            logger.info("enrollment.transition course_id=%s %s -> %s", self.course.id, previous.name, state.name)
        return state

    def _require(self, expected: Union[Type, tuple], action: str):
        if not isinstance(self.state, expected):
            raise InvalidTransition(action, self.state.name)
        return self.state

    @property
    def is_closed(self) -> bool:
        return isinstance(self.state, TERMINAL_STATES)

    # --- session -----------------------------------------------------------

    async def open(self) -> WorkflowState:
        """
        (Ré)ouvre la session: formulaire par défaut, puis résolution du prix de base.
        - Le prix arrive de façon asynchrone; il n'est appliqué que si la session n'a pas changé entre-temps.
        """
        # Success doit encore notifier la fin; Redirected est terminal
        if isinstance(self.state, (Processing, Success, Redirected)):
            raise InvalidTransition("open", self.state.name)
        self._generation += 1
        self._price_ready = False
        generation = self._generation
        self._set(self._initial_state())
        base_price = await self._resolve_price(self.course.id)
        if generation != self._generation or not isinstance(self.state, Details):
            return self.state
        state = self.state
        draft = replace(state.draft, pricing=undiscounted(base_price))
        self._price_ready = True
        logger.info("enrollment.open course_id=%s base_price=%s", self.course.id, base_price)
        return self._set(replace(state, draft=draft))

    def close(self) -> WorkflowState:
        """
        Ferme la session (interdit pendant Processing: un paiement est en vol).
        - Depuis Success: la notification de fin est émise avant la fermeture.
        """
        if isinstance(self.state, Processing):
            raise CloseNotAllowed(self.state.name)
        if self.is_closed:
            return self.state
        if isinstance(self.state, Success):
            if self._completion is not None and not self._completion.done():
                self._completion.cancel()
            self._notify(self._on_enrollment_complete, "on_enrollment_complete")
        return self._close()

    def _close(self) -> WorkflowState:
        self._generation += 1
        state = self._set(Closed())
        self._notify(self._on_close, "on_close")
        return state

    def _notify(self, callback: Optional[Callable[[], None]], label: str) -> None:
        if callback is None:
            return
        try:
            callback()
        except Exception:
            logger.exception("enrollment.%s callback failed course_id=%s", label, self.course.id)

    async def settle(self) -> None:
        """Attend la fin de la temporisation post-succès (si programmée)."""
        if self._completion is not None:
            try:
                await self._completion
            except asyncio.CancelledError:
                pass

    # --- Details -----------------------------------------------------------

    def update_form(self, **fields) -> WorkflowState:
        state = self._require(Details, "update the form")
        draft = replace(state.draft, form=state.draft.form.with_changes(**fields))
        return self._set(replace(state, draft=draft))

    def set_promo_code(self, code: str) -> WorkflowState:
        """Toute modification du code invalide la remise appliquée."""
        state = self._require(Details, "edit the promo code")
        draft = replace(
            state.draft,
            promo_code=(code or "").upper(),
            pricing=undiscounted(state.draft.pricing.base_price),
        )
        return self._set(replace(state, draft=draft, promo_error=None))

    async def apply_promo(self) -> PromoValidationResult:
        state = self._require(Details, "apply a promo code")
        if not self._price_ready:
            raise PricePending("apply a promo code")
        # Identité de la requête: code et prix de base pour lesquels la validation est demandée
        code = state.draft.promo_code
        requested_base = state.draft.pricing.base_price
        generation = self._generation
        result = await self._validate_promo(code, self.course.id, requested_base)

        current = self.state
        if (
            generation != self._generation
            or not isinstance(current, Details)
            or normalize_code(current.draft.promo_code) != normalize_code(code)
            or current.draft.pricing.base_price != requested_base
        ):
            logger.info("enrollment.promo stale result discarded code=%s course_id=%s", normalize_code(code), self.course.id)
            return result

        base_price = current.draft.pricing.base_price
        if isinstance(result, ValidPromo):
            draft = replace(current.draft, pricing=apply_discount(base_price, result))
            self._set(replace(current, draft=draft, promo_error=None))
        else:
            draft = replace(current.draft, pricing=undiscounted(base_price))
            self._set(replace(current, draft=draft, promo_error=PromoInvalid(result.reason)))
        return result

    def select_payment_method(self, method: Union[PaymentMethod, str]) -> WorkflowState:
        state = self._require((Details, PaymentSelection), "select a payment method")
        method = PaymentMethod(method)
        if not self.initiator.supports(method):
            raise ValueError(f"Unsupported payment method: {method.value}")
        return self._set(replace(state, draft=replace(state.draft, payment_method=method)))

    async def submit(self) -> WorkflowState:
        state = self._require(Details, "submit")
        if not self._price_ready:
            raise PricePending("submit")
        draft = state.draft
        result = validate_form(draft.form, draft.pricing.base_price)
        if not result.ok:
            first = result.first_error
            return self._set(replace(state, error=ValidationError(first.field, first.message)))
        if draft.pricing.is_free:
            # Cours gratuit: pas de choix de prestataire
            return await self._process(draft)
        return self._set(PaymentSelection(draft=draft))

    # --- PaymentSelection --------------------------------------------------

    def back(self) -> WorkflowState:
        state = self._require(PaymentSelection, "go back")
        return self._set(Details(draft=state.draft))

    async def pay(self) -> WorkflowState:
        state = self._require(PaymentSelection, "pay")
        return await self._process(state.draft)

    # --- Processing --------------------------------------------------------

    async def _process(self, draft: Draft) -> WorkflowState:
        self._set(Processing(draft=draft))
        try:
            if self.identity is None:
                raise NotAuthenticated()
            await self._check_storage()
            outcome = await self.initiator.initiate(
                self.identity.user_id,
                self.course.id,
                draft.pricing.final_price,
                draft.form.contact(),
                draft.payment_method,
            )
        except EnrollmentError as e:
            logger.warning("enrollment.payment failed course_id=%s kind=%s: %s", self.course.id, e.kind, e.message)
            return self._set(Failed(draft=draft, error=e))
        except Exception as e:
            logger.exception("enrollment.payment unexpected error course_id=%s", self.course.id)
            return self._set(Failed(draft=draft, error=UnknownError(str(e) or None)))

        if isinstance(outcome, RedirectRequired):
            return self._hand_off(draft, outcome)
        return self._succeed(outcome.enrollment_id)

    def _hand_off(self, draft: Draft, outcome: RedirectRequired) -> WorkflowState:
        # Écriture puis navigation: une seule étape logique
        self.resumption.save(PendingEnrollmentRecord(
            enrollment_id=outcome.enrollment_id,
            course_id=self.course.id,
            user_id=self.identity.user_id,
            payment_method=draft.payment_method.value,
        ))
        self._generation += 1
        state = self._set(Redirected(enrollment_id=outcome.enrollment_id, redirect_url=outcome.redirect_url))
        if self._navigate is not None:
            self._navigate(outcome.redirect_url)
        self._notify(self._on_close, "on_close")
        return state

    def _succeed(self, enrollment_id: str) -> WorkflowState:
        state = self._set(Success(enrollment_id=enrollment_id))
        self._completion = asyncio.get_running_loop().create_task(self._complete_after_delay())
        return state

    async def _complete_after_delay(self) -> None:
        await asyncio.sleep(self._success_delay)
        if not isinstance(self.state, Success):
            return
        self._notify(self._on_enrollment_complete, "on_enrollment_complete")
        self._close()

    # --- Failed ------------------------------------------------------------

    def retry(self) -> WorkflowState:
        state = self._require(Failed, "retry")
        return self._set(Details(draft=state.draft))

    def acknowledge(self) -> WorkflowState:
        self._require(Failed, "acknowledge")
        return self._close()

    # Ré-attache le store de reprise (la session HTTP change à chaque requête)
    def bind_resumption_store(self, store: ResumptionStore) -> None:
        self.resumption = store
