"""
Taxonomie d'erreurs du workflow d'inscription.

- ValidationError / PromoInvalid: erreurs locales, résolues sans transition.
- NotAuthenticated, SetupRequired, ProviderError, UnknownError: erreurs du
  chemin de paiement, elles amènent toujours le workflow dans l'état Failed.
- InvalidTransition / CloseNotAllowed: mauvaise utilisation de l'orchestrateur
  (traduites en 409 par la couche HTTP).
"""
from typing import Optional


class EnrollmentError(Exception):
    kind = "unknown"
    default_message = "Payment failed"
    retryable = True

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "retryable": self.retryable}


class ValidationError(EnrollmentError):
    kind = "validation"
    default_message = "Invalid enrollment details"

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field}


class PromoInvalid(EnrollmentError):
    kind = "promo_invalid"
    default_message = "Invalid promo code"


class NotAuthenticated(EnrollmentError):
    kind = "not_authenticated"
    default_message = "User not authenticated"
    retryable = False


class SetupRequired(EnrollmentError):
    kind = "setup_required"
    default_message = (
        "Database setup required. Please run the enrollment storage migrations "
        "before accepting enrollments."
    )
    retryable = False


class ProviderError(EnrollmentError):
    kind = "provider_error"
    default_message = "Payment initialization failed"


class UnknownError(EnrollmentError):
    kind = "unknown"
    default_message = "Payment failed"


class InvalidTransition(Exception):
    def __init__(self, action: str, state_name: str):
        self.action = action
        self.state_name = state_name
        super().__init__(f"Cannot {action} while in state '{state_name}'")


class CloseNotAllowed(InvalidTransition):
    def __init__(self, state_name: str = "processing"):
        super().__init__("close", state_name)


class PricePending(InvalidTransition):
    """Le prix de base n'est pas encore connu: une remise calculée maintenant serait fausse."""

    def __init__(self, action: str = "apply a promo code"):
        self.action = action
        self.state_name = "details"
        Exception.__init__(self, f"Cannot {action} before the course price is resolved")
