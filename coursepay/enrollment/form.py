"""
Formulaire d'inscription et règles de validation (pur, sans effet de bord).

Les règles sont évaluées dans l'ordre; la première erreur sert de message
unique côté UX, mais chaque règle reste une fonction indépendante.
"""
from dataclasses import dataclass, fields, replace
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from coursepay.identity.service import Identity
from coursepay.payments.providers.base import Contact


@dataclass(frozen=True)
class EnrollmentForm:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: str = ""
    accept_terms: bool = False

    @classmethod
    def from_identity(cls, identity: Optional[Identity]) -> "EnrollmentForm":
        """
        Valeurs par défaut pré-remplies depuis le profil:
        - prénom = premier mot du nom complet, nom = le reste
        - email du profil
        """
        if identity is None:
            return cls()
        parts = (identity.name or "").split()
        return cls(
            first_name=parts[0] if parts else "",
            last_name=" ".join(parts[1:]),
            email=identity.email or "",
        )

    def with_changes(self, **changes) -> "EnrollmentForm":
        allowed = {f.name for f in fields(self)}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Unknown form field(s): {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def contact(self) -> Contact:
        return Contact(email=self.email.strip(), name=self.full_name, phone=self.phone_number.strip())


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass(frozen=True)
class ValidationResult:
    errors: Tuple[FieldError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def first_error(self) -> Optional[FieldError]:
        return self.errors[0] if self.errors else None


def check_first_name(form: EnrollmentForm, base_price: Decimal) -> Optional[FieldError]:
    if not form.first_name.strip():
        return FieldError("first_name", "First name is required")
    return None

def check_email(form: EnrollmentForm, base_price: Decimal) -> Optional[FieldError]:
    if not form.email.strip():
        return FieldError("email", "Email is required")
    return None

def check_phone_number(form: EnrollmentForm, base_price: Decimal) -> Optional[FieldError]:
    # Le téléphone n'est exigé que pour les cours payants
    if base_price > 0 and not form.phone_number.strip():
        return FieldError("phone_number", "Phone number is required for paid courses")
    return None

def check_accept_terms(form: EnrollmentForm, base_price: Decimal) -> Optional[FieldError]:
    if form.accept_terms is not True:
        return FieldError("accept_terms", "You must accept the terms and conditions")
    return None


RULES: Tuple[Callable[[EnrollmentForm, Decimal], Optional[FieldError]], ...] = (
    check_first_name,
    check_email,
    check_phone_number,
    check_accept_terms,
)


def validate_form(form: EnrollmentForm, base_price: Decimal) -> ValidationResult:
    """
    Applique toutes les règles (ordre RULES) et retourne la liste des erreurs.
    - result.first_error: message unique affiché à l'utilisateur
    """
    errors: List[FieldError] = []
    for rule in RULES:
        error = rule(form, base_price)
        if error is not None:
            errors.append(error)
    return ValidationResult(errors=tuple(errors))
