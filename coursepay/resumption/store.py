"""
Stockage de l'inscription en attente à travers la redirection vers le prestataire.

L'enregistrement est écrit avant la navigation, relu au retour puis effacé
(consommé une seule fois). Un enregistrement jamais relu est un déchet, pas
une erreur.
"""
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import MutableMapping, Optional
import json
import logging

logger = logging.getLogger(__name__)

PENDING_ENROLLMENT_KEY = "pendingEnrollment"


@dataclass(frozen=True)
class PendingEnrollmentRecord:
    enrollment_id: str
    course_id: str
    user_id: str
    payment_method: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: Optional[str]) -> Optional["PendingEnrollmentRecord"]:
        """Relit un enregistrement; None si absent ou illisible (jamais d'enregistrement partiel)."""
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return cls(
                enrollment_id=str(data["enrollment_id"]),
                course_id=str(data["course_id"]),
                user_id=str(data["user_id"]),
                payment_method=str(data["payment_method"]),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("resumption.store discarding unreadable pending enrollment record")
            return None


class ResumptionStore(ABC):
    @abstractmethod
    def save(self, record: PendingEnrollmentRecord) -> None: ...

    @abstractmethod
    def load(self) -> Optional[PendingEnrollmentRecord]: ...

    @abstractmethod
    def clear(self) -> None: ...

    def consume(self) -> Optional[PendingEnrollmentRecord]:
        record = self.load()
        self.clear()
        return record


class InMemoryResumptionStore(ResumptionStore):
    def __init__(self) -> None:
        self._raw: Optional[str] = None

    def save(self, record: PendingEnrollmentRecord) -> None:
        self._raw = record.to_json()

    def load(self) -> Optional[PendingEnrollmentRecord]:
        return PendingEnrollmentRecord.from_json(self._raw)

    def clear(self) -> None:
        self._raw = None


class SessionResumptionStore(ResumptionStore):
    """
    Adossé à la session signée Starlette (request.session):
    - survit à la navigation aller/retour vers le prestataire
    - disparaît à la déconnexion (session vidée) et n'est pas partagé entre appareils
    - l'enregistrement est sérialisé entièrement puis écrit en une seule affectation
    """

    def __init__(self, session: MutableMapping, key: str = PENDING_ENROLLMENT_KEY):
        self.session = session
        self.key = key

    def save(self, record: PendingEnrollmentRecord) -> None:
        self.session[self.key] = record.to_json()

    def load(self) -> Optional[PendingEnrollmentRecord]:
        return PendingEnrollmentRecord.from_json(self.session.get(self.key))

    def clear(self) -> None:
        self.session.pop(self.key, None)
