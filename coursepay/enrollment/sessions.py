"""
Registre en mémoire des sessions d'inscription ouvertes (une par modale).

Une session est retirée dès que l'orchestrateur signale sa fin (on_close):
fermeture, acquittement d'un échec, succès temporisé ou redirection.
Les sessions abandonnées (navigateur fermé) sont évincées après inactivité,
et un utilisateur ne garde qu'un nombre borné de sessions ouvertes.
Une session en Processing n'est jamais évincée: un paiement est en vol.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from uuid import uuid4
import logging
import time

from coursepay.config import ENROLLMENT_SESSION_IDLE_SECONDS, ENROLLMENT_SESSIONS_PER_USER
from .orchestrator import EnrollmentOrchestrator
from .state import Processing

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    session_id: str
    user_id: str
    orchestrator: EnrollmentOrchestrator
    last_seen: float = field(default=0.0, compare=False)


class SessionRegistry:
    def __init__(
        self,
        idle_seconds: float = ENROLLMENT_SESSION_IDLE_SECONDS,
        max_per_user: int = ENROLLMENT_SESSIONS_PER_USER,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: Dict[str, SessionEntry] = {}
        self.idle_seconds = idle_seconds
        self.max_per_user = max_per_user
        self._clock = clock

    def create(self, user_id: str, build: Callable[[Callable[[], None]], EnrollmentOrchestrator]) -> SessionEntry:
        """
        build(on_close) construit l'orchestrateur; on_close retire la session du registre.
        - Évince d'abord les sessions inactives, puis les plus anciennes de l'utilisateur au-delà du plafond
        """
        self.evict_idle()
        self._enforce_user_cap(user_id)
        session_id = uuid4().hex
        orchestrator = build(lambda: self.discard(session_id))
        entry = SessionEntry(session_id=session_id, user_id=user_id, orchestrator=orchestrator, last_seen=self._clock())
        self._entries[session_id] = entry
        logger.info("enrollment.sessions created session=%s user_id=%s course_id=%s", session_id, user_id, orchestrator.course.id)
        return entry

    def get(self, session_id: str) -> Optional[SessionEntry]:
        entry = self._entries.get(session_id)
        if entry is not None:
            entry.last_seen = self._clock()
        return entry

    def discard(self, session_id: str) -> None:
        if self._entries.pop(session_id, None) is not None:
            logger.info("enrollment.sessions discarded session=%s", session_id)

    def evict_idle(self) -> int:
        now = self._clock()
        idle = [e for e in self._entries.values() if now - e.last_seen >= self.idle_seconds]
        return self._evict(idle, "idle")

    def _enforce_user_cap(self, user_id: str) -> None:
        owned = sorted((e for e in self._entries.values() if e.user_id == user_id), key=lambda e: e.last_seen)
        excess = len(owned) - self.max_per_user + 1
        if excess > 0:
            self._evict(owned[:excess], "user_cap")

    def _evict(self, entries: List[SessionEntry], reason: str) -> int:
        evicted = 0
        for entry in entries:
            if isinstance(entry.orchestrator.state, Processing):
                continue
            # close() notifie l'appelant (on_close / fin d'inscription) puis retire via on_close
            entry.orchestrator.close()
            self.discard(entry.session_id)
            evicted += 1
            logger.info("enrollment.sessions evicted session=%s reason=%s", entry.session_id, reason)
        return evicted

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


registry = SessionRegistry()

def get_registry() -> SessionRegistry:
    return registry
