"""
Auth - Login Lockout

Verrouillage temporaire d'un email après plusieurs échecs de login.

Invariant:
    AUTH_004: N échecs consécutifs = email verrouillé temporairement
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..core.clock import Clock, utc_now
from ..core.settings import LockoutSettings


@dataclass
class LockStatus:
    """
    Statut de verrouillage d'un email.

    Attributes:
        key: Email normalisé
        locked: True si verrouillé
        locked_until: Fin du verrouillage
        failure_count: Échecs dans la fenêtre courante
        last_failure: Dernier échec enregistré
    """

    key: str
    locked: bool
    locked_until: Optional[datetime]
    failure_count: int
    last_failure: Optional[datetime]


class LoginLockout:
    """
    Compteur d'échecs de login par email.

    Les échecs plus anciens que la durée de verrouillage sont oubliés;
    le verrou expire automatiquement.

    Chaque email essayé, même inconnu, reste en mémoire jusqu'au prochain
    cleanup_expired(): l'appelant doit planifier ce balayage périodiquement.

    Example:
        lockout = LoginLockout(max_failed_attempts=5)
        status = lockout.record_failure("alice@example.com")
        if lockout.is_locked("alice@example.com"):
            ...
    """

    MAX_FAILED_ATTEMPTS: int = 5
    LOCKOUT_DURATION: timedelta = timedelta(minutes=15)

    def __init__(
        self,
        max_failed_attempts: Optional[int] = None,
        lockout_duration: Optional[timedelta] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """
        Args:
            max_failed_attempts: Échecs avant verrouillage (défaut: 5)
            lockout_duration: Durée du verrouillage (défaut: 15 min)
            clock: Horloge injectable (UTC)

        Raises:
            ValueError: Si max_failed_attempts < 1 ou durée non positive
        """
        self._max_failures = max_failed_attempts if max_failed_attempts is not None else self.MAX_FAILED_ATTEMPTS
        self._lockout_duration = lockout_duration if lockout_duration is not None else self.LOCKOUT_DURATION
        if self._max_failures < 1:
            raise ValueError("max_failed_attempts doit être >= 1")
        if self._lockout_duration <= timedelta(0):
            raise ValueError("lockout_duration doit être positive")

        self._clock = clock or utc_now
        self._failures: Dict[str, List[datetime]] = {}
        self._locks: Dict[str, datetime] = {}  # key -> locked_until

    @classmethod
    def from_settings(cls, settings: LockoutSettings, clock: Optional[Clock] = None) -> "LoginLockout":
        return cls(
            max_failed_attempts=settings.max_failed_attempts,
            lockout_duration=timedelta(seconds=settings.lockout_duration_seconds),
            clock=clock,
        )

    @staticmethod
    def normalize(email: str) -> str:
        return (email or "").strip().lower()

    def record_failure(self, email: str) -> LockStatus:
        """
        Enregistre un échec et verrouille au seuil.

        Returns:
            Statut après enregistrement
        """
        key = self.normalize(email)
        if self.is_locked(key):
            return self.get_status(key)

        self._cleanup_old_failures(key)
        now = self._clock()
        failures = self._failures.setdefault(key, [])
        failures.append(now)

        # AUTH_004
        if len(failures) >= self._max_failures:
            self._locks[key] = now + self._lockout_duration

        return self.get_status(key)

    def is_locked(self, email: str) -> bool:
        """Vérifie le verrou, avec déverrouillage automatique à échéance."""
        key = self.normalize(email)
        locked_until = self._locks.get(key)
        if locked_until is None:
            return False

        if self._clock() >= locked_until:
            del self._locks[key]
            self._failures.pop(key, None)
            return False
        return True

    def reset(self, email: str) -> None:
        """Efface échecs et verrou (login réussi ou action admin)."""
        key = self.normalize(email)
        self._failures.pop(key, None)
        self._locks.pop(key, None)

    def get_status(self, email: str) -> LockStatus:
        key = self.normalize(email)
        locked = self.is_locked(key)
        self._cleanup_old_failures(key)
        failures = self._failures.get(key, [])

        return LockStatus(
            key=key,
            locked=locked,
            locked_until=self._locks.get(key) if locked else None,
            failure_count=len(failures),
            last_failure=failures[-1] if failures else None,
        )

    def get_remaining_attempts(self, email: str) -> int:
        key = self.normalize(email)
        if self.is_locked(key):
            return 0
        self._cleanup_old_failures(key)
        return max(0, self._max_failures - len(self._failures.get(key, [])))

    def get_lock_remaining_time(self, email: str) -> Optional[timedelta]:
        """
        Temps restant avant déverrouillage automatique.

        Returns:
            Durée restante, None si non verrouillé
        """
        key = self.normalize(email)
        if not self.is_locked(key):
            return None
        return self._locks[key] - self._clock()

    def cleanup_expired(self) -> int:
        """
        Purge verrous échus et échecs hors fenêtre.

        Returns:
            Nombre de clés retirées
        """
        removed = 0
        for key in list(set(self._locks) | set(self._failures)):
            self.is_locked(key)
            self._cleanup_old_failures(key)
            if key not in self._locks and key not in self._failures:
                removed += 1
        return removed

    def _cleanup_old_failures(self, key: str) -> None:
        failures = self._failures.get(key)
        if failures is None:
            return

        cutoff = self._clock() - self._lockout_duration
        recent = [ts for ts in failures if ts > cutoff]
        if recent:
            self._failures[key] = recent
        else:
            del self._failures[key]
