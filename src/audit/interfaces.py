"""
Audit - Interfaces

Contrat du journal d'audit des événements d'authentification et
des changements de permissions.

Invariants:
    AUDIT_001: Journal d'audit en ajout seul
    AUDIT_002: Chaque événement haché SHA-384 pour détection d'altération
    AUDIT_003: Métadonnées d'audit nettoyées avant stockage
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class AuditAction(Enum):
    """Actions auditées par le coeur d'authentification."""
    LOGIN = "LOGIN"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    TOKEN_REFRESH = "TOKEN_REFRESH"
    TOKEN_REFRESH_FAILED = "TOKEN_REFRESH_FAILED"
    SESSION_REVOKED = "SESSION_REVOKED"
    ROLE_PERMISSIONS_CHANGED = "ROLE_PERMISSIONS_CHANGED"


@dataclass(frozen=True)
class AuditEvent:
    """
    Événement d'audit.

    Immutable: le hash est posé par le recorder au moment de l'enregistrement.
    user_id est None quand l'utilisateur n'a pas pu être identifié
    (login sur email inconnu, refresh token invalide).
    """
    event_id: str
    action: AuditAction
    user_id: Optional[str]
    success: bool
    timestamp: datetime
    error_message: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    hash_value: Optional[str] = None  # SHA-384 de l'événement


class IAuditRecorder(ABC):
    """
    Interface enregistrement d'événements d'audit.

    Les appelants du flux d'authentification traitent tout échec
    de record() comme non bloquant (AUTH_003).
    """

    @abstractmethod
    def build_event(
        self,
        action: AuditAction,
        user_id: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Construit un événement horodaté par l'horloge du recorder."""
        pass

    @abstractmethod
    async def record(self, event: AuditEvent) -> AuditEvent:
        """
        Enregistre un événement (AUDIT_001).

        Args:
            event: Événement à enregistrer

        Returns:
            Événement tel que stocké (métadonnées nettoyées, hash posé)

        Raises:
            AuditRecorderError: Erreur d'enregistrement
        """
        pass
