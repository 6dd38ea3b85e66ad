"""
Recruitment Auth Core - Core Interfaces
Contrats à implémenter pour le module Core (configuration, cryptographie).
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from .settings import AuthSettings


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class ValidationSeverity(Enum):
    BLOCKING = "blocking"
    WARNING = "warning"
    INFO = "info"


class ValidationError(BaseModel):
    """Erreur de validation d'un invariant."""

    rule_id: str
    message: str
    location: str
    value: Optional[str] = None
    severity: ValidationSeverity = ValidationSeverity.BLOCKING


class ValidationResult(BaseModel):
    """Résultat de validation d'une configuration."""

    valid: bool
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []
    checked_at: datetime


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge la configuration d'authentification depuis fichiers + environnement."""

    @abstractmethod
    async def load(self, name: str) -> AuthSettings:
        """
        Charge une configuration nommée.

        Raises:
            ConfigIntegrityError: Si fichier absent, YAML invalide ou valeurs hors schéma
        """
        pass

    @abstractmethod
    def parse(self, data: dict[str, Any]) -> AuthSettings:
        """Construit les settings depuis un dictionnaire (overrides env appliqués)."""
        pass


class IConfigValidator(ABC):
    """Valide configuration contre les invariants de sécurité."""

    @abstractmethod
    def validate(self, settings: AuthSettings) -> ValidationResult:
        """
        Valide une config contre TOUS les invariants.
        Retourne TOUTES les erreurs (pas fail-fast).
        """
        pass

    @abstractmethod
    def validate_rule(self, rule_id: str, settings: AuthSettings) -> Optional[ValidationError]:
        """Valide UNE règle spécifique."""
        pass


class ICryptoProvider(ABC):
    """Primitives cryptographiques pour tokens opaques."""

    @abstractmethod
    def digest(self, value: str) -> str:
        """
        Calcule l'empreinte HMAC-SHA256 d'une valeur secrète.

        Returns:
            Hash hex string (64 caractères)
        """
        pass

    @abstractmethod
    def generate_token(self, nbytes: int = 48) -> str:
        """Génère un token aléatoire URL-safe."""
        pass

    @abstractmethod
    def constant_time_equals(self, a: str, b: str) -> bool:
        """Comparaison à temps constant."""
        pass
