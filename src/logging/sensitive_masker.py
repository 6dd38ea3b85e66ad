"""
Logging - Sensitive Masker

Masquage automatique des données sensibles.

Invariant:
    LOG_004: Secrets et tokens JAMAIS en clair dans les logs
"""

import re
from typing import Any, Dict, List, Optional

from .interfaces import ISensitiveMasker

# "Bearer <token>" dans un texte libre
BEARER_PATTERN = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9\-._~+/]+=*")

# Trois segments base64url dont les deux premiers commencent par "eyJ" ('{"' encodé)
JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_-]*\.eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*")


class SensitiveMasker(ISensitiveMasker):
    """
    Masquage automatique des données sensibles.

    Implémente le masquage récursif pour protéger les données
    sensibles dans les logs.

    Invariant:
        LOG_004: Secrets et tokens JAMAIS en clair

    Example:
        masker = SensitiveMasker()
        safe_data = masker.mask({"password": "secret123"})
        # {"password": "***MASKED***"}
    """

    def __init__(self, additional_patterns: Optional[List[str]] = None) -> None:
        """
        Initialise le masker avec patterns sensibles.

        Args:
            additional_patterns: Patterns supplémentaires à masquer
        """
        self._patterns: List[str] = list(self.SENSITIVE_PATTERNS)
        if additional_patterns:
            for pattern in additional_patterns:
                if pattern and pattern.lower() not in self._patterns:
                    self._patterns.append(pattern.lower())

    @property
    def patterns(self) -> List[str]:
        """Retourne les patterns sensibles configurés."""
        return list(self._patterns)

    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Masque récursivement toutes les données sensibles.

        Comportement:
            - Clés contenant patterns sensibles → valeur masquée
            - Valeurs dict → récursion
            - Valeurs list → masque chaque élément
            - Valeurs str → fragments bearer/JWT masqués

        Args:
            data: Dictionnaire à masquer

        Returns:
            Copie avec données sensibles masquées
        """
        if not isinstance(data, dict):
            return data

        result: Dict[str, Any] = {}

        for key, value in data.items():
            if self.is_sensitive_key(str(key)):
                result[key] = self.MASK_VALUE
            elif isinstance(value, dict):
                result[key] = self.mask(value)
            elif isinstance(value, (list, tuple)):
                result[key] = self._mask_list(list(value))
            elif isinstance(value, str):
                result[key] = self.mask_string(value)
            else:
                result[key] = value

        return result

    def _mask_list(self, items: List[Any]) -> List[Any]:
        result = []
        for item in items:
            if isinstance(item, dict):
                result.append(self.mask(item))
            elif isinstance(item, list):
                result.append(self._mask_list(item))
            elif isinstance(item, str):
                result.append(self.mask_string(item))
            else:
                result.append(item)
        return result

    def mask_string(self, value: str) -> str:
        """
        Masque les fragments sensibles d'un texte libre.

        Un header "Bearer xxx" ou un JWT compact collé dans un message
        d'erreur est remplacé par MASK_VALUE, le reste du texte est conservé.

        Args:
            value: Texte à nettoyer

        Returns:
            Texte nettoyé
        """
        if not value:
            return value
        masked = BEARER_PATTERN.sub(f"Bearer {self.MASK_VALUE}", value)
        return JWT_PATTERN.sub(self.MASK_VALUE, masked)

    def is_sensitive_key(self, key: str) -> bool:
        """
        Vérifie si clé contient un pattern sensible.

        La vérification est case-insensitive.

        Args:
            key: Nom de la clé à vérifier

        Returns:
            True si clé contient pattern sensible
        """
        if not key:
            return False

        key_lower = key.lower()
        return any(pattern in key_lower for pattern in self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """
        Ajoute pattern sensible personnalisé.

        Args:
            pattern: Pattern à ajouter (case-insensitive)

        Raises:
            ValueError: Si pattern vide
        """
        if not pattern or not pattern.strip():
            raise ValueError("Pattern cannot be empty")

        pattern_lower = pattern.lower().strip()
        if pattern_lower not in self._patterns:
            self._patterns.append(pattern_lower)

    def remove_pattern(self, pattern: str) -> bool:
        """
        Retire un pattern de la liste.

        Returns:
            True si pattern retiré, False si non trouvé
        """
        pattern_lower = pattern.lower().strip()
        if pattern_lower in self._patterns:
            self._patterns.remove(pattern_lower)
            return True
        return False
