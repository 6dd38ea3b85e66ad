"""
Recruitment Auth Core - Crypto Provider Implementation
Empreintes HMAC et génération de tokens opaques.
"""

import hmac
import secrets

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac

from .interfaces import ICryptoProvider


class CryptoProvider(ICryptoProvider):
    """
    Implémentation des opérations cryptographiques.

    Invariants:
        TOKEN_002: Refresh token aléatoire cryptographique
        TOKEN_003: Refresh token jamais indexé en clair (HMAC uniquement)
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("secret requis pour CryptoProvider")
        self._key = secret.encode("utf-8")

    def digest(self, value: str) -> str:
        """
        Calcule l'empreinte HMAC-SHA256 d'un token.

        Args:
            value: Token en clair

        Returns:
            Hash hex string (64 caractères)
        """
        mac = crypto_hmac.HMAC(self._key, hashes.SHA256())
        mac.update(value.encode("utf-8"))
        return mac.finalize().hex()

    def generate_token(self, nbytes: int = 48) -> str:
        """Génère un token aléatoire URL-safe."""
        return secrets.token_urlsafe(nbytes)

    def constant_time_equals(self, a: str, b: str) -> bool:
        """Comparaison à temps constant."""
        return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
