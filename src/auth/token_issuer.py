"""
Auth - Token Issuer

Émission et vérification des access tokens (JWT HS256), des refresh
tokens opaques et des tokens de vérification d'email / reset.

Invariants:
    TOKEN_001: Claims access token jamais utilisés après leur propre expiration
    TOKEN_002: Refresh token aléatoire cryptographique, sans donnée utilisateur
    TOKEN_004: Access token auto-descriptif: sub, role, sid, exp
    TOKEN_005: Token de vérification lié à un usage unique
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

import jwt

from ..core.clock import Clock, utc_now
from ..core.crypto_provider import CryptoProvider
from ..core.interfaces import ICryptoProvider
from ..core.settings import TokenSettings
from .errors import TokenExpiredError, TokenValidationError
from .interfaces import ITokenIssuer, TokenClaims, TokenPurpose, VerificationClaims

ACCESS_TOKEN_TYPE = "access"
VERIFICATION_TOKEN_TYPE = "verification"


class TokenIssuer(ITokenIssuer):
    """
    Émetteur de tokens signés.

    Sans état mutable au-delà du secret et des TTL. L'expiration est
    vérifiée contre l'horloge injectée, pas contre l'horloge de PyJWT.

    Example:
        issuer = TokenIssuer(settings.tokens)
        token, expires_at = issuer.issue_access_token("u-1", "editor", session_id)
        claims = issuer.verify_access_token(token)
    """

    def __init__(
        self,
        settings: TokenSettings,
        crypto: Optional[ICryptoProvider] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            settings: Section tokens de la configuration
            crypto: Générateur de valeurs aléatoires (défaut: CryptoProvider(secret))
            clock: Horloge injectable (UTC)

        Raises:
            ValueError: Si secret vide
        """
        if not settings.secret:
            raise ValueError("tokens.secret requis pour TokenIssuer")

        self._settings = settings
        self._crypto = crypto or CryptoProvider(settings.secret)
        self._clock = clock or utc_now

    @property
    def access_token_ttl(self) -> int:
        return self._settings.access_token_ttl_seconds

    @property
    def issuer(self) -> str:
        return self._settings.issuer

    # ══════════════════════════════════════════════════════════════════════════
    # ACCESS TOKENS
    # ══════════════════════════════════════════════════════════════════════════

    def issue_access_token(
        self, user_id: str, role: Optional[str], session_id: Optional[str] = None
    ) -> Tuple[str, datetime]:
        """
        TOKEN_004: Émet un JWT auto-descriptif.

        Args:
            user_id: Identifiant utilisateur (claim sub)
            role: Nom du rôle (claim role, peut être None)
            session_id: Session associée (claim sid)

        Returns:
            (token, expires_at) avec expires_at aligné sur la seconde du claim exp
        """
        if not user_id:
            raise ValueError("user_id requis")

        issued_at = int(self._clock().timestamp())
        expires = issued_at + self._settings.access_token_ttl_seconds
        payload = {
            "sub": user_id,
            "role": role,
            "sid": session_id,
            "iat": issued_at,
            "exp": expires,
            "jti": str(uuid.uuid4()),
            "iss": self._settings.issuer,
            "type": ACCESS_TOKEN_TYPE,
        }
        token = jwt.encode(payload, self._settings.secret, algorithm=self._settings.algorithm)
        return token, datetime.fromtimestamp(expires, tz=timezone.utc)

    def issue_refresh_token(self) -> str:
        """TOKEN_002: Valeur opaque aléatoire, aucune donnée utilisateur."""
        return self._crypto.generate_token(self._settings.refresh_token_bytes)

    def verify_access_token(self, token: str) -> TokenClaims:
        """
        Vérifie signature, issuer, type et expiration.

        Raises:
            TokenExpiredError: Token expiré (TOKEN_001)
            TokenValidationError: Token invalide
        """
        payload = self._decode(token, required=["exp", "iat", "sub", "jti"])

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise TokenValidationError("Invalid token type", invariant="TOKEN_004")

        issued_at, expires_at = self._check_expiry(payload)

        try:
            return TokenClaims(
                user_id=payload["sub"],
                role=payload.get("role"),
                session_id=payload.get("sid"),
                issued_at=issued_at,
                expires_at=expires_at,
                token_id=payload["jti"],
            )
        except ValueError as e:
            raise TokenValidationError(f"Invalid token: {e}")

    def is_expired(self, token: str) -> bool:
        """Vérifie expiration sans valider signature (True si illisible)."""
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return True
        exp_timestamp = payload.get("exp")
        if exp_timestamp is None:
            return True
        return self._clock() >= datetime.fromtimestamp(exp_timestamp, tz=timezone.utc)

    def decode_without_validation(self, token: str) -> dict:
        """
        Décode sans valider (debug uniquement).

        ⚠️ NE JAMAIS utiliser pour authentification.
        """
        return jwt.decode(token, options={"verify_signature": False})

    # ══════════════════════════════════════════════════════════════════════════
    # TOKENS DE VÉRIFICATION
    # ══════════════════════════════════════════════════════════════════════════

    def issue_verification_token(self, user_id: str, purpose: TokenPurpose, email: str) -> Tuple[str, datetime]:
        """
        TOKEN_005: Émet un token lié à un usage.

        TTL: verification_token_ttl_seconds pour l'email,
        password_reset_token_ttl_seconds pour le reset.
        """
        if not isinstance(purpose, TokenPurpose):
            raise ValueError(f"Usage invalide: {purpose}")

        ttl = (
            self._settings.password_reset_token_ttl_seconds
            if purpose == TokenPurpose.PASSWORD_RESET
            else self._settings.verification_token_ttl_seconds
        )
        issued_at = int(self._clock().timestamp())
        expires = issued_at + ttl
        payload = {
            "sub": user_id,
            "email": email,
            "purpose": purpose.value,
            "iat": issued_at,
            "exp": expires,
            "jti": str(uuid.uuid4()),
            "iss": self._settings.issuer,
            "type": VERIFICATION_TOKEN_TYPE,
        }
        token = jwt.encode(payload, self._settings.secret, algorithm=self._settings.algorithm)
        return token, datetime.fromtimestamp(expires, tz=timezone.utc)

    def verify_verification_token(self, token: str, purpose: Optional[TokenPurpose] = None) -> VerificationClaims:
        """
        Vérifie un token de vérification.

        Args:
            token: Token brut
            purpose: Usage attendu (None = tout usage connu)

        Raises:
            TokenExpiredError: Token expiré
            TokenValidationError: Token invalide ou usage différent (TOKEN_005)
        """
        payload = self._decode(token, required=["exp", "iat", "sub", "jti", "purpose"])

        if payload.get("type") != VERIFICATION_TOKEN_TYPE:
            raise TokenValidationError("Invalid token type", invariant="TOKEN_005")

        try:
            token_purpose = TokenPurpose(payload["purpose"])
        except ValueError:
            raise TokenValidationError("Unknown token purpose", invariant="TOKEN_005")

        if purpose is not None and token_purpose != purpose:
            raise TokenValidationError("Token purpose mismatch", invariant="TOKEN_005")

        issued_at, expires_at = self._check_expiry(payload)

        return VerificationClaims(
            user_id=payload["sub"],
            email=payload.get("email", ""),
            purpose=token_purpose,
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=payload["jti"],
        )

    # ══════════════════════════════════════════════════════════════════════════
    # INTERNE
    # ══════════════════════════════════════════════════════════════════════════

    def _decode(self, token: str, required: list) -> dict:
        if not token:
            raise TokenValidationError("Token missing")
        try:
            return jwt.decode(
                token,
                self._settings.secret,
                algorithms=[self._settings.algorithm],
                issuer=self._settings.issuer,
                options={
                    "require": required + ["iss"],
                    # Expiration vérifiée contre l'horloge injectée
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_iss": True,
                },
            )
        except jwt.InvalidIssuerError:
            raise TokenValidationError(f"Invalid issuer. Expected: {self._settings.issuer}")
        except jwt.InvalidTokenError as e:
            raise TokenValidationError(f"Invalid token: {e}")

    def _check_expiry(self, payload: dict) -> Tuple[datetime, datetime]:
        try:
            issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            raise TokenValidationError("Invalid token timestamps")

        # TOKEN_001
        if self._clock() >= expires_at:
            raise TokenExpiredError()
        return issued_at, expires_at

