"""
Recruitment Auth Core - Settings
Modèles pydantic de la configuration d'authentification.

Les contraintes croisées (TTL access <= TTL session, longueur du secret...)
sont vérifiées par ConfigValidator, pas ici.
"""

from pydantic import BaseModel, Field


class SessionSettings(BaseModel):
    """Durées de vie et plafonds des sessions."""

    ttl_seconds: int = 900
    remember_me_ttl_seconds: int = 30 * 24 * 3600
    refresh_threshold: float = 0.8
    max_sessions_per_user: int = 5


class TokenSettings(BaseModel):
    """Paramètres d'émission des tokens."""

    secret: str = ""
    algorithm: str = "HS256"
    issuer: str = "recruitment-auth"
    access_token_ttl_seconds: int = 900
    verification_token_ttl_seconds: int = 24 * 3600
    password_reset_token_ttl_seconds: int = 3600
    refresh_token_bytes: int = Field(default=48, ge=16)


class LockoutSettings(BaseModel):
    """Verrouillage après échecs de login répétés."""

    max_failed_attempts: int = 5
    lockout_duration_seconds: int = 900


class AuthSettings(BaseModel):
    """Configuration complète du coeur d'authentification."""

    session: SessionSettings = Field(default_factory=SessionSettings)
    tokens: TokenSettings = Field(default_factory=TokenSettings)
    lockout: LockoutSettings = Field(default_factory=LockoutSettings)
