"""
Auth - Errors

Taxonomie des erreurs du coeur d'authentification.

Chaque erreur porte un code stable et un status_code HTTP indicatif
que la couche frontière peut exposer tel quel.
"""

from typing import Optional


class AuthCoreError(Exception):
    """Base des erreurs du coeur d'authentification."""

    default_code: str = "AUTH_CORE_ERROR"
    default_status: int = 500

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        self.code = code or self.default_code
        self.status_code = status_code if status_code is not None else self.default_status
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        """Représentation frontière: {"error": {"code", "message"}}."""
        return {"error": {"code": self.code, "message": self.message}}


# ══════════════════════════════════════════════════════════════════════════════
# AUTHENTIFICATION
# ══════════════════════════════════════════════════════════════════════════════


class AuthenticationError(AuthCoreError):
    """Échec de login."""

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"

    # AUTH_001: même message pour email inconnu et mot de passe faux
    GENERIC_MESSAGE = "Invalid email or password"

    default_code = INVALID_CREDENTIALS
    default_status = 401

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after_seconds: Optional[int] = None,
    ):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, code, status_code)

    @classmethod
    def invalid_credentials(cls) -> "AuthenticationError":
        return cls(cls.GENERIC_MESSAGE, cls.INVALID_CREDENTIALS, 401)

    @classmethod
    def account_inactive(cls) -> "AuthenticationError":
        return cls("Account is deactivated", cls.ACCOUNT_INACTIVE, 401)

    @classmethod
    def account_locked(cls, retry_after_seconds: Optional[int] = None) -> "AuthenticationError":
        return cls(
            "Too many failed login attempts, try again later",
            cls.ACCOUNT_LOCKED,
            429,
            retry_after_seconds=retry_after_seconds,
        )


class SessionError(AuthCoreError):
    """Échec du cycle de vie de session (toujours 401)."""

    SESSION_INVALID = "SESSION_INVALID"
    SESSION_ID_MISSING = "SESSION_ID_MISSING"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    TOKEN_REFRESH_FAILED = "TOKEN_REFRESH_FAILED"

    default_code = SESSION_INVALID
    default_status = 401

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message, code or self.SESSION_INVALID, 401)


class AuthorizationError(AuthCoreError):
    """Permission refusée (403, distinct de l'authentification)."""

    PERMISSION_DENIED = "PERMISSION_DENIED"

    default_code = PERMISSION_DENIED
    default_status = 403

    def __init__(self, message: str, permission: Optional[str] = None):
        self.permission = permission
        super().__init__(message, self.PERMISSION_DENIED, 403)


# ══════════════════════════════════════════════════════════════════════════════
# TOKENS
# ══════════════════════════════════════════════════════════════════════════════


class TokenValidationError(AuthCoreError):
    """Token invalide (signature, format, type, issuer)."""

    default_code = "TOKEN_INVALID"
    default_status = 401

    def __init__(self, message: str, invariant: Optional[str] = None, code: Optional[str] = None):
        self.invariant = invariant
        super().__init__(message, code or self.default_code, 401)


class TokenExpiredError(TokenValidationError):
    """Token expiré."""

    def __init__(self, message: str = "Token expired"):
        super().__init__(message, invariant="TOKEN_001", code="TOKEN_EXPIRED")


# ══════════════════════════════════════════════════════════════════════════════
# RÔLES & PERMISSIONS
# ══════════════════════════════════════════════════════════════════════════════


class RoleManagementError(AuthCoreError):
    """Erreur de domaine sur rôles/permissions, levée avant toute écriture."""

    default_code = "ROLE_MANAGEMENT_ERROR"
    default_status = 400

    def __init__(self, message: str):
        super().__init__(message, self.default_code, self.default_status)


class InvalidNameError(RoleManagementError):
    default_code = "INVALID_NAME"
    default_status = 400


class RoleNotFoundError(RoleManagementError):
    default_code = "ROLE_NOT_FOUND"
    default_status = 404


class PermissionNotFoundError(RoleManagementError):
    default_code = "PERMISSION_NOT_FOUND"
    default_status = 404


class DuplicateNameError(RoleManagementError):
    default_code = "DUPLICATE_NAME"
    default_status = 409


class RoleInUseError(RoleManagementError):
    default_code = "ROLE_IN_USE"
    default_status = 400


class PermissionInUseError(RoleManagementError):
    default_code = "PERMISSION_IN_USE"
    default_status = 400
