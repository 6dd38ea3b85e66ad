"""
Authentication & Authorization

Invariants couverts:
- SESS_001-008 (Sessions)
- TOKEN_001-005 (Tokens)
- AUTH_001-005 (Authentification)
- RBAC_001-007 (Rôles et permissions)
"""

from .interfaces import (
    # Interfaces
    ISessionBackend,
    ISessionStore,
    ITokenIssuer,
    ICredentialVerifier,
    IUserDirectory,
    IRoleRepository,
    IPermissionStore,
    # Data classes
    AuthContext,
    EndReason,
    LoginResult,
    Permission,
    PermissionCheckResult,
    Role,
    Session,
    SessionState,
    SessionStats,
    SessionValidationResult,
    TokenClaims,
    TokenPair,
    TokenPurpose,
    UserRecord,
    VerificationClaims,
    SESSION_TRANSITIONS,
    can_transition,
)
from .errors import (
    AuthCoreError,
    AuthenticationError,
    AuthorizationError,
    DuplicateNameError,
    InvalidNameError,
    PermissionInUseError,
    PermissionNotFoundError,
    RoleInUseError,
    RoleManagementError,
    RoleNotFoundError,
    SessionError,
    TokenExpiredError,
    TokenValidationError,
)
from .token_issuer import TokenIssuer
from .session_backend import InMemorySessionBackend
from .session_store import SessionStore
from .lockout import LockStatus, LoginLockout
from .credentials import InMemoryUserDirectory, PasswordHasher
from .role_repository import InMemoryRoleRepository
from .permission_store import (
    PermissionChangeAction,
    PermissionStore,
    validate_permission_name,
    validate_role_name,
)
from .authentication_service import AuthenticationService
from .request_gate import RequestGate, extract_credentials

__all__ = [
    # Interfaces
    "ISessionBackend",
    "ISessionStore",
    "ITokenIssuer",
    "ICredentialVerifier",
    "IUserDirectory",
    "IRoleRepository",
    "IPermissionStore",
    # Data classes
    "AuthContext",
    "EndReason",
    "LockStatus",
    "LoginResult",
    "Permission",
    "PermissionChangeAction",
    "PermissionCheckResult",
    "Role",
    "Session",
    "SessionState",
    "SessionStats",
    "SessionValidationResult",
    "TokenClaims",
    "TokenPair",
    "TokenPurpose",
    "UserRecord",
    "VerificationClaims",
    "SESSION_TRANSITIONS",
    "can_transition",
    # Implementations
    "AuthenticationService",
    "InMemoryRoleRepository",
    "InMemorySessionBackend",
    "InMemoryUserDirectory",
    "LoginLockout",
    "PasswordHasher",
    "PermissionStore",
    "RequestGate",
    "SessionStore",
    "TokenIssuer",
    "extract_credentials",
    "validate_permission_name",
    "validate_role_name",
    # Exceptions
    "AuthCoreError",
    "AuthenticationError",
    "AuthorizationError",
    "DuplicateNameError",
    "InvalidNameError",
    "PermissionInUseError",
    "PermissionNotFoundError",
    "RoleInUseError",
    "RoleManagementError",
    "RoleNotFoundError",
    "SessionError",
    "TokenExpiredError",
    "TokenValidationError",
]
