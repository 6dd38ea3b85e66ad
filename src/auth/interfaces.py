"""
Auth - Interfaces

Définit les contrats pour l'authentification et l'autorisation.
Toute implémentation DOIT respecter ces interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncContextManager, Dict, FrozenSet, List, Optional, Tuple


# ══════════════════════════════════════════════════════════════════════════════
# SESSIONS
# ══════════════════════════════════════════════════════════════════════════════


class SessionState(Enum):
    """
    États d'une session.

    ACTIVE → NEAR_EXPIRY → REFRESHED → ACTIVE ...
    EXPIRED et REVOKED sont terminaux (SESS_007).
    """

    ACTIVE = "active"
    NEAR_EXPIRY = "near_expiry"
    REFRESHED = "refreshed"
    EXPIRED = "expired"
    REVOKED = "revoked"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.EXPIRED, SessionState.REVOKED)


SESSION_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.ACTIVE: frozenset(
        {SessionState.NEAR_EXPIRY, SessionState.REFRESHED, SessionState.EXPIRED, SessionState.REVOKED}
    ),
    SessionState.NEAR_EXPIRY: frozenset({SessionState.REFRESHED, SessionState.EXPIRED, SessionState.REVOKED}),
    SessionState.REFRESHED: frozenset({SessionState.ACTIVE, SessionState.REVOKED}),
    SessionState.EXPIRED: frozenset(),
    SessionState.REVOKED: frozenset(),
}


def can_transition(current: SessionState, target: SessionState) -> bool:
    """Vérifie qu'une transition d'état est autorisée."""
    return target in SESSION_TRANSITIONS[current]


class EndReason:
    """Motifs de fin de session."""

    LOGOUT = "logout"
    REVOKED = "revoked"
    EXPIRED = "expired"
    EVICTED = "evicted"


@dataclass
class Session:
    """
    Session utilisateur côté serveur.

    Attributes:
        session_id: Identifiant opaque unique
        user_id: Utilisateur propriétaire (référence faible)
        refresh_token_hash: Empreinte HMAC du refresh token courant (TOKEN_003)
        created_at: Horodatage création
        last_activity: Dernière rotation (ou création)
        expires_at: last_activity + ttl_seconds (SESS_002)
        ttl_seconds: TTL fixé à la création (standard ou remember me)
        is_active: False après logout, révocation ou expiration
        metadata: remember_me, login_method, role...
        rotation_count: Nombre de refresh réussis
        ended_at: Horodatage de fin
        end_reason: logout / revoked / expired / evicted
        refresh_token: Valeur en clair, renseignée uniquement sur l'instance
            retournée à la création, jamais stockée
    """

    session_id: str
    user_id: str
    refresh_token_hash: str
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    ttl_seconds: int
    is_active: bool = True
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    rotation_count: int = 0
    ended_at: Optional[datetime] = None
    end_reason: Optional[str] = None
    refresh_token: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def remember_me(self) -> bool:
        return bool(self.metadata.get("remember_me"))

    def is_expired(self, now: datetime) -> bool:
        """SESS_003: expirée dès que now > expires_at."""
        return now > self.expires_at

    def time_until_expiry(self, now: datetime) -> float:
        """Secondes restantes (négatif si expirée)."""
        return (self.expires_at - now).total_seconds()

    def needs_refresh(self, now: datetime, refresh_threshold: float) -> bool:
        """True quand la part restante du TTL passe sous (1 - threshold)."""
        return self.time_until_expiry(now) < self.ttl_seconds * (1 - refresh_threshold)

    def state(self, now: datetime, refresh_threshold: float) -> SessionState:
        """État courant de la session à l'instant now."""
        if not self.is_active:
            if self.end_reason == EndReason.EXPIRED:
                return SessionState.EXPIRED
            return SessionState.REVOKED
        if self.is_expired(now):
            return SessionState.EXPIRED
        if self.needs_refresh(now, refresh_threshold):
            return SessionState.NEAR_EXPIRY
        return SessionState.ACTIVE


@dataclass
class SessionValidationResult:
    """Résultat de validate_session."""

    is_valid: bool
    session: Optional[Session] = None
    needs_refresh: bool = False
    error: Optional[str] = None
    time_until_expiry: Optional[float] = None


@dataclass
class SessionStats:
    """Introspection en lecture seule du store."""

    total_sessions: int
    sessions_per_user: Dict[str, int]
    average_session_duration: float
    sessions_created_last_hour: int
    sessions_ended_last_hour: int


# ══════════════════════════════════════════════════════════════════════════════
# TOKENS
# ══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TokenPair:
    """
    Paire de tokens retournée au client.

    Attributes:
        access_token: JWT court
        refresh_token: Valeur opaque liée 1:1 à une session
        expires_in: Durée de vie de l'access token en secondes
        access_token_expires_at: Expiration absolue de l'access token
        session_id: Session associée
    """

    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    expires_in: int
    access_token_expires_at: datetime
    session_id: str
    token_type: str = "Bearer"


@dataclass(frozen=True)
class TokenClaims:
    """
    Claims extraits et validés d'un access token.

    Attributes:
        user_id: Identifiant utilisateur (sub claim)
        role: Nom du rôle au moment de l'émission (None si aucun rôle)
        session_id: Session associée (sid claim)
        issued_at: Date émission
        expires_at: Date expiration
        token_id: Identifiant unique du token (jti claim)
    """

    user_id: str
    role: Optional[str]
    session_id: Optional[str]
    issued_at: datetime
    expires_at: datetime
    token_id: str

    def __post_init__(self):
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be after issued_at")


class TokenPurpose(Enum):
    """Usages des tokens de vérification (TOKEN_005)."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class VerificationClaims:
    """Claims d'un token de vérification d'email ou de reset."""

    user_id: str
    email: str
    purpose: TokenPurpose
    issued_at: datetime
    expires_at: datetime
    token_id: str


# ══════════════════════════════════════════════════════════════════════════════
# UTILISATEURS / RÔLES / PERMISSIONS
# ══════════════════════════════════════════════════════════════════════════════


@dataclass
class UserRecord:
    """Utilisateur tel que vu par le coeur d'authentification."""

    user_id: str
    email: str
    password_hash: str = field(repr=False)
    role_id: Optional[str] = None
    role_name: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class LoginResult:
    """Résultat d'un login réussi."""

    tokens: TokenPair
    session_id: str
    user_id: str
    role: Optional[str]


@dataclass(frozen=True)
class Role:
    role_id: str
    name: str
    display_name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Permission:
    permission_id: str
    name: str
    description: Optional[str] = None


@dataclass
class PermissionCheckResult:
    """
    Résultat d'une vérification multiple.

    Attributes:
        has_permission: Résultat global (ET pour all, OU pour any)
        checked: Permissions demandées
        granted: Permissions effectivement détenues
        missing: Permissions absentes
    """

    has_permission: bool
    checked: List[str] = field(default_factory=list)
    granted: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AuthContext:
    """Identité résolue par le RequestGate pour une requête."""

    claims: TokenClaims
    session: Session
    needs_refresh: bool = False
    correlation_id: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.claims.user_id


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class ISessionBackend(ABC):
    """
    Stockage des sessions (mémoire, Redis, SQL...).

    Les implémentations retournent des copies: aucune mutation externe
    ne doit atteindre l'état stocké.
    """

    @abstractmethod
    async def save(self, session: Session) -> None:
        """Insère ou remplace une session et met à jour les index."""
        pass

    @abstractmethod
    async def find_by_id(self, session_id: str) -> Optional[Session]:
        pass

    @abstractmethod
    async def find_by_refresh_hash(self, refresh_token_hash: str) -> Optional[Session]:
        """Session ACTIVE dont le refresh token courant a cette empreinte."""
        pass

    @abstractmethod
    async def find_by_user(self, user_id: str) -> List[Session]:
        """Toutes les sessions connues d'un utilisateur (actives ou non)."""
        pass

    @abstractmethod
    async def all_sessions(self) -> List[Session]:
        pass

    @abstractmethod
    async def rotate_refresh_hash(
        self,
        session_id: str,
        expected_hash: str,
        new_hash: str,
        *,
        last_activity: datetime,
        expires_at: datetime,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[Session]:
        """
        Compare-and-swap atomique du refresh token (SESS_006).

        Returns:
            Session mise à jour, ou None si expected_hash n'est plus
            le hash courant ou si la session est inactive
        """
        pass

    @abstractmethod
    async def deactivate(self, session_id: str, reason: str, ended_at: datetime) -> bool:
        """
        Passe la session inactive et la retire des index actifs.

        Returns:
            True si une transition a eu lieu, False si absente ou déjà inactive
        """
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Supprime définitivement l'enregistrement."""
        pass


class ISessionStore(ABC):
    """
    Registre autoritaire des sessions.

    Invariants:
        SESS_001: Un seul refresh token valide par session
        SESS_003: Session expirée jamais valide
        SESS_004: Invalidation idempotente
        SESS_005: Aucune fenêtre de grâce sur rotation
        SESS_006: Un seul gagnant en rotation concurrente
    """

    @abstractmethod
    async def create_session(
        self,
        user_id: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Session:
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[Session]:
        pass

    @abstractmethod
    async def validate_session(self, session_id: str) -> SessionValidationResult:
        pass

    @abstractmethod
    async def refresh_tokens(
        self,
        refresh_token: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> TokenPair:
        """
        Raises:
            SessionError: INVALID_REFRESH_TOKEN ou TOKEN_REFRESH_FAILED
        """
        pass

    @abstractmethod
    async def invalidate_session(self, session_id: str, reason: str = EndReason.REVOKED) -> None:
        pass

    @abstractmethod
    async def invalidate_user_sessions(self, user_id: str, reason: str = EndReason.REVOKED) -> int:
        pass

    @abstractmethod
    async def get_stats(self) -> SessionStats:
        pass


class ITokenIssuer(ABC):
    """
    Émission et vérification des tokens.

    Invariants:
        TOKEN_001: Claims jamais utilisés après expiration
        TOKEN_002: Refresh token aléatoire, sans donnée utilisateur
        TOKEN_004: Access token auto-descriptif
    """

    @abstractmethod
    def issue_access_token(
        self, user_id: str, role: Optional[str], session_id: Optional[str] = None
    ) -> Tuple[str, datetime]:
        """
        Returns:
            (token, expires_at)
        """
        pass

    @abstractmethod
    def issue_refresh_token(self) -> str:
        pass

    @abstractmethod
    def verify_access_token(self, token: str) -> TokenClaims:
        """
        Raises:
            TokenExpiredError: Token expiré
            TokenValidationError: Token invalide
        """
        pass


class ICredentialVerifier(ABC):
    """Vérification email + mot de passe (hash opaque)."""

    @abstractmethod
    async def verify(self, email: str, password: str) -> Optional[UserRecord]:
        """
        Returns:
            UserRecord si email connu ET mot de passe correct, None sinon
        """
        pass


class IUserDirectory(ABC):
    """Lecture utilisateur → rôle."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def get_role_id(self, user_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def get_role_name(self, user_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def count_users_with_role(self, role_id: str) -> int:
        pass


class IRoleRepository(ABC):
    """
    Stockage des rôles, permissions et de la relation rôle↔permission.

    La relation est un ensemble de paires (role_id, permission_id):
    aucun doublon possible (RBAC_004).
    """

    @abstractmethod
    def lock_role(self, role_id: str) -> AsyncContextManager[None]:
        """Verrou d'écriture par rôle (équivalent verrou de ligne)."""
        pass

    @abstractmethod
    async def get_role(self, role_id: str) -> Optional[Role]:
        pass

    @abstractmethod
    async def get_role_by_name(self, name: str) -> Optional[Role]:
        pass

    @abstractmethod
    async def list_roles(self) -> List[Role]:
        pass

    @abstractmethod
    async def add_role(self, role: Role) -> None:
        pass

    @abstractmethod
    async def delete_role(self, role_id: str) -> bool:
        pass

    @abstractmethod
    async def get_permission(self, permission_id: str) -> Optional[Permission]:
        pass

    @abstractmethod
    async def get_permission_by_name(self, name: str) -> Optional[Permission]:
        pass

    @abstractmethod
    async def list_permissions(self) -> List[Permission]:
        pass

    @abstractmethod
    async def add_permission(self, permission: Permission) -> None:
        pass

    @abstractmethod
    async def delete_permission(self, permission_id: str) -> bool:
        pass

    @abstractmethod
    async def get_role_permission_ids(self, role_id: str) -> FrozenSet[str]:
        pass

    @abstractmethod
    async def add_role_permissions(self, role_id: str, permission_ids: List[str]) -> List[str]:
        """Ajoute les paires absentes, retourne les ids réellement ajoutés."""
        pass

    @abstractmethod
    async def remove_role_permissions(self, role_id: str, permission_ids: List[str]) -> List[str]:
        """Retire les paires présentes, retourne les ids réellement retirés."""
        pass

    @abstractmethod
    async def set_role_permissions(self, role_id: str, permission_ids: List[str]) -> None:
        """Remplace l'ensemble en une seule étape (RBAC_005)."""
        pass

    @abstractmethod
    async def count_roles_with_permission(self, permission_id: str) -> int:
        pass


class IPermissionStore(ABC):
    """
    Couche prédicats d'autorisation.

    Invariants:
        RBAC_001: Sans rôle ou sans permission = False, jamais une erreur
        RBAC_002: Évaluation sur l'état courant, sans cache
        RBAC_003: Validation avant écriture
        RBAC_005: Remplacement atomique
    """

    @abstractmethod
    async def check_user_permission(self, user_id: str, permission_name: str) -> bool:
        pass

    @abstractmethod
    async def check_user_all_permissions(self, user_id: str, permission_names: List[str]) -> PermissionCheckResult:
        pass

    @abstractmethod
    async def check_user_any_permission(self, user_id: str, permission_names: List[str]) -> PermissionCheckResult:
        pass

    @abstractmethod
    async def require_permission(self, user_id: str, permission_name: str) -> None:
        """
        Raises:
            AuthorizationError: Si la permission n'est pas détenue
        """
        pass

    @abstractmethod
    async def assign_permissions_to_role(self, role_id: str, permission_ids: List[str]) -> List[str]:
        pass

    @abstractmethod
    async def replace_role_permissions(self, role_id: str, permission_ids: List[str]) -> List[Permission]:
        pass

    @abstractmethod
    async def get_permissions_by_role_id(self, role_id: str) -> List[Permission]:
        pass
