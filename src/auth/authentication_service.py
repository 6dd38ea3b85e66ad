"""
Auth - Authentication Service

Orchestration login / refresh / logout / révocation.

Invariants:
    AUTH_001: Erreur générique identique pour utilisateur inconnu et mot de passe faux
    AUTH_002: Chaque tentative de login auditée (succès ou échec)
    AUTH_003: Échec audit JAMAIS bloquant pour le flux d'authentification
    AUTH_004: 5 échecs login = verrouillage temporaire 15 minutes
    AUTH_005: Seul AuthenticationService crée des sessions
"""

import math
from typing import Any, Dict, Optional

from ..audit.interfaces import AuditAction, IAuditRecorder
from ..logging import StructuredLogger
from .errors import AuthenticationError, SessionError
from .interfaces import (
    EndReason,
    ICredentialVerifier,
    ISessionStore,
    ITokenIssuer,
    LoginResult,
    SessionValidationResult,
    TokenPair,
)
from .lockout import LoginLockout


class AuthenticationService:
    """
    Point d'entrée des opérations d'authentification visibles par
    l'utilisateur.

    Example:
        service = AuthenticationService(store, issuer, directory, recorder)
        result = await service.login("alice@example.com", "pass-1234", remember_me=True)
        pair = await service.refresh(result.tokens.refresh_token)
        await service.logout(result.session_id)
    """

    def __init__(
        self,
        session_store: ISessionStore,
        token_issuer: ITokenIssuer,
        credential_verifier: ICredentialVerifier,
        audit_recorder: IAuditRecorder,
        *,
        lockout: Optional[LoginLockout] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            session_store: Registre des sessions
            token_issuer: Émetteur des access tokens
            credential_verifier: Vérification email + mot de passe
            audit_recorder: Journal d'audit (best effort)
            lockout: Verrouillage après échecs (désactivé si None)
            logger: Logger structuré
        """
        self._sessions = session_store
        self._issuer = token_issuer
        self._credentials = credential_verifier
        self._audit = audit_recorder
        self._lockout = lockout
        self._logger = logger or StructuredLogger("auth.service")

    # ══════════════════════════════════════════════════════════════════════════
    # LOGIN
    # ══════════════════════════════════════════════════════════════════════════

    async def login(
        self,
        email: str,
        password: str,
        remember_me: bool = False,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginResult:
        """
        Vérifie les identifiants, crée la session et émet la paire de tokens.

        Processus:
            1. Refus immédiat si l'email est verrouillé (AUTH_004)
            2. Vérification des identifiants (erreur générique, AUTH_001)
            3. Refus si compte désactivé
            4. Création de session (AUTH_005) puis access token
            5. Audit de la tentative (AUTH_002), non bloquant (AUTH_003)

        Raises:
            AuthenticationError: INVALID_CREDENTIALS, ACCOUNT_INACTIVE ou ACCOUNT_LOCKED
        """
        context = {"ip_address": ip_address, "user_agent": user_agent}

        if self._lockout is not None and self._lockout.is_locked(email):
            remaining = self._lockout.get_lock_remaining_time(email)
            retry_after = math.ceil(remaining.total_seconds()) if remaining else None
            self._logger.warn("Login refused: account locked", ip_address=ip_address)
            await self._record(
                AuditAction.LOGIN_FAILED, None, False, error_message=AuthenticationError.ACCOUNT_LOCKED, **context
            )
            raise AuthenticationError.account_locked(retry_after)

        user = await self._credentials.verify(email, password)
        if user is None:
            if self._lockout is not None:
                self._lockout.record_failure(email)
            self._logger.warn("Login failed: invalid credentials", ip_address=ip_address)
            await self._record(
                AuditAction.LOGIN_FAILED, None, False, error_message=AuthenticationError.INVALID_CREDENTIALS, **context
            )
            raise AuthenticationError.invalid_credentials()

        if not user.is_active:
            self._logger.warn("Login failed: account inactive", user_id=user.user_id)
            await self._record(
                AuditAction.LOGIN_FAILED, user.user_id, False, error_message=AuthenticationError.ACCOUNT_INACTIVE, **context
            )
            raise AuthenticationError.account_inactive()

        if self._lockout is not None:
            self._lockout.reset(email)

        session = await self._sessions.create_session(
            user.user_id,
            user_agent=user_agent,
            ip_address=ip_address,
            metadata={"remember_me": remember_me, "login_method": "password", "role": user.role_name},
        )

        try:
            access_token, expires_at = self._issuer.issue_access_token(user.user_id, user.role_name, session.session_id)
        except Exception:
            await self._sessions.invalidate_session(session.session_id, reason=EndReason.REVOKED)
            raise

        tokens = TokenPair(
            access_token=access_token,
            refresh_token=session.refresh_token,
            expires_in=math.ceil((expires_at - session.created_at).total_seconds()),
            access_token_expires_at=expires_at,
            session_id=session.session_id,
        )

        self._logger.info("Login succeeded", user_id=user.user_id, remember_me=remember_me)
        await self._record(AuditAction.LOGIN, user.user_id, True, metadata={"remember_me": remember_me}, **context)

        return LoginResult(tokens=tokens, session_id=session.session_id, user_id=user.user_id, role=user.role_name)

    # ══════════════════════════════════════════════════════════════════════════
    # REFRESH / LOGOUT
    # ══════════════════════════════════════════════════════════════════════════

    async def refresh(
        self, refresh_token: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> TokenPair:
        """
        Fait tourner le refresh token.

        Raises:
            SessionError: INVALID_REFRESH_TOKEN ou TOKEN_REFRESH_FAILED
        """
        context = {"ip_address": ip_address, "user_agent": user_agent}
        try:
            tokens = await self._sessions.refresh_tokens(refresh_token, user_agent=user_agent, ip_address=ip_address)
        except SessionError as e:
            await self._record(AuditAction.TOKEN_REFRESH_FAILED, None, False, error_message=e.code, **context)
            raise

        session = await self._sessions.get_session(tokens.session_id)
        await self._record(AuditAction.TOKEN_REFRESH, session.user_id if session else None, True, **context)
        return tokens

    async def logout(
        self, session_id: str, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> None:
        """
        Termine la session; idempotent.

        Raises:
            SessionError: SESSION_ID_MISSING
        """
        if not session_id:
            raise SessionError("Session ID required", SessionError.SESSION_ID_MISSING)

        session = await self._sessions.get_session(session_id)
        await self._sessions.invalidate_session(session_id, reason=EndReason.LOGOUT)

        user_id = session.user_id if session else None
        self._logger.info("Logout", user_id=user_id)
        await self._record(AuditAction.LOGOUT, user_id, True, ip_address=ip_address, user_agent=user_agent)

    async def current_session(self, session_id: str) -> SessionValidationResult:
        """
        Raises:
            SessionError: SESSION_ID_MISSING ou SESSION_INVALID
        """
        if not session_id:
            raise SessionError("Session ID required", SessionError.SESSION_ID_MISSING)

        result = await self._sessions.validate_session(session_id)
        if not result.is_valid:
            raise SessionError("Invalid or expired session", SessionError.SESSION_INVALID)
        return result

    # ══════════════════════════════════════════════════════════════════════════
    # RÉVOCATION
    # ══════════════════════════════════════════════════════════════════════════

    async def revoke_session(self, session_id: str, actor_id: Optional[str] = None) -> None:
        """
        Révoque une session (action utilisateur ou admin); idempotent.

        Raises:
            SessionError: SESSION_ID_MISSING
        """
        if not session_id:
            raise SessionError("Session ID required", SessionError.SESSION_ID_MISSING)

        session = await self._sessions.get_session(session_id)
        await self._sessions.invalidate_session(session_id, reason=EndReason.REVOKED)
        if session is not None and session.is_active:
            await self._record(AuditAction.SESSION_REVOKED, session.user_id, True, metadata={"actor_id": actor_id})

    async def revoke_user_sessions(self, user_id: str, actor_id: Optional[str] = None) -> int:
        """
        Déconnexion de toutes les sessions d'un utilisateur.

        Returns:
            Nombre de sessions révoquées
        """
        count = await self._sessions.invalidate_user_sessions(user_id, reason=EndReason.REVOKED)
        await self._record(
            AuditAction.SESSION_REVOKED, user_id, True, metadata={"actor_id": actor_id, "count": count, "scope": "all"}
        )
        return count

    # ══════════════════════════════════════════════════════════════════════════
    # AUDIT
    # ══════════════════════════════════════════════════════════════════════════

    async def _record(
        self,
        action: AuditAction,
        user_id: Optional[str],
        success: bool,
        error_message: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """AUTH_003: Toute erreur du recorder est journalisée puis absorbée."""
        try:
            event = self._audit.build_event(
                action,
                user_id=user_id,
                success=success,
                error_message=error_message,
                ip_address=ip_address,
                user_agent=user_agent,
                metadata=metadata,
            )
            await self._audit.record(event)
        except Exception as e:
            self._logger.error("Audit recording failed", action=action.value, error=str(e))
