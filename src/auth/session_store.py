"""
Auth - Session Store

Registre autoritaire des sessions: création, validation, rotation
du refresh token, révocation et purge.

Invariants:
    SESS_001: Une seule valeur de refresh token valide par session à tout instant
    SESS_002: expires_at dérivé de last_activity + TTL fixe (plus long si remember me)
    SESS_003: Session expirée JAMAIS valide, quel que soit is_active
    SESS_004: Invalidation idempotente, jamais d'erreur sur session absente
    SESS_005: Refresh token à usage unique par rotation, aucune fenêtre de grâce
    SESS_006: Rotation concurrente: un seul gagnant
    SESS_007: EXPIRED et REVOKED sont terminaux
    SESS_008: Nombre de sessions actives par utilisateur plafonné
"""

import math
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..core.clock import Clock, utc_now
from ..core.interfaces import ICryptoProvider
from ..core.settings import SessionSettings
from ..logging import StructuredLogger
from .errors import SessionError
from .interfaces import (
    EndReason,
    ISessionBackend,
    ISessionStore,
    ITokenIssuer,
    IUserDirectory,
    Session,
    SessionState,
    SessionStats,
    SessionValidationResult,
    TokenPair,
    can_transition,
)


class SessionStore(ISessionStore):
    """
    Gestionnaire de sessions utilisateur.

    Le stockage est délégué à un ISessionBackend injecté; les refresh
    tokens n'y sont connus que par leur empreinte HMAC.

    Aucun balayage automatique: planifier cleanup_expired_sessions() côté
    appelant (tâche périodique), sinon les sessions terminées s'accumulent.

    Example:
        store = SessionStore(InMemorySessionBackend(), issuer, crypto, settings.session)
        session = await store.create_session("u-1", metadata={"remember_me": True})
        pair = await store.refresh_tokens(session.refresh_token)
    """

    def __init__(
        self,
        backend: ISessionBackend,
        token_issuer: ITokenIssuer,
        crypto: ICryptoProvider,
        settings: SessionSettings,
        *,
        user_directory: Optional[IUserDirectory] = None,
        logger: Optional[StructuredLogger] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            backend: Stockage des sessions
            token_issuer: Émetteur des access/refresh tokens
            crypto: Empreinte HMAC des refresh tokens
            settings: Section session de la configuration
            user_directory: Résolution du rôle courant au refresh
            logger: Logger structuré
            clock: Horloge injectable (UTC)
        """
        self._backend = backend
        self._issuer = token_issuer
        self._crypto = crypto
        self._settings = settings
        self._users = user_directory
        self._logger = logger or StructuredLogger("auth.session_store")
        self._clock = clock or utc_now

    @property
    def settings(self) -> SessionSettings:
        return self._settings

    def _ttl_for(self, metadata: Dict[str, Any]) -> int:
        """SESS_002: TTL long si remember me."""
        if metadata.get("remember_me"):
            return self._settings.remember_me_ttl_seconds
        return self._settings.ttl_seconds

    # ══════════════════════════════════════════════════════════════════════════
    # CRÉATION
    # ══════════════════════════════════════════════════════════════════════════

    async def create_session(
        self,
        user_id: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Session:
        """
        Crée une session active et son premier refresh token.

        Si l'utilisateur a déjà max_sessions_per_user sessions actives,
        les plus anciennes sont révoquées (motif "evicted").

        Returns:
            Session avec refresh_token en clair (seule occurrence)

        Raises:
            ValueError: Si user_id vide
        """
        if not user_id:
            raise ValueError("user_id est obligatoire")

        metadata = dict(metadata or {})
        metadata["remember_me"] = bool(metadata.get("remember_me"))
        ttl = self._ttl_for(metadata)
        now = self._clock()

        await self._enforce_session_cap(user_id)

        refresh_token = self._issuer.issue_refresh_token()
        session = Session(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            refresh_token_hash=self._crypto.digest(refresh_token),
            created_at=now,
            last_activity=now,
            expires_at=now + timedelta(seconds=ttl),
            ttl_seconds=ttl,
            is_active=True,
            user_agent=user_agent,
            ip_address=ip_address,
            metadata=metadata,
        )
        await self._backend.save(session)

        self._logger.info(
            "Session created",
            user_id=user_id,
            ttl_seconds=ttl,
            remember_me=metadata["remember_me"],
            ip_address=ip_address,
        )

        session.refresh_token = refresh_token
        return session

    async def _enforce_session_cap(self, user_id: str) -> None:
        """SESS_008: Libère une place en révoquant les sessions les plus anciennes."""
        active = await self.get_user_sessions(user_id)
        overflow = len(active) - self._settings.max_sessions_per_user + 1
        if overflow <= 0:
            return

        oldest_first = sorted(active, key=lambda s: s.created_at)
        for session in oldest_first[:overflow]:
            await self.invalidate_session(session.session_id, reason=EndReason.EVICTED)
            self._logger.warn("Session evicted, per-user cap reached", user_id=user_id)

    # ══════════════════════════════════════════════════════════════════════════
    # VALIDATION
    # ══════════════════════════════════════════════════════════════════════════

    async def validate_session(self, session_id: str) -> SessionValidationResult:
        """
        Vérifie qu'une session est utilisable.

        N'allonge pas la session: seul refresh_tokens déplace expires_at.
        Une session active trouvée expirée passe à EXPIRED (SESS_003).
        """
        if not session_id:
            return SessionValidationResult(is_valid=False, error=SessionError.SESSION_ID_MISSING)

        session = await self._backend.find_by_id(session_id)
        if session is None:
            return SessionValidationResult(is_valid=False, error="SESSION_NOT_FOUND")

        if not session.is_active:
            return SessionValidationResult(is_valid=False, session=session, error="SESSION_INACTIVE")

        now = self._clock()
        if session.is_expired(now):
            await self._expire(session)
            expired = await self._backend.find_by_id(session_id)
            return SessionValidationResult(is_valid=False, session=expired or session, error="SESSION_EXPIRED")

        return SessionValidationResult(
            is_valid=True,
            session=session,
            needs_refresh=session.needs_refresh(now, self._settings.refresh_threshold),
            time_until_expiry=session.time_until_expiry(now),
        )

    async def _expire(self, session: Session) -> None:
        if await self._backend.deactivate(session.session_id, EndReason.EXPIRED, self._clock()):
            self._logger.info("Session expired", user_id=session.user_id)

    # ══════════════════════════════════════════════════════════════════════════
    # ROTATION
    # ══════════════════════════════════════════════════════════════════════════

    async def refresh_tokens(
        self,
        refresh_token: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> TokenPair:
        """
        Fait tourner le refresh token et émet un nouvel access token.

        Processus:
            1. Recherche la session active par empreinte du token
            2. Rejette si expirée (passe à EXPIRED)
            3. Émet le nouvel access token (rôle relu depuis l'annuaire)
            4. Compare-and-swap de l'empreinte dans le backend (SESS_006)

        L'ancien token est inutilisable dès le swap (SESS_005).

        Raises:
            SessionError: INVALID_REFRESH_TOKEN (token inconnu, session
                inactive ou expirée, course perdue) ou TOKEN_REFRESH_FAILED
        """
        if not refresh_token:
            raise SessionError("Invalid refresh token", SessionError.INVALID_REFRESH_TOKEN)

        current_hash = self._crypto.digest(refresh_token)
        session = await self._backend.find_by_refresh_hash(current_hash)
        if session is None:
            self._logger.warn("Refresh rejected: unknown or rotated token")
            raise SessionError("Invalid refresh token", SessionError.INVALID_REFRESH_TOKEN)

        now = self._clock()
        state = session.state(now, self._settings.refresh_threshold)
        if state == SessionState.EXPIRED:
            await self._expire(session)
            raise SessionError("Invalid refresh token", SessionError.INVALID_REFRESH_TOKEN)
        if not can_transition(state, SessionState.REFRESHED):
            raise SessionError("Invalid refresh token", SessionError.INVALID_REFRESH_TOKEN)

        try:
            role = await self._resolve_role(session)
            access_token, access_expires_at = self._issuer.issue_access_token(
                session.user_id, role, session.session_id
            )
            new_refresh_token = self._issuer.issue_refresh_token()
        except SessionError:
            raise
        except Exception as e:
            self._logger.error("Token refresh failed", user_id=session.user_id, error=str(e))
            raise SessionError("Token refresh failed", SessionError.TOKEN_REFRESH_FAILED) from e

        updated = await self._backend.rotate_refresh_hash(
            session.session_id,
            current_hash,
            self._crypto.digest(new_refresh_token),
            last_activity=now,
            expires_at=now + timedelta(seconds=session.ttl_seconds),
            user_agent=user_agent,
            ip_address=ip_address,
        )
        if updated is None:
            self._logger.warn("Refresh rejected: concurrent rotation lost", user_id=session.user_id)
            raise SessionError("Invalid refresh token", SessionError.INVALID_REFRESH_TOKEN)

        self._logger.info(
            "Session refreshed",
            user_id=updated.user_id,
            from_state=state.value,
            rotation_count=updated.rotation_count,
        )

        return TokenPair(
            access_token=access_token,
            refresh_token=new_refresh_token,
            expires_in=math.ceil((access_expires_at - now).total_seconds()),
            access_token_expires_at=access_expires_at,
            session_id=updated.session_id,
        )

    async def _resolve_role(self, session: Session) -> Optional[str]:
        """Rôle courant de l'utilisateur, sinon celui enregistré au login."""
        if self._users is None:
            return session.metadata.get("role")

        user = await self._users.get_user(session.user_id)
        if user is None or not user.is_active:
            await self.invalidate_session(session.session_id, reason=EndReason.REVOKED)
            raise SessionError("Invalid refresh token", SessionError.INVALID_REFRESH_TOKEN)
        return await self._users.get_role_name(session.user_id)

    # ══════════════════════════════════════════════════════════════════════════
    # RÉVOCATION
    # ══════════════════════════════════════════════════════════════════════════

    async def invalidate_session(self, session_id: str, reason: str = EndReason.REVOKED) -> None:
        """
        SESS_004: Passe la session inactive; no-op si absente ou déjà inactive.
        """
        if not session_id:
            return

        if await self._backend.deactivate(session_id, reason, self._clock()):
            self._logger.info("Session invalidated", reason=reason)

    async def invalidate_user_sessions(self, user_id: str, reason: str = EndReason.REVOKED) -> int:
        """
        Invalide toutes les sessions actives d'un utilisateur.

        Returns:
            Nombre de sessions effectivement invalidées
        """
        count = 0
        for session in await self._backend.find_by_user(user_id):
            if session.is_active and await self._backend.deactivate(session.session_id, reason, self._clock()):
                count += 1

        if count:
            self._logger.info("User sessions invalidated", user_id=user_id, count=count, reason=reason)
        return count

    # ══════════════════════════════════════════════════════════════════════════
    # LECTURE / MAINTENANCE
    # ══════════════════════════════════════════════════════════════════════════

    async def get_session(self, session_id: str) -> Optional[Session]:
        """Récupère session par ID (copie, sans refresh token)."""
        if not session_id:
            return None
        return await self._backend.find_by_id(session_id)

    async def get_user_sessions(self, user_id: str, include_inactive: bool = False) -> List[Session]:
        """
        Sessions d'un utilisateur, plus récentes en premier.

        Args:
            user_id: Identifiant utilisateur
            include_inactive: Inclure sessions terminées ou expirées
        """
        now = self._clock()
        sessions = [
            s
            for s in await self._backend.find_by_user(user_id)
            if include_inactive or (s.is_active and not s.is_expired(now))
        ]
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions

    async def get_state(self, session_id: str) -> Optional[SessionState]:
        """État courant de la session, None si inconnue."""
        session = await self.get_session(session_id)
        if session is None:
            return None
        return session.state(self._clock(), self._settings.refresh_threshold)

    async def get_stats(self) -> SessionStats:
        """Introspection en lecture seule."""
        now = self._clock()
        one_hour_ago = now - timedelta(hours=1)
        sessions = await self._backend.all_sessions()

        active = [s for s in sessions if s.is_active and not s.is_expired(now)]
        per_user: Dict[str, int] = {}
        for session in active:
            per_user[session.user_id] = per_user.get(session.user_id, 0) + 1

        average = 0.0
        if active:
            average = sum((now - s.created_at).total_seconds() for s in active) / len(active)

        return SessionStats(
            total_sessions=len(active),
            sessions_per_user=per_user,
            average_session_duration=average,
            sessions_created_last_hour=sum(1 for s in sessions if s.created_at >= one_hour_ago),
            sessions_ended_last_hour=sum(1 for s in sessions if s.ended_at is not None and s.ended_at >= one_hour_ago),
        )

    async def cleanup_expired_sessions(self) -> int:
        """
        Passe les sessions échues à EXPIRED puis purge tous les
        enregistrements inactifs.

        Returns:
            Nombre d'enregistrements supprimés
        """
        now = self._clock()
        removed = 0
        for session in await self._backend.all_sessions():
            if session.is_active and session.is_expired(now):
                await self._backend.deactivate(session.session_id, EndReason.EXPIRED, now)
            elif session.is_active:
                continue
            if await self._backend.delete(session.session_id):
                removed += 1

        if removed:
            self._logger.info("Expired sessions purged", count=removed)
        return removed
