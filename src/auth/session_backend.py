"""
Auth - Session Backend

Stockage en mémoire des sessions, injecté dans SessionStore.

Invariants:
    SESS_001: Une seule valeur de refresh token valide par session
    SESS_006: Rotation concurrente: un seul gagnant
    TOKEN_003: Refresh token jamais indexé en clair (HMAC uniquement)
"""

import asyncio
from copy import deepcopy
from datetime import datetime
from typing import Dict, List, Optional, Set

from .interfaces import ISessionBackend, Session


class InMemorySessionBackend(ISessionBackend):
    """
    Backend mono-processus avec trois index: par id, par empreinte de
    refresh token (sessions actives uniquement), par utilisateur.

    Toutes les mutations passent par un asyncio.Lock; les lectures
    retournent des copies.

    Les sessions désactivées restent stockées jusqu'à delete(); c'est
    SessionStore.cleanup_expired_sessions() qui les purge, et l'appelant
    doit planifier ce balayage périodiquement.

    Example:
        backend = InMemorySessionBackend()
        store = SessionStore(backend, issuer, crypto, settings)
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._by_refresh_hash: Dict[str, str] = {}  # hash -> session_id
        self._user_sessions: Dict[str, Set[str]] = {}  # user_id -> session_ids
        self._lock = asyncio.Lock()

    @staticmethod
    def _copy(session: Session) -> Session:
        clone = deepcopy(session)
        clone.refresh_token = None
        return clone

    async def save(self, session: Session) -> None:
        async with self._lock:
            stored = self._copy(session)
            previous = self._sessions.get(stored.session_id)
            if previous is not None:
                self._by_refresh_hash.pop(previous.refresh_token_hash, None)

            self._sessions[stored.session_id] = stored
            if stored.is_active:
                self._by_refresh_hash[stored.refresh_token_hash] = stored.session_id
            self._user_sessions.setdefault(stored.user_id, set()).add(stored.session_id)

    async def find_by_id(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        return self._copy(session) if session else None

    async def find_by_refresh_hash(self, refresh_token_hash: str) -> Optional[Session]:
        session_id = self._by_refresh_hash.get(refresh_token_hash)
        if session_id is None:
            return None
        session = self._sessions.get(session_id)
        if session is None or not session.is_active:
            return None
        return self._copy(session)

    async def find_by_user(self, user_id: str) -> List[Session]:
        session_ids = self._user_sessions.get(user_id, set())
        return [self._copy(self._sessions[sid]) for sid in session_ids if sid in self._sessions]

    async def all_sessions(self) -> List[Session]:
        return [self._copy(s) for s in self._sessions.values()]

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
        SESS_006: Compare-and-swap sous verrou.

        Le perdant d'une course voit un hash différent de celui attendu
        et reçoit None.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not session.is_active:
                return None
            if session.refresh_token_hash != expected_hash:
                return None

            # SESS_001: l'ancienne empreinte disparaît de l'index
            self._by_refresh_hash.pop(expected_hash, None)
            session.refresh_token_hash = new_hash
            self._by_refresh_hash[new_hash] = session_id

            session.last_activity = last_activity
            session.expires_at = expires_at
            session.rotation_count += 1
            if user_agent is not None:
                session.user_agent = user_agent
            if ip_address is not None:
                session.ip_address = ip_address

            return self._copy(session)

    async def deactivate(self, session_id: str, reason: str, ended_at: datetime) -> bool:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not session.is_active:
                return False

            session.is_active = False
            session.ended_at = ended_at
            session.end_reason = reason
            self._by_refresh_hash.pop(session.refresh_token_hash, None)
            return True

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return False

            self._by_refresh_hash.pop(session.refresh_token_hash, None)
            user_sessions = self._user_sessions.get(session.user_id)
            if user_sessions is not None:
                user_sessions.discard(session_id)
                if not user_sessions:
                    del self._user_sessions[session.user_id]
            return True

    def __len__(self) -> int:
        return len(self._sessions)
