"""
Tests unitaires SessionStore

Invariants testés:
    SESS_001: Une seule valeur de refresh token valide par session
    SESS_002: TTL standard / remember me
    SESS_003: Session expirée jamais valide
    SESS_004: Invalidation idempotente
    SESS_005: Aucune fenêtre de grâce
    SESS_006: Rotation concurrente, un seul gagnant
    SESS_007: EXPIRED et REVOKED terminaux
    SESS_008: Sessions actives plafonnées par utilisateur
    TOKEN_003: Refresh token jamais indexé en clair
"""

import asyncio
import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from src.auth import (
    EndReason,
    InMemorySessionBackend,
    ISessionStore,
    SessionError,
    SessionState,
    SessionStore,
)


# ══════════════════════════════════════════════════════════════════════════════
# TESTS CRÉATION
# ══════════════════════════════════════════════════════════════════════════════


class TestCreateSession:
    def test_implements_interface(self, session_store):
        assert isinstance(session_store, ISessionStore)

    @pytest.mark.asyncio
    async def test_create_standard_session(self, session_store, clock):
        """SESS_002: TTL standard 15 min."""
        session = await session_store.create_session("user-1", user_agent="Chrome", ip_address="10.0.0.1")

        assert session.is_active is True
        assert session.created_at == clock.now
        assert session.expires_at - session.created_at == timedelta(minutes=15)
        assert session.remember_me is False
        assert session.user_agent == "Chrome"
        assert session.refresh_token

    @pytest.mark.asyncio
    async def test_create_remember_me_session(self, session_store):
        """SESS_002: TTL remember me 30 jours."""
        session = await session_store.create_session("user-1", metadata={"remember_me": True})

        assert session.expires_at - session.created_at == timedelta(days=30)
        assert session.remember_me is True

    @pytest.mark.asyncio
    async def test_empty_user_id_rejected(self, session_store):
        with pytest.raises(ValueError):
            await session_store.create_session("")

    @pytest.mark.asyncio
    async def test_refresh_token_stored_as_digest_only(self, session_store, session_backend, crypto):
        """TOKEN_003: seul le HMAC est stocké."""
        session = await session_store.create_session("user-1")

        stored = await session_backend.find_by_id(session.session_id)
        assert stored.refresh_token is None
        assert stored.refresh_token_hash == crypto.digest(session.refresh_token)
        assert stored.refresh_token_hash != session.refresh_token

    @pytest.mark.asyncio
    async def test_caller_metadata_not_mutated(self, session_store):
        metadata = {"login_method": "password"}

        await session_store.create_session("user-1", metadata=metadata)

        assert metadata == {"login_method": "password"}

    @pytest.mark.asyncio
    async def test_session_cap_evicts_oldest(self, session_store, clock):
        """SESS_008: la plus ancienne session est évincée."""
        first = await session_store.create_session("user-1")
        for _ in range(session_store.settings.max_sessions_per_user - 1):
            clock.advance(1)
            await session_store.create_session("user-1")

        clock.advance(1)
        newest = await session_store.create_session("user-1")

        active = await session_store.get_user_sessions("user-1")
        assert len(active) == session_store.settings.max_sessions_per_user
        assert active[0].session_id == newest.session_id
        evicted = await session_store.get_session(first.session_id)
        assert evicted.is_active is False
        assert evicted.end_reason == EndReason.EVICTED

    @pytest.mark.asyncio
    async def test_refresh_token_never_logged(self, session_store, log_lines):
        """LOG_004: aucune valeur de token dans les logs."""
        session = await session_store.create_session("user-1")
        await session_store.refresh_tokens(session.refresh_token)

        output = "\n".join(log_lines)
        assert session.refresh_token not in output
        assert all(json.loads(line)["logger"] == "auth.session_store" for line in log_lines)


# ══════════════════════════════════════════════════════════════════════════════
# TESTS VALIDATION
# ══════════════════════════════════════════════════════════════════════════════


class TestValidateSession:
    @pytest.mark.asyncio
    async def test_valid_session(self, session_store):
        session = await session_store.create_session("user-1")

        result = await session_store.validate_session(session.session_id)

        assert result.is_valid is True
        assert result.needs_refresh is False
        assert result.time_until_expiry == 900
        assert result.session.user_id == "user-1"

    @pytest.mark.asyncio
    async def test_missing_id(self, session_store):
        result = await session_store.validate_session("")

        assert result.is_valid is False
        assert result.error == SessionError.SESSION_ID_MISSING

    @pytest.mark.asyncio
    async def test_unknown_session(self, session_store):
        result = await session_store.validate_session("does-not-exist")

        assert result.is_valid is False
        assert result.error == "SESSION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_needs_refresh_in_last_fifth(self, session_store, clock):
        """Seuil 0.8: rafraîchissement dans les 20 % restants."""
        session = await session_store.create_session("user-1")

        clock.advance(minutes=11)
        assert (await session_store.validate_session(session.session_id)).needs_refresh is False

        clock.advance(minutes=2)
        result = await session_store.validate_session(session.session_id)
        assert result.is_valid is True
        assert result.needs_refresh is True

    @pytest.mark.asyncio
    async def test_validation_does_not_extend_session(self, session_store, clock):
        session = await session_store.create_session("user-1")
        clock.advance(minutes=10)

        result = await session_store.validate_session(session.session_id)

        assert result.session.expires_at == session.expires_at

    @pytest.mark.asyncio
    async def test_expired_session_invalid_and_terminal(self, session_store, clock):
        """SESS_003 + SESS_007."""
        session = await session_store.create_session("user-1")
        clock.advance(minutes=15, seconds=1)

        result = await session_store.validate_session(session.session_id)

        assert result.is_valid is False
        assert result.error == "SESSION_EXPIRED"
        assert result.session.is_active is False
        assert result.session.end_reason == EndReason.EXPIRED
        assert await session_store.get_state(session.session_id) == SessionState.EXPIRED

    @pytest.mark.asyncio
    async def test_session_valid_at_exact_expiry(self, session_store, clock):
        session = await session_store.create_session("user-1")
        clock.advance(minutes=15)

        assert (await session_store.validate_session(session.session_id)).is_valid is True

    @pytest.mark.asyncio
    async def test_inactive_session_invalid(self, session_store):
        session = await session_store.create_session("user-1")
        await session_store.invalidate_session(session.session_id)

        result = await session_store.validate_session(session.session_id)

        assert result.is_valid is False
        assert result.error == "SESSION_INACTIVE"


# ══════════════════════════════════════════════════════════════════════════════
# TESTS ROTATION
# ══════════════════════════════════════════════════════════════════════════════


class TestRefreshTokens:
    @pytest.mark.asyncio
    async def test_refresh_rotates_and_extends(self, session_store, clock, token_issuer):
        session = await session_store.create_session("user-1", metadata={"role": "editor"})
        clock.advance(minutes=13)

        pair = await session_store.refresh_tokens(session.refresh_token, user_agent="Safari")

        assert pair.session_id == session.session_id
        assert pair.refresh_token != session.refresh_token
        assert pair.expires_in == 900
        assert pair.token_type == "Bearer"
        claims = token_issuer.verify_access_token(pair.access_token)
        assert claims.role == "editor"
        assert claims.session_id == session.session_id

        refreshed = await session_store.get_session(session.session_id)
        assert refreshed.last_activity == clock.now
        assert refreshed.expires_at == clock.now + timedelta(minutes=15)
        assert refreshed.rotation_count == 1
        assert refreshed.user_agent == "Safari"
        assert await session_store.get_state(session.session_id) == SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_old_refresh_token_rejected(self, session_store):
        """SESS_005: un token tourné est immédiatement invalide."""
        session = await session_store.create_session("user-1")
        pair = await session_store.refresh_tokens(session.refresh_token)

        with pytest.raises(SessionError) as exc_info:
            await session_store.refresh_tokens(session.refresh_token)
        assert exc_info.value.code == SessionError.INVALID_REFRESH_TOKEN

        assert (await session_store.refresh_tokens(pair.refresh_token)).session_id == session.session_id

    @pytest.mark.asyncio
    async def test_concurrent_refresh_single_winner(self, session_store):
        """SESS_006."""
        session = await session_store.create_session("user-1")

        results = await asyncio.gather(
            session_store.refresh_tokens(session.refresh_token),
            session_store.refresh_tokens(session.refresh_token),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, SessionError)]
        pairs = [r for r in results if not isinstance(r, Exception)]
        assert len(pairs) == 1
        assert len(errors) == 1
        assert errors[0].code == SessionError.INVALID_REFRESH_TOKEN
        assert (await session_store.get_session(session.session_id)).rotation_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_refresh_lost_swap(self, token_issuer, crypto, settings, clock, logger_factory, log_lines):
        """SESS_006: les deux appels trouvent la session, un seul swap réussit."""

        class YieldingBackend(InMemorySessionBackend):
            async def find_by_refresh_hash(self, refresh_token_hash):
                found = await super().find_by_refresh_hash(refresh_token_hash)
                await asyncio.sleep(0)
                return found

        store = SessionStore(
            YieldingBackend(),
            token_issuer,
            crypto,
            settings.session,
            logger=logger_factory("auth.session_store"),
            clock=clock,
        )
        session = await store.create_session("user-1")

        results = await asyncio.gather(
            store.refresh_tokens(session.refresh_token),
            store.refresh_tokens(session.refresh_token),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, SessionError)]
        pairs = [r for r in results if not isinstance(r, Exception)]
        assert len(pairs) == 1
        assert len(errors) == 1
        assert errors[0].code == SessionError.INVALID_REFRESH_TOKEN
        assert any("concurrent rotation lost" in line for line in log_lines)

        stored = await store.get_session(session.session_id)
        assert stored.rotation_count == 1
        assert stored.refresh_token_hash == crypto.digest(pairs[0].refresh_token)

    @pytest.mark.asyncio
    async def test_unknown_refresh_token(self, session_store):
        with pytest.raises(SessionError) as exc_info:
            await session_store.refresh_tokens("not-a-real-token")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_empty_refresh_token(self, session_store):
        with pytest.raises(SessionError):
            await session_store.refresh_tokens("")

    @pytest.mark.asyncio
    async def test_refresh_after_expiry_rejected(self, session_store, clock):
        """SESS_007: EXPIRED terminal, aucun refresh."""
        session = await session_store.create_session("user-1")
        clock.advance(minutes=16)

        with pytest.raises(SessionError):
            await session_store.refresh_tokens(session.refresh_token)

        assert (await session_store.get_session(session.session_id)).end_reason == EndReason.EXPIRED

    @pytest.mark.asyncio
    async def test_refresh_after_revocation_rejected(self, session_store):
        session = await session_store.create_session("user-1")
        await session_store.invalidate_session(session.session_id)

        with pytest.raises(SessionError):
            await session_store.refresh_tokens(session.refresh_token)

    @pytest.mark.asyncio
    async def test_issuer_failure_is_refresh_failed(self, session_backend, token_issuer, crypto, settings, clock):
        store = SessionStore(session_backend, token_issuer, crypto, settings.session, clock=clock)
        session = await store.create_session("user-1")

        broken = MagicMock(wraps=token_issuer)
        broken.issue_access_token.side_effect = RuntimeError("signing backend down")
        failing = SessionStore(session_backend, broken, crypto, settings.session, clock=clock)

        with pytest.raises(SessionError) as exc_info:
            await failing.refresh_tokens(session.refresh_token)
        assert exc_info.value.code == SessionError.TOKEN_REFRESH_FAILED

        # Aucune rotation: le token d'origine reste utilisable
        assert (await store.refresh_tokens(session.refresh_token)).session_id == session.session_id

    @pytest.mark.asyncio
    async def test_role_reresolved_from_directory(
        self, session_backend, token_issuer, crypto, settings, clock, user_directory, role_repository
    ):
        from src.auth import Role

        await role_repository.add_role(Role("r-viewer", "viewer", "Viewer"))
        await role_repository.add_role(Role("r-editor", "editor", "Editor"))
        user = await user_directory.add_user("a@example.com", "pass-1234", role_id="r-viewer")
        store = SessionStore(
            session_backend, token_issuer, crypto, settings.session, user_directory=user_directory, clock=clock
        )
        session = await store.create_session(user.user_id, metadata={"role": "viewer"})

        await user_directory.assign_role(user.user_id, "r-editor")
        pair = await store.refresh_tokens(session.refresh_token)

        assert token_issuer.verify_access_token(pair.access_token).role == "editor"

    @pytest.mark.asyncio
    async def test_deactivated_user_cannot_refresh(
        self, session_backend, token_issuer, crypto, settings, clock, user_directory
    ):
        user = await user_directory.add_user("a@example.com", "pass-1234")
        store = SessionStore(
            session_backend, token_issuer, crypto, settings.session, user_directory=user_directory, clock=clock
        )
        session = await store.create_session(user.user_id)

        await user_directory.set_active(user.user_id, False)

        with pytest.raises(SessionError) as exc_info:
            await store.refresh_tokens(session.refresh_token)
        assert exc_info.value.code == SessionError.INVALID_REFRESH_TOKEN
        assert await store.get_state(session.session_id) == SessionState.REVOKED


# ══════════════════════════════════════════════════════════════════════════════
# TESTS RÉVOCATION
# ══════════════════════════════════════════════════════════════════════════════


class TestInvalidate:
    @pytest.mark.asyncio
    async def test_invalidate_is_idempotent(self, session_store):
        """SESS_004."""
        session = await session_store.create_session("user-1")

        await session_store.invalidate_session(session.session_id)
        await session_store.invalidate_session(session.session_id)

        stored = await session_store.get_session(session.session_id)
        assert stored.is_active is False
        assert stored.end_reason == EndReason.REVOKED

    @pytest.mark.asyncio
    async def test_invalidate_unknown_is_noop(self, session_store):
        await session_store.invalidate_session("does-not-exist")
        await session_store.invalidate_session("")

    @pytest.mark.asyncio
    async def test_invalidate_keeps_first_reason(self, session_store):
        session = await session_store.create_session("user-1")

        await session_store.invalidate_session(session.session_id, reason=EndReason.LOGOUT)
        await session_store.invalidate_session(session.session_id, reason=EndReason.REVOKED)

        assert (await session_store.get_session(session.session_id)).end_reason == EndReason.LOGOUT

    @pytest.mark.asyncio
    async def test_invalidate_user_sessions(self, session_store):
        await session_store.create_session("user-1")
        await session_store.create_session("user-1")
        other = await session_store.create_session("user-2")

        assert await session_store.invalidate_user_sessions("user-1") == 2
        assert await session_store.invalidate_user_sessions("user-1") == 0
        assert await session_store.get_user_sessions("user-1") == []
        assert (await session_store.validate_session(other.session_id)).is_valid is True


# ══════════════════════════════════════════════════════════════════════════════
# TESTS LECTURE / MAINTENANCE
# ══════════════════════════════════════════════════════════════════════════════


class TestIntrospection:
    @pytest.mark.asyncio
    async def test_user_sessions_newest_first(self, session_store, clock):
        first = await session_store.create_session("user-1")
        clock.advance(5)
        second = await session_store.create_session("user-1")
        await session_store.invalidate_session(first.session_id)

        assert [s.session_id for s in await session_store.get_user_sessions("user-1")] == [second.session_id]
        assert [s.session_id for s in await session_store.get_user_sessions("user-1", include_inactive=True)] == [
            second.session_id,
            first.session_id,
        ]

    @pytest.mark.asyncio
    async def test_get_state_unknown(self, session_store):
        assert await session_store.get_state("missing") is None

    @pytest.mark.asyncio
    async def test_get_state_near_expiry(self, session_store, clock):
        session = await session_store.create_session("user-1")
        clock.advance(minutes=14)

        assert await session_store.get_state(session.session_id) == SessionState.NEAR_EXPIRY

    @pytest.mark.asyncio
    async def test_stats(self, session_store, clock):
        a = await session_store.create_session("user-1")
        await session_store.create_session("user-1")
        await session_store.create_session("user-2")
        clock.advance(60)
        await session_store.invalidate_session(a.session_id)

        stats = await session_store.get_stats()

        assert stats.total_sessions == 2
        assert stats.sessions_per_user == {"user-1": 1, "user-2": 1}
        assert stats.average_session_duration == 60
        assert stats.sessions_created_last_hour == 3
        assert stats.sessions_ended_last_hour == 1

    @pytest.mark.asyncio
    async def test_stats_empty(self, session_store):
        stats = await session_store.get_stats()

        assert stats.total_sessions == 0
        assert stats.average_session_duration == 0.0

    @pytest.mark.asyncio
    async def test_cleanup_expired_sessions(self, session_store, clock):
        short = await session_store.create_session("user-1")
        long = await session_store.create_session("user-1", metadata={"remember_me": True})
        revoked = await session_store.create_session("user-2")
        await session_store.invalidate_session(revoked.session_id)
        clock.advance(minutes=20)

        removed = await session_store.cleanup_expired_sessions()

        assert removed == 2
        assert await session_store.get_session(short.session_id) is None
        assert await session_store.get_session(revoked.session_id) is None
        assert (await session_store.get_session(long.session_id)).is_active is True
