"""
Tests unitaires LoginLockout

Vérifie l'invariant:
    AUTH_004: 5 échecs login = verrouillage temporaire 15 minutes
"""

from datetime import timedelta

import pytest

from src.auth import LockStatus, LoginLockout
from src.core import LockoutSettings

EMAIL = "alice@example.com"


@pytest.fixture
def lockout(clock):
    return LoginLockout(clock=clock)


class TestLockoutInit:
    def test_defaults(self):
        assert LoginLockout.MAX_FAILED_ATTEMPTS == 5
        assert LoginLockout.LOCKOUT_DURATION == timedelta(minutes=15)

    def test_from_settings(self, clock):
        lockout = LoginLockout.from_settings(
            LockoutSettings(max_failed_attempts=2, lockout_duration_seconds=60), clock=clock
        )

        lockout.record_failure(EMAIL)
        assert lockout.record_failure(EMAIL).locked is True
        assert lockout.get_lock_remaining_time(EMAIL) == timedelta(seconds=60)

    @pytest.mark.parametrize("attempts", [0, -1])
    def test_invalid_attempts(self, attempts):
        with pytest.raises(ValueError):
            LoginLockout(max_failed_attempts=attempts)

    def test_invalid_duration(self):
        with pytest.raises(ValueError):
            LoginLockout(lockout_duration=timedelta(0))


class TestRecordFailure:
    def test_below_threshold_not_locked(self, lockout, clock):
        for _ in range(4):
            status = lockout.record_failure(EMAIL)

        assert isinstance(status, LockStatus)
        assert status.locked is False
        assert status.failure_count == 4
        assert status.last_failure == clock.now
        assert lockout.get_remaining_attempts(EMAIL) == 1

    def test_locks_at_threshold(self, lockout, clock):
        """AUTH_004: 5e échec = verrouillé 15 min."""
        for _ in range(5):
            status = lockout.record_failure(EMAIL)

        assert status.locked is True
        assert status.locked_until == clock.now + timedelta(minutes=15)
        assert lockout.is_locked(EMAIL) is True
        assert lockout.get_remaining_attempts(EMAIL) == 0

    def test_email_is_normalised(self, lockout):
        for _ in range(5):
            lockout.record_failure("  Alice@Example.COM ")

        assert lockout.is_locked(EMAIL) is True

    def test_failures_while_locked_do_not_extend(self, lockout, clock):
        for _ in range(5):
            lockout.record_failure(EMAIL)
        locked_until = lockout.get_status(EMAIL).locked_until

        clock.advance(minutes=5)
        status = lockout.record_failure(EMAIL)

        assert status.locked_until == locked_until

    def test_keys_are_independent(self, lockout):
        for _ in range(5):
            lockout.record_failure(EMAIL)

        assert lockout.is_locked("bob@example.com") is False


class TestExpiry:
    def test_lock_expires_automatically(self, lockout, clock):
        for _ in range(5):
            lockout.record_failure(EMAIL)

        clock.advance(minutes=15)

        assert lockout.is_locked(EMAIL) is False
        assert lockout.get_remaining_attempts(EMAIL) == 5
        assert lockout.get_lock_remaining_time(EMAIL) is None

    def test_remaining_time(self, lockout, clock):
        for _ in range(5):
            lockout.record_failure(EMAIL)
        clock.advance(minutes=10)

        assert lockout.get_lock_remaining_time(EMAIL) == timedelta(minutes=5)

    def test_old_failures_forgotten(self, lockout, clock):
        for _ in range(4):
            lockout.record_failure(EMAIL)
        clock.advance(minutes=16)

        status = lockout.record_failure(EMAIL)

        assert status.locked is False
        assert status.failure_count == 1

    def test_reset_clears_everything(self, lockout):
        for _ in range(5):
            lockout.record_failure(EMAIL)

        lockout.reset(EMAIL)

        assert lockout.is_locked(EMAIL) is False
        assert lockout.get_status(EMAIL).failure_count == 0

    def test_cleanup_expired(self, lockout, clock):
        for _ in range(5):
            lockout.record_failure(EMAIL)
        lockout.record_failure("bob@example.com")
        clock.advance(minutes=15, seconds=1)
        lockout.record_failure("carol@example.com")

        assert lockout.cleanup_expired() == 2
        assert lockout.get_status("carol@example.com").failure_count == 1
