"""
Recruitment Auth Core - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from src.core.settings import AuthSettings
from src.logging import LogConfig, LogLevel, StructuredLogger

TEST_SECRET = "test-secret-0123456789-abcdefghijklmnop"


class FakeClock:
    """Horloge contrôlable: avance uniquement via advance()."""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture
def fixtures_path() -> Path:
    """Chemin vers le dossier fixtures."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def all_invariants() -> dict:
    """Retourne tous les invariants."""
    from src.invariants.rules import ALL_INVARIANTS
    return ALL_INVARIANTS


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> AuthSettings:
    """Settings par défaut avec secret de test."""
    return AuthSettings.model_validate({"tokens": {"secret": TEST_SECRET}})


@pytest.fixture
def log_lines() -> list:
    """Sortie JSON capturée des loggers de test."""
    return []


@pytest.fixture
def logger_factory(log_lines):
    """Crée des loggers DEBUG écrivant dans log_lines."""

    def factory(name: str) -> StructuredLogger:
        return StructuredLogger(name, config=LogConfig(min_level=LogLevel.DEBUG), output_handler=log_lines.append)

    return factory


# ══════════════════════════════════════════════════════════════════════════════
# AUTH
# ══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def crypto():
    from src.core import CryptoProvider
    return CryptoProvider(TEST_SECRET)


@pytest.fixture
def token_issuer(settings, crypto, clock):
    from src.auth import TokenIssuer
    return TokenIssuer(settings.tokens, crypto=crypto, clock=clock)


@pytest.fixture
def session_backend():
    from src.auth import InMemorySessionBackend
    return InMemorySessionBackend()


@pytest.fixture
def session_store(session_backend, token_issuer, crypto, settings, clock, logger_factory):
    from src.auth import SessionStore
    return SessionStore(
        session_backend,
        token_issuer,
        crypto,
        settings.session,
        logger=logger_factory("auth.session_store"),
        clock=clock,
    )


@pytest.fixture
def hasher():
    """bcrypt au coût minimal pour garder les tests rapides."""
    from src.auth import PasswordHasher
    return PasswordHasher(rounds=4)


@pytest.fixture
def role_repository():
    from src.auth import InMemoryRoleRepository
    return InMemoryRoleRepository()


@pytest.fixture
def user_directory(hasher, role_repository):
    from src.auth import InMemoryUserDirectory
    return InMemoryUserDirectory(hasher, role_repository)


@pytest.fixture
def audit_recorder(clock, logger_factory):
    from src.audit import AuditRecorder
    return AuditRecorder(logger=logger_factory("audit.recorder"), clock=clock)
