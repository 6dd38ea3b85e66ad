"""
Tests unitaires pour ConfigValidator.
"""

import pytest

from src.core.config_loader import ConfigLoader
from src.core.config_validator import ConfigValidator
from src.core.interfaces import ValidationResult, ValidationSeverity
from src.core.settings import AuthSettings, SessionSettings, TokenSettings

SECRET = "s" * 48


def make_settings(**sections) -> AuthSettings:
    data = {"tokens": {"secret": SECRET}}
    for name, values in sections.items():
        data.setdefault(name, {}).update(values)
    return AuthSettings.model_validate(data)


class TestConfigValidator:
    """Tests pour ConfigValidator."""

    def setup_method(self):
        """Setup avant chaque test."""
        self.validator = ConfigValidator()

    def test_valid_settings(self):
        """Des settings par défaut avec un secret long sont valides."""
        result = self.validator.validate(make_settings())

        assert isinstance(result, ValidationResult)
        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_short_secret_blocking(self):
        """CONF_002: secret trop court bloquant."""
        settings = AuthSettings(tokens=TokenSettings(secret="court"))

        result = self.validator.validate(settings)

        assert result.valid is False
        error = next(e for e in result.errors if e.rule_id == "CONF_002")
        assert error.location == "tokens.secret"
        # Le secret n'apparaît jamais dans le rapport
        assert error.value is None

    def test_access_ttl_longer_than_session(self):
        """CONF_001: access token plus long que la session."""
        settings = make_settings(session={"ttl_seconds": 600}, tokens={"access_token_ttl_seconds": 1200})

        result = self.validator.validate(settings)

        assert [e.rule_id for e in result.errors] == ["CONF_001"]

    @pytest.mark.parametrize("threshold", [0.0, 1.0, 1.5, -0.2])
    def test_threshold_out_of_bounds(self, threshold):
        """CONF_003: seuil strictement entre 0 et 1."""
        settings = make_settings(session={"refresh_threshold": threshold})

        error = self.validator.validate_rule("CONF_003", settings)

        assert error is not None
        assert error.severity == ValidationSeverity.BLOCKING

    def test_remember_me_shorter_than_session(self):
        settings = make_settings(session={"ttl_seconds": 900, "remember_me_ttl_seconds": 60})

        error = self.validator.validate_rule("REMEMBER_ME_TTL", settings)

        assert error is not None
        assert error.location == "session.remember_me_ttl_seconds"

    def test_non_positive_session_ttl(self):
        settings = make_settings(session={"ttl_seconds": 0}, tokens={"access_token_ttl_seconds": 0})

        result = self.validator.validate(settings)

        rule_ids = {e.rule_id for e in result.errors}
        assert "SESSION_TTL" in rule_ids
        assert "TOKEN_TTLS" in rule_ids

    def test_lockout_values_positive(self):
        settings = make_settings(lockout={"max_failed_attempts": 0})

        error = self.validator.validate_rule("LOCKOUT", settings)

        assert error is not None

    def test_max_sessions_at_least_one(self):
        settings = make_settings(session={"max_sessions_per_user": 0})

        error = self.validator.validate_rule("MAX_SESSIONS", settings)

        assert error is not None

    def test_long_verification_ttl_is_warning_only(self):
        settings = make_settings(tokens={"verification_token_ttl_seconds": 30 * 24 * 3600})

        result = self.validator.validate(settings)

        assert result.valid is True
        assert len(result.warnings) == 1
        assert result.warnings[0].rule_id == "VERIFICATION_TTL"

    def test_unknown_rule(self):
        error = self.validator.validate_rule("NOPE_999", make_settings())

        assert error is not None
        assert "Règle inconnue" in error.message

    def test_reports_all_errors_not_fail_fast(self):
        """Toutes les violations sont rapportées en une passe."""
        settings = AuthSettings(
            session=SessionSettings(ttl_seconds=600, remember_me_ttl_seconds=300, refresh_threshold=1.5),
            tokens=TokenSettings(secret="short", access_token_ttl_seconds=1200),
        )

        result = self.validator.validate(settings)

        rule_ids = {e.rule_id for e in result.errors}
        assert {"CONF_001", "CONF_002", "CONF_003", "REMEMBER_ME_TTL"} <= rule_ids

    @pytest.mark.asyncio
    async def test_invalid_fixture_file(self, fixtures_path):
        loader = ConfigLoader(str(fixtures_path / "configs"), environ={})
        settings = await loader.load("invalid_ttls")

        result = self.validator.validate(settings)

        assert result.valid is False
        assert len(result.errors) >= 4

    @pytest.mark.asyncio
    async def test_default_fixture_is_valid(self, fixtures_path):
        loader = ConfigLoader(str(fixtures_path / "configs"), environ={})
        settings = await loader.load("default")

        assert self.validator.validate(settings).valid is True
