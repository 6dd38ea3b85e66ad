"""
Recruitment Auth Core - Config Validator Implementation
Valide configuration contre les invariants de sécurité.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .interfaces import IConfigValidator, ValidationError, ValidationResult, ValidationSeverity
from .settings import AuthSettings

MIN_SECRET_LENGTH = 32
MAX_VERIFICATION_TTL_SECONDS = 7 * 24 * 3600


class ConfigValidator(IConfigValidator):
    """Validation des configurations contre les invariants de sécurité."""

    def __init__(self):
        self._validators: Dict[str, Callable[[AuthSettings], Optional[ValidationError]]] = {
            "SESSION_TTL": self._validate_session_ttl,
            "REMEMBER_ME_TTL": self._validate_remember_me_ttl,
            "CONF_001": self._validate_conf_001,
            "CONF_002": self._validate_conf_002,
            "CONF_003": self._validate_conf_003,
            "MAX_SESSIONS": self._validate_max_sessions,
            "TOKEN_TTLS": self._validate_token_ttls,
            "VERIFICATION_TTL": self._validate_verification_ttl,
            "LOCKOUT": self._validate_lockout,
        }

    def validate(self, settings: AuthSettings) -> ValidationResult:
        """
        Valide une config contre TOUS les invariants.
        Retourne TOUTES les erreurs (pas fail-fast).
        """
        errors = []
        warnings = []

        for rule_id in self._validators:
            error = self.validate_rule(rule_id, settings)
            if error:
                if error.severity == ValidationSeverity.BLOCKING:
                    errors.append(error)
                elif error.severity == ValidationSeverity.WARNING:
                    warnings.append(error)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            checked_at=datetime.now(timezone.utc),
        )

    def validate_rule(self, rule_id: str, settings: AuthSettings) -> Optional[ValidationError]:
        """Valide UNE règle spécifique."""
        if rule_id not in self._validators:
            return ValidationError(
                rule_id=rule_id,
                message=f"Règle inconnue: {rule_id}",
                location="config",
                severity=ValidationSeverity.BLOCKING,
            )

        return self._validators[rule_id](settings)

    def _validate_session_ttl(self, settings: AuthSettings) -> Optional[ValidationError]:
        ttl = settings.session.ttl_seconds
        if ttl <= 0:
            return ValidationError(
                rule_id="SESSION_TTL",
                message="TTL de session doit être positif",
                location="session.ttl_seconds",
                value=str(ttl),
            )
        return None

    def _validate_remember_me_ttl(self, settings: AuthSettings) -> Optional[ValidationError]:
        """TTL remember me >= TTL standard."""
        session = settings.session
        if session.remember_me_ttl_seconds < session.ttl_seconds:
            return ValidationError(
                rule_id="REMEMBER_ME_TTL",
                message=(
                    f"TTL remember me ({session.remember_me_ttl_seconds}s) inférieur "
                    f"au TTL de session ({session.ttl_seconds}s)"
                ),
                location="session.remember_me_ttl_seconds",
                value=str(session.remember_me_ttl_seconds),
            )
        return None

    def _validate_conf_001(self, settings: AuthSettings) -> Optional[ValidationError]:
        """CONF_001: TTL access token <= TTL session."""
        access_ttl = settings.tokens.access_token_ttl_seconds
        if access_ttl > settings.session.ttl_seconds:
            return ValidationError(
                rule_id="CONF_001",
                message=(
                    f"TTL access token ({access_ttl}s) dépasse le TTL de session "
                    f"({settings.session.ttl_seconds}s)"
                ),
                location="tokens.access_token_ttl_seconds",
                value=str(access_ttl),
            )
        return None

    def _validate_conf_002(self, settings: AuthSettings) -> Optional[ValidationError]:
        """CONF_002: Secret d'au moins 32 caractères."""
        if len(settings.tokens.secret) < MIN_SECRET_LENGTH:
            # La valeur du secret n'est jamais reportée
            return ValidationError(
                rule_id="CONF_002",
                message=f"Secret de signature trop court (minimum {MIN_SECRET_LENGTH} caractères)",
                location="tokens.secret",
            )
        return None

    def _validate_conf_003(self, settings: AuthSettings) -> Optional[ValidationError]:
        """CONF_003: Seuil de rafraîchissement dans ]0, 1[."""
        threshold = settings.session.refresh_threshold
        if not 0 < threshold < 1:
            return ValidationError(
                rule_id="CONF_003",
                message="Seuil de rafraîchissement doit être strictement entre 0 et 1",
                location="session.refresh_threshold",
                value=str(threshold),
            )
        return None

    def _validate_max_sessions(self, settings: AuthSettings) -> Optional[ValidationError]:
        value = settings.session.max_sessions_per_user
        if value < 1:
            return ValidationError(
                rule_id="MAX_SESSIONS",
                message="Plafond de sessions par utilisateur doit être >= 1",
                location="session.max_sessions_per_user",
                value=str(value),
            )
        return None

    def _validate_token_ttls(self, settings: AuthSettings) -> Optional[ValidationError]:
        tokens = settings.tokens
        for field in ("access_token_ttl_seconds", "verification_token_ttl_seconds", "password_reset_token_ttl_seconds"):
            value = getattr(tokens, field)
            if value <= 0:
                return ValidationError(
                    rule_id="TOKEN_TTLS",
                    message=f"{field} doit être positif",
                    location=f"tokens.{field}",
                    value=str(value),
                )
        return None

    def _validate_verification_ttl(self, settings: AuthSettings) -> Optional[ValidationError]:
        """Avertissement: token de vérification valable plus de 7 jours."""
        value = settings.tokens.verification_token_ttl_seconds
        if value > MAX_VERIFICATION_TTL_SECONDS:
            return ValidationError(
                rule_id="VERIFICATION_TTL",
                message="Token de vérification valable plus de 7 jours",
                location="tokens.verification_token_ttl_seconds",
                value=str(value),
                severity=ValidationSeverity.WARNING,
            )
        return None

    def _validate_lockout(self, settings: AuthSettings) -> Optional[ValidationError]:
        lockout = settings.lockout
        if lockout.max_failed_attempts < 1 or lockout.lockout_duration_seconds <= 0:
            return ValidationError(
                rule_id="LOCKOUT",
                message="Paramètres de verrouillage doivent être positifs",
                location="lockout",
                value=f"{lockout.max_failed_attempts}/{lockout.lockout_duration_seconds}",
            )
        return None
