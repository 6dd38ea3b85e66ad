"""
Logging - Structured Logger

Logger JSON structuré avec champs obligatoires.

Invariants:
    LOG_001: Format JSON structuré obligatoire
    LOG_002: Champs obligatoires: timestamp, level, correlation_id, logger, message
    LOG_003: Timestamp format ISO 8601 avec timezone UTC
    LOG_004: Secrets et tokens JAMAIS en clair dans les logs
"""

import sys
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from .context import get_correlation_id, new_correlation_id
from .interfaces import (
    IStructuredLogger,
    ISensitiveMasker,
    LogConfig,
    LogEntry,
    LogLevel,
)
from .sensitive_masker import SensitiveMasker


class MissingRequiredFieldError(Exception):
    """Champ obligatoire manquant - LOG_002."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Required field missing: {field_name} - LOG_002")


def _write_stderr(line: str) -> None:
    sys.stderr.write(line + "\n")


class StructuredLogger(IStructuredLogger):
    """
    Logger JSON structuré avec champs obligatoires.

    Le correlation_id est résolu dans l'ordre: argument explicite,
    contexte (correlation_scope), default du logger, nouvel UUID.

    Invariants:
        LOG_001: Format JSON structuré obligatoire
        LOG_002: Champs obligatoires présents
        LOG_003: Timestamp ISO 8601 UTC
        LOG_004: Masquage données sensibles

    Example:
        logger = StructuredLogger("auth.session_store")
        with correlation_scope("corr-456"):
            logger.info("Session created", user_id="u-789")
    """

    def __init__(
        self,
        name: str,
        config: Optional[LogConfig] = None,
        masker: Optional[ISensitiveMasker] = None,
        output_handler: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Initialise le logger structuré.

        Args:
            name: Nom du logger (identifiant service/module)
            config: Configuration optionnelle
            masker: Masker pour données sensibles (LOG_004)
            output_handler: Handler pour output JSON (stderr par défaut)

        Raises:
            ValueError: Si name vide
        """
        if not name or not name.strip():
            raise ValueError("Logger name cannot be empty")

        self._name = name.strip()
        self._config = config or LogConfig()
        self._masker = masker or SensitiveMasker()
        self._output_handler = output_handler or _write_stderr
        self._entries: Deque[LogEntry] = deque(maxlen=max(self._config.max_entries, 1))
        self._default_correlation_id: Optional[str] = self._config.default_correlation_id

    @property
    def name(self) -> str:
        """Retourne le nom du logger."""
        return self._name

    @property
    def config(self) -> LogConfig:
        """Retourne la configuration."""
        return self._config

    def set_default_correlation(self, correlation_id: str) -> None:
        """
        Définit correlation_id par défaut.

        Args:
            correlation_id: ID corrélation par défaut
        """
        self._default_correlation_id = correlation_id

    def clear_defaults(self) -> None:
        """Efface les valeurs par défaut."""
        self._default_correlation_id = None

    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        Crée log structuré JSON.

        Processus:
            1. Vérifie niveau >= min_level
            2. Résout correlation_id
            3. Masque données sensibles dans message et extra (LOG_004)
            4. Crée LogEntry avec champs obligatoires (LOG_002, LOG_003)
            5. Output JSON (LOG_001)

        Args:
            level: Niveau de log
            message: Message à logger
            correlation_id: ID de corrélation explicite
            **extra: Données supplémentaires

        Returns:
            LogEntry créé ou None si filtré

        Raises:
            MissingRequiredFieldError: Si message vide
        """
        if not self._should_log(level):
            return None

        if not message:
            raise MissingRequiredFieldError("message")

        resolved_correlation = (
            correlation_id
            or get_correlation_id()
            or self._default_correlation_id
            or new_correlation_id()
        )

        masked_extra: Dict[str, Any] = {}
        if extra and self._config.include_extra:
            if self._config.mask_sensitive:
                masked_extra = self._masker.mask(dict(extra))
            else:
                masked_extra = dict(extra)

        if self._config.mask_sensitive:
            message = self._masker.mask_string(message)

        entry = LogEntry(
            timestamp=self._generate_timestamp(),
            level=level,
            correlation_id=resolved_correlation,
            logger_name=self._name,
            message=message,
            extra=masked_extra,
        )

        self._entries.append(entry)
        self._output_handler(entry.to_json())

        return entry

    def _generate_timestamp(self) -> str:
        """
        LOG_003: Génère timestamp ISO 8601 UTC avec millisecondes.

        Format: 2024-12-04T14:30:00.123Z
        """
        now = datetime.now(timezone.utc)
        return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

    def _should_log(self, level: LogLevel) -> bool:
        return LogLevel.get_priority(level) >= LogLevel.get_priority(self._config.min_level)

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau DEBUG."""
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau INFO."""
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau WARN."""
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau ERROR."""
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau CRITICAL."""
        return self.log(LogLevel.CRITICAL, message, **extra)

    def get_entries(self) -> List[LogEntry]:
        """
        Retourne les entrées de log capturées.

        Le tampon est borné par LogConfig.max_entries (les plus anciennes
        sont écartées).
        """
        return list(self._entries)

    def clear_entries(self) -> None:
        """Efface les entrées capturées."""
        self._entries.clear()

    def get_entries_by_level(self, level: LogLevel) -> List[LogEntry]:
        """Filtre les entrées par niveau."""
        return [e for e in self._entries if e.level == level]

    def get_entries_by_correlation(self, correlation_id: str) -> List[LogEntry]:
        """Filtre les entrées par correlation_id."""
        return [e for e in self._entries if e.correlation_id == correlation_id]

    def with_context(self, correlation_id: Optional[str] = None) -> "ContextualLogger":
        """
        Crée un logger avec correlation_id pré-défini.

        Args:
            correlation_id: ID corrélation pour ce contexte

        Returns:
            ContextualLogger avec contexte fixé
        """
        return ContextualLogger(self, correlation_id=correlation_id or self._default_correlation_id)


class ContextualLogger:
    """
    Logger avec correlation_id pré-défini.

    Wrapper qui fixe correlation_id pour éviter de le répéter à chaque appel.
    """

    def __init__(self, logger: StructuredLogger, correlation_id: Optional[str] = None) -> None:
        self._logger = logger
        self._correlation_id = correlation_id

    def log(self, level: LogLevel, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log avec contexte."""
        return self._logger.log(level, message, correlation_id=self._correlation_id, **extra)

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)
