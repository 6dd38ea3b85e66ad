"""
Logging

Module de logging structuré avec:
- Format JSON structuré (LOG_001)
- Champs obligatoires (LOG_002)
- Timestamp ISO 8601 UTC (LOG_003)
- Masquage secrets et tokens (LOG_004)
- Propagation du correlation_id par ContextVar

Invariants couverts:
- LOG_001: Format JSON structuré obligatoire
- LOG_002: Champs obligatoires: timestamp, level, correlation_id, logger, message
- LOG_003: Timestamp format ISO 8601 avec timezone UTC
- LOG_004: Secrets et tokens JAMAIS en clair dans les logs
"""

from .interfaces import (
    # Enums
    LogLevel,
    # Dataclasses
    LogEntry,
    LogConfig,
    # Interfaces
    IStructuredLogger,
    ISensitiveMasker,
)
from .context import (
    CORRELATION_HEADER,
    correlation_id_var,
    correlation_scope,
    extract_correlation_id,
    get_correlation_id,
    new_correlation_id,
    set_correlation_id,
)
from .sensitive_masker import (
    SensitiveMasker,
)
from .structured_logger import (
    StructuredLogger,
    ContextualLogger,
    # Exceptions
    MissingRequiredFieldError,
)

__all__ = [
    # Enums
    "LogLevel",
    # Dataclasses
    "LogEntry",
    "LogConfig",
    # Interfaces
    "IStructuredLogger",
    "ISensitiveMasker",
    # Context
    "CORRELATION_HEADER",
    "correlation_id_var",
    "correlation_scope",
    "extract_correlation_id",
    "get_correlation_id",
    "new_correlation_id",
    "set_correlation_id",
    # Implementations
    "SensitiveMasker",
    "StructuredLogger",
    "ContextualLogger",
    # Exceptions
    "MissingRequiredFieldError",
]
