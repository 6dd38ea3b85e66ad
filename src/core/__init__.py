"""
Recruitment Auth Core - Core Module
Configuration, validation et primitives cryptographiques.
"""

from .interfaces import (
    IConfigLoader,
    IConfigValidator,
    ICryptoProvider,
    ValidationError,
    ValidationResult,
    ValidationSeverity,
)
from .clock import Clock, utc_now
from .settings import AuthSettings, LockoutSettings, SessionSettings, TokenSettings
from .config_loader import ConfigIntegrityError, ConfigLoader
from .config_validator import ConfigValidator
from .crypto_provider import CryptoProvider

__all__ = [
    # Interfaces
    "IConfigLoader",
    "IConfigValidator",
    "ICryptoProvider",
    # Data classes
    "ValidationError",
    "ValidationResult",
    "ValidationSeverity",
    "AuthSettings",
    "SessionSettings",
    "TokenSettings",
    "LockoutSettings",
    # Implementations
    "Clock",
    "utc_now",
    "ConfigLoader",
    "ConfigValidator",
    "CryptoProvider",
    # Exceptions
    "ConfigIntegrityError",
]
