"""
Recruitment Auth Core - Config Loader Implementation
Charge configuration depuis fichiers YAML, applique les overrides d'environnement.
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from .interfaces import IConfigLoader
from .settings import AuthSettings


class ConfigIntegrityError(Exception):
    """Erreur d'intégrité de configuration."""

    pass


# Variable d'environnement -> (section, clé, conversion)
ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "AUTH_SESSION_TTL_SECONDS": ("session", "ttl_seconds", int),
    "AUTH_REMEMBER_ME_TTL_SECONDS": ("session", "remember_me_ttl_seconds", int),
    "AUTH_REFRESH_THRESHOLD": ("session", "refresh_threshold", float),
    "AUTH_MAX_SESSIONS_PER_USER": ("session", "max_sessions_per_user", int),
    "AUTH_ACCESS_TOKEN_TTL_SECONDS": ("tokens", "access_token_ttl_seconds", int),
    "AUTH_JWT_SECRET": ("tokens", "secret", str),
    "AUTH_LOCKOUT_MAX_FAILED_ATTEMPTS": ("lockout", "max_failed_attempts", int),
    "AUTH_LOCKOUT_DURATION_SECONDS": ("lockout", "lockout_duration_seconds", int),
}


class ConfigLoader(IConfigLoader):
    """Chargement des configurations depuis fichiers YAML."""

    def __init__(self, configs_path: str = "fixtures/configs", environ: Optional[Mapping[str, str]] = None):
        self.configs_path = Path(configs_path)
        self._environ = os.environ if environ is None else environ

    async def load(self, name: str) -> AuthSettings:
        """
        Charge une configuration nommée.

        Args:
            name: Nom du fichier (sans extension .yaml)

        Returns:
            AuthSettings validés par le schéma

        Raises:
            ConfigIntegrityError: Si fichier inexistant ou structure invalide
        """
        config_file = self.configs_path / f"{name}.yaml"

        if not config_file.exists():
            raise ConfigIntegrityError(f"Configuration non trouvée: {name}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigIntegrityError(f"Erreur de parsing YAML: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"Erreur de lecture fichier: {e}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ConfigIntegrityError("Configuration doit être un objet YAML")

        return self.parse(config)

    def parse(self, data: Dict[str, Any]) -> AuthSettings:
        """
        Construit les settings depuis un dictionnaire.

        Raises:
            ConfigIntegrityError: Si une valeur ne respecte pas le schéma
        """
        merged = self._apply_env_overrides(data)
        try:
            return AuthSettings.model_validate(merged)
        except PydanticValidationError as e:
            raise ConfigIntegrityError(f"Configuration invalide: {e}")

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Copie la config et applique les variables AUTH_* présentes."""
        merged: Dict[str, Any] = {}
        for key, value in data.items():
            merged[key] = dict(value) if isinstance(value, dict) else value

        for env_name, (section, key, convert) in ENV_OVERRIDES.items():
            raw = self._environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                converted = convert(raw)
            except ValueError:
                raise ConfigIntegrityError(f"Valeur invalide pour {env_name}: {raw!r}")

            target = merged.get(section)
            if not isinstance(target, dict):
                target = {}
                merged[section] = target
            target[key] = converted

        return merged
