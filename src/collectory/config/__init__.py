"""Configuration management for Collectory."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import CollectoryConfig
from .resolver import ENV_PREFIX, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.collectory/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # Collectory configuration file
    # Manage with `collectory config edit` or `collectory config set KEY --value VALUE`.
    """
)


class ConfigManager:
    """Read, layer, and persist the YAML configuration file."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> CollectoryConfig:
        """Return the effective configuration after applying precedence rules.

        Args:
            cli_overrides: Dotted-key overrides with the highest precedence.
            include_env: Whether ``COLLECTORY__`` environment variables are applied.
            ensure_file: Create a default configuration file when missing.
            env_overrides: Explicit environment mapping used instead of ``os.environ``.

        Returns:
            CollectoryConfig: The validated configuration.

        Raises:
            ConfigError: If the file cannot be parsed or values are invalid.
        """
        if ensure_file:
            self.ensure_exists()

        env_layer = None
        if include_env:
            source = env_overrides if env_overrides is not None else self._env
            env_layer = self._extract_env(source) or None

        return resolve_with_precedence(
            defaults=CollectoryConfig(),
            file_overrides=self._read_file(),
            env_overrides=env_layer,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored on disk."""
        return self._read_file()

    def save(self, config: CollectoryConfig | Mapping[str, Any]) -> None:
        """Write configuration data to disk with the standard header."""
        if isinstance(config, CollectoryConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Create a configuration file populated with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(CollectoryConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    # Internal helpers -------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False, allow_unicode=True)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )

    def _extract_env(self, env: Mapping[str, str]) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for name, raw_value in env.items():
            if not name.startswith(ENV_PREFIX):
                continue
            segments = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
            if not segments:
                continue
            try:
                value = yaml.safe_load(raw_value)
            except yaml.YAMLError:
                value = raw_value
            node = overrides
            for segment in segments[:-1]:
                child = node.get(segment)
                if not isinstance(child, dict):
                    child = {}
                    node[segment] = child
                node = child
            node[segments[-1]] = value
        return overrides


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "CollectoryConfig",
    "resolve_with_precedence",
    "flatten_for_env",
    "ConfigError",
]
