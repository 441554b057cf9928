"""Configuration models describing Collectory settings."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CollectoryBaseModel(BaseModel):
    """Shared configuration for Collectory Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class LLMSettings(CollectoryBaseModel):
    """Vision model configuration options.

    Attributes:
        provider: Identifier for the language-model provider.
        model: LiteLLM model name to target when classifying photos.
        temperature: Sampling temperature for generative calls.
        max_tokens: Maximum number of tokens in responses.
        api_key: Optional credential for hosted providers.
        api_base_url: Optional base URL for self-hosted or proxied endpoints.
    """

    provider: str = "gemini"
    model: str = "gemini/gemini-2.5-flash"
    temperature: float = 0.1
    max_tokens: int = 2_000
    api_key: Optional[str] = None
    api_base_url: Optional[str] = None


class StorageSettings(CollectoryBaseModel):
    """Settings for the local collection store.

    Attributes:
        directory: Directory backing the key-value store.
        key: Key under which the collection document is stored.
        export_directory: Default destination for backup exports.
        orphan_policy: How items pointing at unknown collections are treated on load/import.
    """

    directory: str = "~/.collectory/data"
    key: str = "COLLECTION_MASTER_DATA"
    export_directory: str = "."
    orphan_policy: Literal["keep", "drop"] = "keep"


class LoggingSettings(CollectoryBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 3


class CLIOptions(CollectoryBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
    """

    quiet_default: bool = False


class CollectoryConfig(CollectoryBaseModel):
    """Top-level configuration struct for Collectory.

    Attributes:
        llm: Vision model settings.
        storage: Local store settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    llm: LLMSettings = Field(default_factory=LLMSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "CollectoryBaseModel",
    "LLMSettings",
    "StorageSettings",
    "LoggingSettings",
    "CLIOptions",
    "CollectoryConfig",
]
