"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class DevicePreference(str, Enum):
    """Execution device for the on-device embedding model."""

    GPU = "gpu"
    CPU = "cpu"


class LocalModelVariant(str, Enum):
    """On-device chat model variants."""

    GEMMA_2B = "gemma-2b"
    GEMMA_7B = "gemma-7b"


class LocalBackendSettings(BaseSettings):
    """On-device inference configuration.

    Embeddings run in-process through FastEmbed. Generation talks to a
    local OpenAI-compatible runtime (Ollama by default), so no data leaves
    the machine.
    """

    model_config = SettingsConfigDict(env_prefix="LOCAL_")

    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="FastEmbed model used for on-device embeddings",
    )
    device: DevicePreference = Field(
        default=DevicePreference.GPU,
        description="Preferred execution device (falls back to CPU)",
    )
    cache_dir: Path | None = Field(
        default=None,
        description="Directory where downloaded models are cached",
    )
    embedding_batch_size: int = Field(
        default=16,
        description="Batch size for on-device embedding",
    )
    llm_base_url: str = Field(
        default="http://localhost:11434/v1",
        description="Local OpenAI-compatible runtime base URL",
    )
    llm_model: LocalModelVariant = Field(
        default=LocalModelVariant.GEMMA_2B,
        description="Local chat model variant",
    )
    max_tokens: int = Field(
        default=256,
        description="Maximum tokens in a local response",
    )
    temperature: float = Field(
        default=0.7,
        description="Sampling temperature for local generation",
    )
    timeout: float = Field(
        default=300.0,
        description="Local generation timeout in seconds",
    )


class RemoteBackendSettings(BaseSettings):
    """Remote inference service configuration.

    Both endpoints speak the OpenAI wire format.
    """

    model_config = SettingsConfigDict(env_prefix="REMOTE_")

    embedding_base_url: str = Field(
        default="http://localhost:8080",
        description="Remote embedding service base URL",
    )
    embedding_model: str = Field(
        default="BAAI/bge-small-en-v1.5",
        description="Remote embedding model name",
    )
    llm_base_url: str = Field(
        default="https://ai.gateway.lovable.dev/v1",
        description="Remote chat completions base URL",
    )
    llm_model: str = Field(
        default="google/gemini-2.5-flash",
        description="Remote chat model name",
    )
    api_key: SecretStr = Field(
        default=SecretStr("not-required"),
        description="API key for the remote service",
    )
    timeout: float = Field(
        default=60.0,
        description="Request timeout in seconds",
    )
    batch_size: int = Field(
        default=32,
        description="Batch size for embedding requests",
    )
    max_tokens: int = Field(
        default=1024,
        description="Maximum tokens in a remote response",
    )
    temperature: float = Field(
        default=0.3,
        description="Sampling temperature for remote generation",
    )


class StorageSettings(BaseSettings):
    """Local vector record storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    path: str = Field(
        default=".agrisearch/vectors",
        description="On-disk location of the local store (':memory:' for ephemeral)",
    )
    collection_prefix: str = Field(
        default="agrisearch",
        description="Prefix of the per-user collections",
    )
    max_records_per_user: int | None = Field(
        default=None,
        description="Optional per-user record quota",
    )


class SearchSettings(BaseSettings):
    """Similarity search defaults."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    default_limit: int = Field(
        default=10,
        description="Default maximum number of results",
    )
    default_threshold: float = Field(
        default=0.5,
        description="Default minimum similarity",
    )
    max_text_length: int = Field(
        default=512,
        description="Characters of text kept for embedding",
    )


class SelectionSettings(BaseSettings):
    """Automatic backend selection thresholds."""

    model_config = SettingsConfigDict(env_prefix="SELECTION_")

    slow_latency_ms: float = Field(
        default=2000.0,
        description="Latency above which a connection counts as slow",
    )
    low_battery_level: float = Field(
        default=0.2,
        description="Battery fraction below which battery saving kicks in",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="127.0.0.1",
        description="Local API server host",
    )
    api_port: int = Field(
        default=8000,
        description="Local API server port",
    )

    # Nested settings
    local: LocalBackendSettings = Field(default_factory=LocalBackendSettings)
    remote: RemoteBackendSettings = Field(default_factory=RemoteBackendSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    selection: SelectionSettings = Field(default_factory=SelectionSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
