"""Inference backend data models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from agrisearch.config import LocalBackendSettings, RemoteBackendSettings, Settings


class BackendKind(str, Enum):
    """Where inference runs."""

    LOCAL = "local"
    REMOTE = "remote"


class BackendState(str, Enum):
    """Lifecycle of the active inference backend."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class BackendConfig(BaseModel):
    """Complete configuration of an inference backend.

    Two configs are equal only if every field matches; any difference
    forces the selector to re-initialize.
    """

    model_config = ConfigDict(frozen=True)

    kind: BackendKind = Field(default=BackendKind.LOCAL, description="Backend kind")
    local: LocalBackendSettings = Field(description="On-device settings")
    remote: RemoteBackendSettings = Field(description="Remote service settings")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        kind: BackendKind = BackendKind.LOCAL,
    ) -> "BackendConfig":
        """Build a config from application settings."""
        return cls(kind=kind, local=settings.local, remote=settings.remote)

    def with_kind(self, kind: BackendKind) -> "BackendConfig":
        """Same settings, different backend kind."""
        return self.model_copy(update={"kind": kind})

    @property
    def embedding_model(self) -> str:
        """Embedding model the config selects."""
        if self.kind == BackendKind.LOCAL:
            return self.local.embedding_model
        return self.remote.embedding_model


class BackendStatus(BaseModel):
    """Observable snapshot of the backend selector."""

    kind: BackendKind = Field(description="Configured backend kind")
    state: BackendState = Field(description="Lifecycle state")
    embedding_model: str = Field(description="Configured embedding model")
    dimensions: int | None = Field(default=None, description="Vector size when ready")
    error: str | None = Field(default=None, description="Cause of the last failure")
