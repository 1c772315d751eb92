"""Inference backends, their lifecycle, and local/remote selection."""

from agrisearch.backends.models import (
    BackendConfig,
    BackendKind,
    BackendState,
    BackendStatus,
)
from agrisearch.backends.policy import (
    ConnectionSpeed,
    SelectionDecision,
    SelectionReason,
    SelectionSignals,
    SmartSelection,
    classify_latency,
    decide_backend,
    measure_connection_speed,
)
from agrisearch.backends.providers import (
    InferenceBackend,
    LocalBackend,
    RemoteBackend,
    create_backend,
)
from agrisearch.backends.selector import BackendSelector

__all__ = [
    "BackendConfig",
    "BackendKind",
    "BackendSelector",
    "BackendState",
    "BackendStatus",
    "ConnectionSpeed",
    "InferenceBackend",
    "LocalBackend",
    "RemoteBackend",
    "SelectionDecision",
    "SelectionReason",
    "SelectionSignals",
    "SmartSelection",
    "classify_latency",
    "create_backend",
    "decide_backend",
    "measure_connection_speed",
]
