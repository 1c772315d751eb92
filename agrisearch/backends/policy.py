"""Automatic local/remote backend selection.

``decide_backend`` is a pure function of device and network signals.
``SmartSelection`` layers manual, privacy and battery-saving modes on top
of it; an explicit manual choice always wins over the automatic policy.
"""

import time
from enum import Enum

import httpx
from pydantic import BaseModel, ConfigDict, Field

from agrisearch.config import SelectionSettings, get_settings
from agrisearch.logging_config import get_logger

logger = get_logger(__name__)


class SelectionReason(str, Enum):
    """Why a backend was chosen."""

    MANUAL = "manual"
    OFFLINE = "offline"
    SLOW_CONNECTION = "slow_connection"
    PRIVACY_MODE = "privacy_mode"
    BATTERY_SAVING = "battery_saving"
    AUTO_FALLBACK = "auto_fallback"


class ConnectionSpeed(str, Enum):
    """Coarse network speed classification."""

    FAST = "fast"
    SLOW = "slow"
    UNKNOWN = "unknown"


class SelectionSignals(BaseModel):
    """External signals the automatic policy reads.

    Attributes:
        is_online: Whether the device has network connectivity.
        connection_speed: Measured connection speed.
        battery_level: Charge in [0, 1], or None if unknown.
        is_charging: Whether the device is plugged in.
        privacy_preferred: The user asked for data to stay on device.
        local_available: The on-device backend can be used.
    """

    model_config = ConfigDict(frozen=True)

    is_online: bool = Field(default=True, description="Network connectivity")
    connection_speed: ConnectionSpeed = Field(
        default=ConnectionSpeed.UNKNOWN,
        description="Measured connection speed",
    )
    battery_level: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Battery charge between 0 and 1",
    )
    is_charging: bool = Field(default=False, description="Device is charging")
    privacy_preferred: bool = Field(default=False, description="Keep data on device")
    local_available: bool = Field(default=False, description="On-device backend usable")


class SelectionDecision(BaseModel):
    """Outcome of backend selection."""

    model_config = ConfigDict(frozen=True)

    prefer_local: bool = Field(description="Run inference on device")
    reason: SelectionReason = Field(description="Why this backend was chosen")


_STATUS_MESSAGES = {
    SelectionReason.OFFLINE: "Using offline mode - no internet connection",
    SelectionReason.SLOW_CONNECTION: "Using local mode - slow internet detected",
    SelectionReason.PRIVACY_MODE: "Privacy mode - data stays on your device",
    SelectionReason.BATTERY_SAVING: "Battery saving mode - reduced network usage",
    SelectionReason.AUTO_FALLBACK: "Auto-selected cloud mode for best performance",
}


def classify_latency(latency_ms: float | None, threshold_ms: float) -> ConnectionSpeed:
    """Classify a round-trip latency.

    Args:
        latency_ms: Measured latency, or None if the probe did not run.
        threshold_ms: Latencies above this are slow.
    """
    if latency_ms is None:
        return ConnectionSpeed.UNKNOWN
    if latency_ms > threshold_ms:
        return ConnectionSpeed.SLOW
    return ConnectionSpeed.FAST


async def measure_connection_speed(
    url: str,
    client: httpx.AsyncClient,
    threshold_ms: float | None = None,
) -> ConnectionSpeed:
    """Time a HEAD request and classify the result.

    A failed probe counts as a slow connection.
    """
    if threshold_ms is None:
        threshold_ms = get_settings().selection.slow_latency_ms

    started = time.perf_counter()
    try:
        response = await client.head(url, headers={"Cache-Control": "no-cache"})
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Connection probe failed: {e}")
        return ConnectionSpeed.SLOW

    latency_ms = (time.perf_counter() - started) * 1000
    return classify_latency(latency_ms, threshold_ms)


def decide_backend(
    signals: SelectionSignals,
    low_battery_level: float = 0.2,
) -> SelectionDecision:
    """Choose between the local and remote backend.

    Local is chosen only when it is available, for the first matching
    reason in order: privacy preference, no connectivity, low battery while
    discharging, slow connection. Everything else falls back to remote.
    """
    if signals.local_available:
        if signals.privacy_preferred:
            return SelectionDecision(prefer_local=True, reason=SelectionReason.PRIVACY_MODE)
        if not signals.is_online:
            return SelectionDecision(prefer_local=True, reason=SelectionReason.OFFLINE)
        if (
            signals.battery_level is not None
            and signals.battery_level < low_battery_level
            and not signals.is_charging
        ):
            return SelectionDecision(prefer_local=True, reason=SelectionReason.BATTERY_SAVING)
        if signals.connection_speed == ConnectionSpeed.SLOW:
            return SelectionDecision(prefer_local=True, reason=SelectionReason.SLOW_CONNECTION)

    return SelectionDecision(prefer_local=False, reason=SelectionReason.AUTO_FALLBACK)


class SmartSelection:
    """Tracks the user's selection mode and the latest signals."""

    def __init__(
        self,
        settings: SelectionSettings | None = None,
        signals: SelectionSignals | None = None,
    ) -> None:
        """Initialize in auto mode with remote preferred until signals arrive."""
        self._settings = settings or get_settings().selection
        self._signals = signals or SelectionSignals()
        self._manual_override: bool | None = None
        self._decision = SelectionDecision(
            prefer_local=False,
            reason=SelectionReason.MANUAL,
        )

    @property
    def signals(self) -> SelectionSignals:
        """Latest signals."""
        return self._signals

    @property
    def decision(self) -> SelectionDecision:
        """Current decision."""
        return self._decision

    @property
    def is_auto_mode(self) -> bool:
        """True when no manual choice is in effect."""
        return self._manual_override is None

    def _evaluate(self) -> SelectionDecision:
        if self._manual_override is None:
            self._decision = decide_backend(self._signals, self._settings.low_battery_level)
        return self._decision

    def update_signals(self, signals: SelectionSignals) -> SelectionDecision:
        """Record new signals and re-evaluate if in auto mode."""
        self._signals = signals
        return self._evaluate()

    def set_manual_mode(self, use_local: bool) -> SelectionDecision:
        """Pin the backend regardless of signals."""
        self._manual_override = use_local
        self._decision = SelectionDecision(prefer_local=use_local, reason=SelectionReason.MANUAL)
        return self._decision

    def enable_auto_mode(self) -> SelectionDecision:
        """Drop any manual choice and follow the signals."""
        self._manual_override = None
        return self._evaluate()

    def _pin_local(self, reason: SelectionReason) -> SelectionDecision:
        if not self._signals.local_available:
            logger.info(f"Cannot enable {reason.value}: on-device backend unavailable")
            return self._decision
        self._manual_override = True
        self._decision = SelectionDecision(prefer_local=True, reason=reason)
        return self._decision

    def enable_privacy_mode(self) -> SelectionDecision:
        """Keep inference on device. No-op unless local is available."""
        return self._pin_local(SelectionReason.PRIVACY_MODE)

    def enable_battery_saving_mode(self) -> SelectionDecision:
        """Avoid network inference. No-op unless local is available."""
        return self._pin_local(SelectionReason.BATTERY_SAVING)

    def status_message(self) -> str:
        """User-facing description of the current choice."""
        if self._decision.reason == SelectionReason.MANUAL:
            return "Manual offline mode" if self._decision.prefer_local else "Manual cloud mode"
        return _STATUS_MESSAGES[self._decision.reason]
