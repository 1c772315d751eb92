"""Backend selector: lifecycle state machine for the active inference backend."""

import asyncio
import time
from collections.abc import Callable
from typing import Any

from agrisearch.backends.models import (
    BackendConfig,
    BackendKind,
    BackendState,
    BackendStatus,
)
from agrisearch.backends.providers import InferenceBackend, create_backend
from agrisearch.embeddings.models import EmbeddingResult
from agrisearch.exceptions import (
    AgriSearchError,
    BackendInitializationError,
    BackendNotReadyError,
)
from agrisearch.llm.models import GenerationResult, Message
from agrisearch.llm.prompts import ReportType
from agrisearch.logging_config import get_logger
from agrisearch.observability.metrics import (
    track_backend_initialization,
    track_backend_state,
    track_embedding_request,
)

logger = get_logger(__name__)

BackendFactory = Callable[[BackendConfig], InferenceBackend]

_ALL_STATES = [state.value for state in BackendState]


class BackendSelector:
    """Owns the one active inference backend and its lifecycle.

    States move ``uninitialized -> initializing -> ready | failed``. A
    configuration change from any state returns to ``uninitialized``.

    Every swap bumps an internal generation counter. Calls that were issued
    against an older generation fail with ``BackendNotReadyError`` instead of
    returning results from a backend that is no longer active.
    """

    def __init__(
        self,
        config: BackendConfig,
        backend_factory: BackendFactory = create_backend,
    ) -> None:
        """Initialize the selector.

        Args:
            config: Initial backend configuration.
            backend_factory: Builds a backend from a config (for testing).
        """
        self._config = config
        self._factory = backend_factory
        self._backend: InferenceBackend | None = None
        self._init_task: asyncio.Task[None] | None = None
        self._generation = 0
        self._error: str | None = None
        self._state = BackendState.UNINITIALIZED
        self._set_state(BackendState.UNINITIALIZED)

    @property
    def state(self) -> BackendState:
        """Current lifecycle state."""
        return self._state

    @property
    def config(self) -> BackendConfig:
        """Current backend configuration."""
        return self._config

    @property
    def active_embedding_model(self) -> str:
        """Embedding model of the current configuration."""
        if self._backend is not None:
            return self._backend.embedding_model
        return self._config.embedding_model

    def is_ready(self) -> bool:
        """True only in the ready state."""
        return self._state == BackendState.READY

    def status(self) -> BackendStatus:
        """Snapshot of the selector for display."""
        return BackendStatus(
            kind=self._config.kind,
            state=self._state,
            embedding_model=self.active_embedding_model,
            dimensions=self._backend.dimensions if self._backend is not None else None,
            error=self._error,
        )

    def _set_state(self, state: BackendState) -> None:
        if state != self._state:
            logger.info(
                f"Backend state: {self._state.value} -> {state.value}",
                extra={"backend": self._config.kind.value},
            )
        self._state = state
        track_backend_state(self._config.kind.value, state.value, _ALL_STATES)

    async def initialize(self, config: BackendConfig | None = None) -> None:
        """Bring the configured backend to the ready state.

        Calls made while an initialization is in flight wait for that one
        instead of starting another.

        Args:
            config: Configuration to switch to first, if it differs.

        Raises:
            BackendInitializationError: If backend setup fails.
            BackendNotReadyError: If the configuration was switched while
                this call was waiting.
        """
        if config is not None:
            await self.switch_config(config)

        if self._state == BackendState.READY:
            return

        if self._init_task is None or self._init_task.done():
            self._error = None
            self._set_state(BackendState.INITIALIZING)
            self._init_task = asyncio.create_task(
                self._run_initialization(self._config, self._generation)
            )

        task = self._init_task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or not current.cancelling()):
                raise BackendNotReadyError(
                    "Backend initialization was cancelled",
                    details={"backend": self._config.kind.value},
                ) from None
            raise

    async def _run_initialization(
        self,
        config: BackendConfig,
        generation: int,
    ) -> None:
        kind = config.kind.value
        started = time.perf_counter()
        backend: InferenceBackend | None = None

        try:
            backend = self._factory(config)
            await backend.initialize()
        except asyncio.CancelledError:
            logger.info("Backend initialization cancelled", extra={"backend": kind})
            if backend is not None:
                await backend.close()
            raise
        except Exception as e:
            track_backend_initialization(kind, time.perf_counter() - started, success=False)
            if backend is not None:
                await backend.close()
            message = e.message if isinstance(e, AgriSearchError) else str(e)
            logger.error(
                f"Backend initialization failed: {message}",
                extra={"backend": kind},
            )
            if generation == self._generation:
                self._error = message
                self._set_state(BackendState.FAILED)
            raise BackendInitializationError(
                f"Backend initialization failed: {message}",
                details={"backend": kind, "error": message},
            ) from e

        if generation != self._generation:
            await backend.close()
            raise BackendNotReadyError(
                "Backend configuration changed during initialization",
                details={"backend": kind},
            )

        track_backend_initialization(kind, time.perf_counter() - started, success=True)
        self._backend = backend
        self._set_state(BackendState.READY)
        logger.info(
            "Backend ready",
            extra={
                "backend": kind,
                "embedding_model": backend.embedding_model,
                "dimensions": backend.dimensions,
            },
        )

    async def switch_config(self, config: BackendConfig) -> bool:
        """Replace the configuration, tearing down the current backend.

        The swap itself happens before the first suspension point, so no
        caller ever sees a half-swapped backend. An in-flight initialization
        is cancelled.

        Returns:
            True if the configuration changed.
        """
        if config == self._config:
            return False

        old_backend = self._backend
        old_task = self._init_task

        self._generation += 1
        self._config = config
        self._backend = None
        self._init_task = None
        self._error = None
        self._set_state(BackendState.UNINITIALIZED)

        logger.info(
            "Backend configuration switched",
            extra={"backend": config.kind.value, "embedding_model": config.embedding_model},
        )

        if old_task is not None and not old_task.done():
            old_task.cancel()
        if old_backend is not None:
            await old_backend.close()
        return True

    async def use_kind(self, kind: BackendKind) -> bool:
        """Switch between the local and remote backend."""
        return await self.switch_config(self._config.with_kind(kind))

    def _require_ready(self) -> tuple[InferenceBackend, int]:
        if self._state != BackendState.READY or self._backend is None:
            raise BackendNotReadyError(details={"state": self._state.value})
        return self._backend, self._generation

    def _check_generation(self, generation: int, cause: Exception | None = None) -> None:
        if generation == self._generation:
            return
        error = BackendNotReadyError(
            "Backend was switched while the request was running",
            details={"state": self._state.value},
        )
        if cause is not None:
            raise error from cause
        raise error

    async def embed(self, text: str) -> EmbeddingResult:
        """Embed text with the active backend.

        Raises:
            BackendNotReadyError: If no backend is ready, or it was swapped
                out before the embedding completed.
            ValidationError: If the text is empty.
            EmbeddingUnavailableError: If the provider call fails.
        """
        backend, generation = self._require_ready()
        kind = backend.kind.value
        started = time.perf_counter()

        try:
            result = await backend.embed(text)
        except Exception as e:
            track_embedding_request(
                kind, backend.embedding_model, time.perf_counter() - started, success=False
            )
            self._check_generation(generation, e)
            raise

        self._check_generation(generation)
        track_embedding_request(kind, backend.embedding_model, time.perf_counter() - started)
        return result

    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Run chat inference on the active backend."""
        backend, generation = self._require_ready()
        try:
            result = await backend.generate(
                messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            self._check_generation(generation, e)
            raise

        self._check_generation(generation)
        return result

    async def generate_summary(
        self,
        report_type: ReportType,
        report_data: dict[str, Any],
    ) -> GenerationResult:
        """Summarize a report on the active backend."""
        backend, generation = self._require_ready()
        try:
            result = await backend.generate_summary(report_type, report_data)
        except Exception as e:
            self._check_generation(generation, e)
            raise

        self._check_generation(generation)
        return result

    async def close(self) -> None:
        """Cancel initialization and release the active backend."""
        task = self._init_task
        backend = self._backend

        self._generation += 1
        self._init_task = None
        self._backend = None
        self._set_state(BackendState.UNINITIALIZED)

        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if backend is not None:
            await backend.close()
