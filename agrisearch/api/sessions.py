"""Per-user semantic index sessions for the HTTP API."""

import asyncio
from functools import lru_cache

from agrisearch.backends.models import BackendConfig
from agrisearch.backends.providers import create_backend
from agrisearch.backends.selector import BackendFactory, BackendSelector
from agrisearch.config import Settings, get_settings
from agrisearch.logging_config import get_logger
from agrisearch.service import SemanticIndex
from agrisearch.vectorstore.service import QdrantVectorRecordStore, VectorRecordStore

logger = get_logger(__name__)


class SessionRegistry:
    """Creates one SemanticIndex per user, all sharing a single store."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: VectorRecordStore | None = None,
        backend_factory: BackendFactory = create_backend,
    ) -> None:
        """Initialize the registry.

        Args:
            settings: Application settings.
            store: Shared vector record store (for testing).
            backend_factory: Builds inference backends (for testing).
        """
        self._settings = settings or get_settings()
        self._store = store or QdrantVectorRecordStore(self._settings.storage)
        self._backend_factory = backend_factory
        self._sessions: dict[str, SemanticIndex] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, user_id: str) -> SemanticIndex:
        """Return the user's session, starting it on first use."""
        async with self._lock:
            index = self._sessions.get(user_id)
            if index is None:
                selector = BackendSelector(
                    BackendConfig.from_settings(self._settings),
                    backend_factory=self._backend_factory,
                )
                index = SemanticIndex(
                    user_id,
                    settings=self._settings,
                    store=self._store,
                    selector=selector,
                )
                await index.start()
                self._sessions[user_id] = index
                logger.info("Opened session", extra={"user_id": user_id})
        return index

    async def check_storage(self) -> bool:
        """Probe the store with a cheap read."""
        await self._store.stats("__readiness__")
        return True

    async def close(self) -> None:
        """Close every session and the shared store."""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for index in sessions:
            await index.close()
        await self._store.close()


@lru_cache
def get_registry() -> SessionRegistry:
    """Get the process-wide session registry."""
    return SessionRegistry()
