"""Semantic index facade: the public operations of one user session."""

from collections.abc import Callable, Sequence
from typing import Any

from agrisearch.backends.models import BackendConfig, BackendKind, BackendStatus
from agrisearch.backends.policy import SelectionDecision, SelectionSignals, SmartSelection
from agrisearch.backends.selector import BackendSelector
from agrisearch.config import Settings, get_settings
from agrisearch.documents.models import Document
from agrisearch.indexing.models import IndexingReport
from agrisearch.indexing.pipeline import IndexingPipeline
from agrisearch.llm.models import GenerationResult, Message
from agrisearch.llm.prompts import ReportType
from agrisearch.logging_config import get_logger
from agrisearch.search.engine import SimilaritySearchEngine
from agrisearch.search.models import SearchOptions, SearchResult
from agrisearch.state import IndexState, IndexStateTracker, StateListener
from agrisearch.vectorstore.models import StorageStats
from agrisearch.vectorstore.service import QdrantVectorRecordStore, VectorRecordStore

logger = get_logger(__name__)


class SemanticIndex:
    """On-device semantic document index for a single user session.

    Wires the backend selector, vector record store, indexing pipeline and
    search engine together. Every operation is scoped to ``user_id``.

    Example:
        index = SemanticIndex("user-1")
        await index.start()
        await index.initialize_backend()
        await index.index_documents(documents)
        results = await index.search_similar("corn nitrogen")
    """

    def __init__(
        self,
        user_id: str,
        settings: Settings | None = None,
        store: VectorRecordStore | None = None,
        selector: BackendSelector | None = None,
        selection: SmartSelection | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            user_id: Owner of the index.
            settings: Application settings. Uses cached settings if None.
            store: Vector record store, possibly shared between sessions.
            selector: Backend selector (for testing).
            selection: Selection mode controller (for testing).
        """
        self._user_id = user_id
        self._settings = settings or get_settings()
        self._store = store or QdrantVectorRecordStore(self._settings.storage)
        self._owns_store = store is None
        self._selector = selector or BackendSelector(BackendConfig.from_settings(self._settings))
        self._selection = selection or SmartSelection(self._settings.selection)
        self._state = IndexStateTracker()
        self._pipeline = IndexingPipeline(self._selector, self._store, self._state)
        self._engine = SimilaritySearchEngine(
            self._selector,
            self._store,
            self._state,
            self._settings.search,
        )

    @property
    def user_id(self) -> str:
        """Owner of the index."""
        return self._user_id

    @property
    def selector(self) -> BackendSelector:
        """The backend selector."""
        return self._selector

    @property
    def selection(self) -> SmartSelection:
        """The selection mode controller."""
        return self._selection

    async def start(self) -> IndexState:
        """Reset session state and load the document count from the store."""
        self._state.reset()
        await self._pipeline.refresh_total(self._user_id)
        logger.info(
            "Session started",
            extra={
                "user_id": self._user_id,
                "total_documents": self._state.snapshot().total_documents,
            },
        )
        return self._state.snapshot()

    def state(self) -> IndexState:
        """Current observable state."""
        return self._state.snapshot()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Receive every state change. Returns an unsubscribe callable."""
        return self._state.subscribe(listener)

    async def initialize_backend(self, config: BackendConfig | None = None) -> BackendStatus:
        """Bring a backend to the ready state.

        Args:
            config: Configuration to switch to first, if it differs.

        Raises:
            BackendInitializationError: If setup fails.
            BackendNotReadyError: If superseded by a configuration switch.
        """
        await self._selector.initialize(config)
        return self._selector.status()

    def is_backend_ready(self) -> bool:
        """True only when the active backend is ready."""
        return self._selector.is_ready()

    def backend_status(self) -> BackendStatus:
        """Snapshot of the backend selector."""
        return self._selector.status()

    async def apply_selection(self, signals: SelectionSignals) -> SelectionDecision:
        """Feed new signals to the selection policy and follow its decision.

        A change of backend kind switches the selector configuration, which
        leaves it uninitialized until ``initialize_backend`` is called.
        """
        decision = self._selection.update_signals(signals)
        await self._follow(decision)
        return decision

    async def set_manual_mode(self, use_local: bool) -> SelectionDecision:
        """Pin the backend kind regardless of signals."""
        decision = self._selection.set_manual_mode(use_local)
        await self._follow(decision)
        return decision

    async def enable_auto_mode(self) -> SelectionDecision:
        """Return to signal-driven selection."""
        decision = self._selection.enable_auto_mode()
        await self._follow(decision)
        return decision

    async def enable_privacy_mode(self) -> SelectionDecision:
        """Keep inference on device when the local backend is available."""
        decision = self._selection.enable_privacy_mode()
        await self._follow(decision)
        return decision

    async def enable_battery_saving_mode(self) -> SelectionDecision:
        """Avoid network inference when the local backend is available."""
        decision = self._selection.enable_battery_saving_mode()
        await self._follow(decision)
        return decision

    async def _follow(self, decision: SelectionDecision) -> None:
        kind = BackendKind.LOCAL if decision.prefer_local else BackendKind.REMOTE
        if await self._selector.use_kind(kind):
            logger.info(
                f"Selected {kind.value} backend",
                extra={"user_id": self._user_id, "reason": decision.reason.value},
            )

    async def index_documents(self, documents: Sequence[Document]) -> IndexingReport:
        """Embed and store documents; see ``IndexingPipeline.index_documents``."""
        return await self._pipeline.index_documents(self._user_id, documents)

    async def search_similar(
        self,
        query: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Rank the user's records by similarity to ``query``."""
        return await self._engine.search_similar(self._user_id, query, options)

    async def get_storage_info(self) -> StorageStats:
        """Count, estimated size and last update of the user's index."""
        return await self._store.stats(self._user_id)

    async def clear_index(self) -> int:
        """Delete all of the user's records. Returns how many were removed."""
        return await self._pipeline.clear_index(self._user_id)

    async def delete_document(self, document_id: str) -> bool:
        """Delete one record. Returns True if it existed."""
        return await self._pipeline.delete_document(self._user_id, document_id)

    async def export_index(self) -> str:
        """Serialize the user's records to JSON."""
        return await self._store.export_records(self._user_id)

    async def import_index(self, payload: str) -> int:
        """Load records from an export into this user's index."""
        return await self._pipeline.import_records(self._user_id, payload)

    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Run chat inference on the active backend."""
        return await self._selector.generate(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def generate_summary(
        self,
        report_type: ReportType,
        report_data: dict[str, Any],
    ) -> GenerationResult:
        """Summarize a soil or water report on the active backend."""
        return await self._selector.generate_summary(report_type, report_data)

    async def close(self) -> None:
        """Release the backend, and the store if this session created it."""
        await self._selector.close()
        if self._owns_store:
            await self._store.close()
