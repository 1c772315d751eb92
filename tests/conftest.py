"""Pytest configuration and shared fixtures."""

import asyncio
import re
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from agrisearch.api.app import app
from agrisearch.api.sessions import SessionRegistry, get_registry
from agrisearch.backends.models import BackendConfig, BackendKind
from agrisearch.backends.providers import InferenceBackend
from agrisearch.backends.selector import BackendSelector
from agrisearch.config import (
    LocalBackendSettings,
    RemoteBackendSettings,
    Settings,
    StorageSettings,
)
from agrisearch.documents.models import Document, DocumentMetadata, DocumentType
from agrisearch.embeddings.models import EmbeddingResult
from agrisearch.embeddings.service import EmbeddingService
from agrisearch.exceptions import EmbeddingUnavailableError
from agrisearch.llm.models import GenerationResult
from agrisearch.service import SemanticIndex
from agrisearch.vectorstore.service import QdrantVectorRecordStore

SMALL_MODEL = "fake/keywords-small"
LARGE_MODEL = "fake/keywords-large"
REMOTE_MODEL = "fake/keywords-remote"

VOCABULARY = (
    "corn",
    "nitrogen",
    "soil",
    "water",
    "planting",
    "wheat",
    "phosphorus",
    "irrigation",
)

_TOKEN = re.compile(r"[a-z]+")


class KeywordEmbeddingService(EmbeddingService):
    """Deterministic embedder: one dimension per vocabulary keyword.

    ``extra_dimensions`` pads the vector so that two model names yield
    vectors of different lengths. ``load_gate`` lets a test hold ``load``
    open to observe the initializing state.
    """

    max_text_length = 512

    def __init__(
        self,
        model_name: str = SMALL_MODEL,
        extra_dimensions: int = 0,
        load_gate: asyncio.Event | None = None,
        fail_load: bool = False,
    ) -> None:
        self._model_name = model_name
        self._extra_dimensions = extra_dimensions
        self._load_gate = load_gate
        self._fail_load = fail_load
        self.load_calls = 0
        self.embed_calls = 0
        self.failing_texts: set[str] = set()
        self.closed = False

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int:
        return len(VOCABULARY) + self._extra_dimensions

    async def load(self) -> None:
        self.load_calls += 1
        if self._load_gate is not None:
            await self._load_gate.wait()
        if self._fail_load:
            raise EmbeddingUnavailableError("model download failed")

    def vector_for(self, text: str) -> list[float]:
        tokens = _TOKEN.findall(text.lower())
        vector = [float(tokens.count(word)) for word in VOCABULARY]
        return vector + [0.0] * self._extra_dimensions

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        cleaned = self._prepare(texts)
        self.embed_calls += len(texts)
        results = []
        for text, clean in zip(texts, cleaned, strict=True):
            if text in self.failing_texts:
                raise EmbeddingUnavailableError(f"cannot embed {text!r}")
            await asyncio.sleep(0)
            results.append(
                EmbeddingResult(text=text, embedding=self.vector_for(clean), model=self.model_name)
            )
        return results

    async def close(self) -> None:
        self.closed = True


def make_llm_client(content: str = "Summary text", reachable: bool = True) -> MagicMock:
    """Mock OpenAI-compatible client."""
    client = MagicMock()
    client.model_name = "gemma:2b"
    client.ping = AsyncMock(return_value=reachable)
    result = GenerationResult(content=content, model="gemma:2b", total_tokens=12)
    client.generate = AsyncMock(return_value=result)
    client.generate_text = AsyncMock(return_value=result)
    client.close = AsyncMock()
    return client


class FakeBackend(InferenceBackend):
    """Backend whose initialize loads the keyword embedder."""

    def __init__(self, kind: BackendKind, embedder: KeywordEmbeddingService) -> None:
        super().__init__(embedder=embedder, llm_client=make_llm_client())
        self.kind = kind
        self.embedder = embedder

    async def initialize(self) -> None:
        await self._embedder.load()


class FakeBackendFactory:
    """Backend factory recording every backend it builds."""

    def __init__(self) -> None:
        self.built: list[FakeBackend] = []
        self.load_gate: asyncio.Event | None = None
        self.fail_load = False

    def __call__(self, config: BackendConfig) -> FakeBackend:
        model = config.embedding_model
        embedder = KeywordEmbeddingService(
            model_name=model,
            extra_dimensions=8 if model == LARGE_MODEL else 0,
            load_gate=self.load_gate,
            fail_load=self.fail_load,
        )
        backend = FakeBackend(config.kind, embedder)
        self.built.append(backend)
        return backend

    @property
    def last(self) -> FakeBackend:
        return self.built[-1]


@pytest.fixture
def test_settings() -> Settings:
    """Settings with an in-memory store and fake model names."""
    return Settings(
        local=LocalBackendSettings(embedding_model=SMALL_MODEL),
        remote=RemoteBackendSettings(embedding_model=REMOTE_MODEL),
        storage=StorageSettings(path=":memory:"),
    )


@pytest.fixture
def backend_config(test_settings: Settings) -> BackendConfig:
    """Local backend config using the small keyword model."""
    return BackendConfig.from_settings(test_settings)


@pytest.fixture
def backend_factory() -> FakeBackendFactory:
    """Factory producing keyword-embedding backends."""
    return FakeBackendFactory()


@pytest.fixture
def selector(
    backend_config: BackendConfig,
    backend_factory: FakeBackendFactory,
) -> BackendSelector:
    """Uninitialized selector over fake backends."""
    return BackendSelector(backend_config, backend_factory=backend_factory)


@pytest.fixture
async def store() -> AsyncGenerator[QdrantVectorRecordStore, None]:
    """Qdrant store in local in-memory mode."""
    record_store = QdrantVectorRecordStore(StorageSettings(path=":memory:"))
    yield record_store
    await record_store.close()


@pytest.fixture
async def semantic_index(
    test_settings: Settings,
    store: QdrantVectorRecordStore,
    selector: BackendSelector,
) -> AsyncGenerator[SemanticIndex, None]:
    """Started session for user-1 with an uninitialized backend."""
    index = SemanticIndex("user-1", settings=test_settings, store=store, selector=selector)
    await index.start()
    yield index
    await index.close()


@pytest.fixture
def make_document() -> Callable[..., Document]:
    """Build documents with sensible metadata defaults."""
    base_time = datetime(2024, 5, 1, tzinfo=UTC)

    def _make(
        doc_id: str,
        text: str,
        doc_type: DocumentType = DocumentType.SOIL_ANALYSIS,
        user_id: str = "user-1",
        county_fips: str | None = None,
        crop_type: str | None = None,
        age_days: int = 0,
    ) -> Document:
        return Document(
            id=doc_id,
            text=text,
            metadata=DocumentMetadata(
                type=doc_type,
                user_id=user_id,
                county_fips=county_fips,
                crop_type=crop_type,
                created_at=base_time - timedelta(days=age_days),
            ),
        )

    return _make


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def api_registry(
    test_settings: Settings,
    backend_factory: FakeBackendFactory,
) -> AsyncGenerator[SessionRegistry, None]:
    """Session registry over fake backends, installed on the app."""
    registry = SessionRegistry(
        settings=test_settings,
        store=QdrantVectorRecordStore(StorageSettings(path=":memory:")),
        backend_factory=backend_factory,
    )
    app.dependency_overrides[get_registry] = lambda: registry
    yield registry
    app.dependency_overrides.pop(get_registry, None)
    await registry.close()
