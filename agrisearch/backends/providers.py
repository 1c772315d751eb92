"""Inference backends: one capability contract, two implementations."""

from abc import ABC, abstractmethod
from typing import Any

from agrisearch.backends.models import BackendConfig, BackendKind
from agrisearch.embeddings.models import EmbeddingResult
from agrisearch.embeddings.service import (
    EmbeddingService,
    FastEmbedService,
    HTTPEmbeddingService,
)
from agrisearch.llm.client import OpenAICompatibleClient
from agrisearch.llm.models import ChatEndpoint, GenerationResult, Message
from agrisearch.llm.prompts import ReportSummaryPromptTemplate, ReportType
from agrisearch.logging_config import get_logger

logger = get_logger(__name__)


class InferenceBackend(ABC):
    """Embedding and generation provider.

    Callers never branch on the concrete type; the backend selector is the
    only place that knows which implementation is active.
    """

    kind: BackendKind

    def __init__(
        self,
        embedder: EmbeddingService,
        llm_client: OpenAICompatibleClient,
        prompt_template: ReportSummaryPromptTemplate | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            embedder: Embedding service.
            llm_client: Chat client for generation.
            prompt_template: Report summary prompts.
        """
        self._embedder = embedder
        self._llm_client = llm_client
        self._prompt_template = prompt_template or ReportSummaryPromptTemplate()

    @abstractmethod
    async def initialize(self) -> None:
        """Perform whatever setup the backend needs before it can serve.

        Raises:
            AgriSearchError: If setup fails.
        """
        ...

    @property
    def embedding_model(self) -> str:
        """Identifier of the embedding model."""
        return self._embedder.model_name

    @property
    def dimensions(self) -> int:
        """Embedding dimensions."""
        return self._embedder.dimensions

    @property
    def generation_model(self) -> str:
        """Identifier of the chat model."""
        return self._llm_client.model_name

    async def embed(self, text: str) -> EmbeddingResult:
        """Compute the embedding of one text."""
        return await self._embedder.embed(text)

    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Run chat inference."""
        return await self._llm_client.generate(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def generate_summary(
        self,
        report_type: ReportType,
        report_data: dict[str, Any],
    ) -> GenerationResult:
        """Summarize a soil or water report."""
        system_prompt, user_prompt = self._prompt_template.build_prompt(
            report_type,
            report_data,
        )
        return await self._llm_client.generate_text(
            prompt=user_prompt,
            system_prompt=system_prompt,
        )

    async def close(self) -> None:
        """Release embedder and client resources."""
        await self._embedder.close()
        await self._llm_client.close()


class LocalBackend(InferenceBackend):
    """On-device backend: FastEmbed embeddings plus a local chat runtime."""

    kind = BackendKind.LOCAL

    async def initialize(self) -> None:
        """Download and load the embedding model, then probe the runtime.

        An unreachable chat runtime does not fail initialization; search and
        indexing only need embeddings.
        """
        await self._embedder.load()

        if not await self._llm_client.ping():
            logger.warning(
                "Local chat runtime unavailable, generation will fail",
                extra={"model": self.generation_model},
            )


class RemoteBackend(InferenceBackend):
    """Remote backend: hosted embedding API and chat gateway."""

    kind = BackendKind.REMOTE

    async def initialize(self) -> None:
        """Verify the embedding service is reachable."""
        await self._embedder.load()


def create_backend(config: BackendConfig) -> InferenceBackend:
    """Build the backend a config describes."""
    if config.kind == BackendKind.LOCAL:
        return LocalBackend(
            embedder=FastEmbedService(config.local),
            llm_client=OpenAICompatibleClient(ChatEndpoint.from_local(config.local)),
        )

    return RemoteBackend(
        embedder=HTTPEmbeddingService(config.remote),
        llm_client=OpenAICompatibleClient(ChatEndpoint.from_remote(config.remote)),
    )
