"""Embedding service interface and implementations.

Two interchangeable implementations share one contract: FastEmbed running
in-process (on-device) and an OpenAI-style HTTP embedding API (remote).
"""

import asyncio
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any, cast

import httpx
import onnxruntime
from fastembed import TextEmbedding

from agrisearch.config import (
    DevicePreference,
    LocalBackendSettings,
    RemoteBackendSettings,
    get_settings,
)
from agrisearch.embeddings.models import EmbeddingResult
from agrisearch.exceptions import EmbeddingUnavailableError, ValidationError
from agrisearch.logging_config import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")
_SPECIAL_CHARS = re.compile(r"[^\w\s\-.,!?]")

# Execution providers that mean "run on an accelerator".
_GPU_PROVIDERS = (
    "CUDAExecutionProvider",
    "DmlExecutionProvider",
    "CoreMLExecutionProvider",
)


def preprocess_text(text: str, max_length: int = 512) -> str:
    """Normalize text before embedding.

    Collapses whitespace, drops characters other than word characters,
    whitespace and basic punctuation, trims, and truncates.
    """
    cleaned = _WHITESPACE.sub(" ", text)
    cleaned = _SPECIAL_CHARS.sub("", cleaned)
    return cleaned.strip()[:max_length]


def _to_python_floats(vector: Iterable[float]) -> list[float]:
    """Coerce numpy/array outputs into plain Python floats."""
    if hasattr(vector, "tolist"):
        raw = cast(Any, vector).tolist()
        if isinstance(raw, list):
            return [float(value) for value in raw]
        return [float(raw)]
    return [float(value) for value in vector]


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Defines the interface for generating text embeddings.
    """

    max_text_length: int = 512

    @abstractmethod
    async def load(self) -> None:
        """Prepare the service (model download, connectivity check).

        Raises:
            EmbeddingUnavailableError: If the service cannot be prepared.
        """
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed.

        Returns:
            List of EmbeddingResult objects in input order.

        Raises:
            ValidationError: If any text is empty after trimming.
            EmbeddingUnavailableError: If embedding fails.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        ...

    async def embed(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text.

        Args:
            text: Text to embed.

        Returns:
            EmbeddingResult with vector.

        Raises:
            ValidationError: If the text is empty after trimming.
            EmbeddingUnavailableError: If embedding fails.
        """
        results = await self.embed_batch([text])
        return results[0]

    async def close(self) -> None:
        """Release resources held by the service."""
        return None

    def _prepare(self, texts: Sequence[str]) -> list[str]:
        for position, text in enumerate(texts):
            if not text or not text.strip():
                raise ValidationError(
                    "Text to embed must not be empty",
                    details={"position": position},
                )
        return [preprocess_text(text, self.max_text_length) for text in texts]


class FastEmbedService(EmbeddingService):
    """On-device embedding service using FastEmbed (ONNX Runtime).

    ``load`` downloads the model on first use and builds the inference
    session in a worker thread so the event loop stays responsive.
    """

    MODEL_DIMENSIONS = {
        "sentence-transformers/all-MiniLM-L6-v2": 384,
        "mixedbread-ai/mxbai-embed-xsmall-v1": 384,
        "BAAI/bge-small-en-v1.5": 384,
        "BAAI/bge-base-en-v1.5": 768,
    }

    def __init__(
        self,
        settings: LocalBackendSettings | None = None,
        max_text_length: int | None = None,
    ) -> None:
        """Initialize the on-device embedding service.

        Args:
            settings: On-device configuration. Uses defaults if not provided.
            max_text_length: Characters kept per text.
        """
        self._settings = settings or get_settings().local
        self.max_text_length = max_text_length or get_settings().search.max_text_length
        self._model: TextEmbedding | None = None
        self._dimensions: int | None = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.embedding_model

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions."""
        if self._dimensions is not None:
            return self._dimensions
        return self.MODEL_DIMENSIONS.get(self.model_name, 384)

    @property
    def is_loaded(self) -> bool:
        """Whether the model session has been created."""
        return self._model is not None

    def select_providers(self) -> list[str]:
        """Choose ONNX Runtime execution providers for the configured device."""
        available = onnxruntime.get_available_providers()
        if self._settings.device == DevicePreference.GPU:
            for provider in _GPU_PROVIDERS:
                if provider in available:
                    return [provider, "CPUExecutionProvider"]
            logger.info("No GPU execution provider available, using CPU")
        return ["CPUExecutionProvider"]

    def _create_model(self, providers: list[str]) -> TextEmbedding:
        cache_dir = self._settings.cache_dir
        return TextEmbedding(
            model_name=self.model_name,
            cache_dir=str(cache_dir) if cache_dir else None,
            providers=providers,
        )

    async def load(self) -> None:
        """Download (if needed) and load the embedding model."""
        if self._model is not None:
            return

        providers = self.select_providers()
        logger.info(
            f"Loading embedding model: {self.model_name}",
            extra={"providers": providers},
        )

        try:
            self._model = await asyncio.to_thread(self._create_model, providers)
        except Exception as e:
            raise EmbeddingUnavailableError(
                f"Failed to load embedding model {self.model_name}: {e}",
                details={"model": self.model_name, "error": str(e)},
            ) from e

    def _embed_sync(self, model: TextEmbedding, texts: list[str]) -> list[list[float]]:
        return [
            _to_python_floats(vector)
            for vector in model.embed(texts, batch_size=self._settings.embedding_batch_size)
        ]

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Embed texts with the loaded model."""
        if not texts:
            return []

        cleaned = self._prepare(texts)

        model = self._model
        if model is None:
            raise EmbeddingUnavailableError(
                "Embedding model is not loaded",
                details={"model": self.model_name},
            )

        try:
            vectors = await asyncio.to_thread(self._embed_sync, model, cleaned)
        except Exception as e:
            logger.error(f"On-device embedding failed: {e}")
            raise EmbeddingUnavailableError(
                f"Failed to generate text embedding: {e}",
                details={"model": self.model_name},
            ) from e

        if vectors and self._dimensions is None:
            self._dimensions = len(vectors[0])

        return [
            EmbeddingResult(
                text=text,
                embedding=vector,
                model=self.model_name,
                dimensions=len(vector),
            )
            for text, vector in zip(texts, vectors, strict=True)
        ]

    async def close(self) -> None:
        """Drop the model session."""
        self._model = None


class HTTPEmbeddingService(EmbeddingService):
    """Embedding service using HTTP API.

    Compatible with OpenAI-style embedding APIs and
    text-embeddings-inference (TEI) servers.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "BAAI/bge-large-en-v1.5": 1024,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-small-en-v1.5": 384,
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    PROBE_TEXT = "soil health check"

    def __init__(
        self,
        settings: RemoteBackendSettings | None = None,
        client: httpx.AsyncClient | None = None,
        max_text_length: int | None = None,
    ) -> None:
        """Initialize the HTTP embedding service.

        Args:
            settings: Remote configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one if not provided.
            max_text_length: Characters kept per text.
        """
        self._settings = settings or get_settings().remote
        self.max_text_length = max_text_length or get_settings().search.max_text_length
        self._client = client
        self._owns_client = client is None
        self._dimensions: int | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.embedding_model

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions."""
        if self._dimensions is not None:
            return self._dimensions
        return self.MODEL_DIMENSIONS.get(self._settings.embedding_model, 1024)

    def _headers(self) -> dict[str, str]:
        api_key = self._settings.api_key.get_secret_value()
        if api_key and api_key != "not-required":
            return {"Authorization": f"Bearer {api_key}"}
        return {}

    async def load(self) -> None:
        """Check connectivity by embedding a probe text."""
        await self.embed(self.PROBE_TEXT)
        logger.info(
            f"Remote embedding service reachable: {self.model_name}",
            extra={"dimensions": self.dimensions},
        )

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts."""
        if not texts:
            return []

        cleaned = self._prepare(texts)
        client = await self._get_client()
        url = f"{self._settings.embedding_base_url}/embeddings"

        all_results: list[EmbeddingResult] = []
        batch_size = self._settings.batch_size

        for i in range(0, len(texts), batch_size):
            batch_results = await self._embed_batch_request(
                client,
                url,
                texts[i : i + batch_size],
                cleaned[i : i + batch_size],
            )
            all_results.extend(batch_results)

        return all_results

    async def _embed_batch_request(
        self,
        client: httpx.AsyncClient,
        url: str,
        texts: list[str],
        cleaned: list[str],
    ) -> list[EmbeddingResult]:
        """Make embedding request for a batch.

        Args:
            client: HTTP client.
            url: Embedding endpoint URL.
            texts: Original texts of the batch.
            cleaned: Preprocessed texts sent to the service.

        Returns:
            List of EmbeddingResult objects.

        Raises:
            EmbeddingUnavailableError: If request fails.
        """
        payload = {
            "input": cleaned,
            "model": self._settings.embedding_model,
        }

        try:
            response = await client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"url": url, "status": e.response.status_code},
            )
            raise EmbeddingUnavailableError(
                f"Embedding service returned {e.response.status_code}",
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Embedding request error: {e}", extra={"url": url})
            raise EmbeddingUnavailableError(
                f"Failed to connect to embedding service: {e}",
                details={"url": url},
            ) from e

        try:
            embeddings = response.json()["data"]
            if len(embeddings) != len(texts):
                raise ValueError(f"expected {len(texts)} embeddings, got {len(embeddings)}")

            results: list[EmbeddingResult] = []
            for text, emb_data in zip(texts, embeddings, strict=True):
                embedding = [float(v) for v in emb_data["embedding"]]

                if self._dimensions is None:
                    if embedding:
                        self._dimensions = len(embedding)
                elif len(embedding) != self._dimensions:
                    raise EmbeddingUnavailableError(
                        f"Embedding service returned {len(embedding)} dimensions, "
                        f"expected {self._dimensions}",
                        details={"expected": self._dimensions, "actual": len(embedding)},
                    )

                results.append(
                    EmbeddingResult(
                        text=text,
                        embedding=embedding,
                        model=self._settings.embedding_model,
                        dimensions=len(embedding),
                    )
                )

            return results

        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingUnavailableError(
                f"Invalid response from embedding service: {e}",
                details={"error": str(e)},
            ) from e
