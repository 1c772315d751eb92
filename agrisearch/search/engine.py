"""Similarity search over a user's stored records."""

import time
from collections.abc import Iterable

from agrisearch.backends.selector import BackendSelector
from agrisearch.config import SearchSettings, get_settings
from agrisearch.embeddings.models import EmbeddingResult
from agrisearch.exceptions import (
    AgriSearchError,
    BackendNotReadyError,
    DimensionMismatchError,
    EmptyQueryError,
)
from agrisearch.logging_config import get_logger
from agrisearch.observability.metrics import track_search_request
from agrisearch.search.models import SearchOptions, SearchResult
from agrisearch.search.similarity import similarity_score
from agrisearch.state import IndexStateTracker
from agrisearch.vectorstore.models import VectorRecord
from agrisearch.vectorstore.service import VectorRecordStore

logger = get_logger(__name__)


def matches_filters(record: VectorRecord, options: SearchOptions) -> bool:
    """Check a record against the conjunctive metadata filters."""
    metadata = record.metadata
    if options.document_types and metadata.type not in options.document_types:
        return False
    if options.county_fips and metadata.county_fips != options.county_fips:
        return False
    if options.crop_type and metadata.crop_type != options.crop_type:
        return False
    return True


def _ranking_key(result: SearchResult) -> tuple[float, float, str]:
    # Highest similarity first, then newest, then id for a total order.
    return (
        -result.similarity,
        -result.document.metadata.created_at.timestamp(),
        result.document.id,
    )


def rank_records(
    query: EmbeddingResult,
    records: Iterable[VectorRecord],
    options: SearchOptions,
) -> list[SearchResult]:
    """Filter, score, threshold, sort and truncate records.

    Args:
        query: Embedding of the search query.
        records: Candidate records.
        options: Filters, threshold and limit.

    Returns:
        At most ``options.limit`` results, best first.

    Raises:
        DimensionMismatchError: If a candidate was embedded by a different
            model configuration than the query.
    """
    results: list[SearchResult] = []

    for record in records:
        if not matches_filters(record, options):
            continue

        if record.embedding_model != query.model or record.dimensions != query.dimensions:
            raise DimensionMismatchError(
                f"Record {record.id} was embedded with {record.embedding_model} "
                f"({record.dimensions} dimensions) but the active model is "
                f"{query.model} ({query.dimensions} dimensions); re-index required",
                details={
                    "id": record.id,
                    "record_model": record.embedding_model,
                    "record_dimensions": record.dimensions,
                    "query_model": query.model,
                    "query_dimensions": query.dimensions,
                },
            )

        similarity = similarity_score(query.embedding, record.embedding)
        if similarity < options.threshold:
            continue
        results.append(SearchResult(document=record, similarity=similarity))

    results.sort(key=_ranking_key)
    return results[: options.limit]


class SimilaritySearchEngine:
    """Answers similarity queries against the vector record store.

    The only suspension points are the query embedding and the store read;
    scoring runs synchronously over the snapshot the store returned.
    """

    def __init__(
        self,
        selector: BackendSelector,
        store: VectorRecordStore,
        state: IndexStateTracker,
        settings: SearchSettings | None = None,
    ) -> None:
        """Initialize the search engine.

        Args:
            selector: Gives access to the active embedding backend.
            store: Vector record store to scan.
            state: Observable state to report activity and errors to.
            settings: Search defaults.
        """
        self._selector = selector
        self._store = store
        self._state = state
        self._settings = settings or get_settings().search

    def default_options(self) -> SearchOptions:
        """Options built from the configured defaults."""
        return SearchOptions(
            limit=self._settings.default_limit,
            threshold=self._settings.default_threshold,
        )

    async def search_similar(
        self,
        user_id: str,
        query: str,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Find the user's records most similar to a query.

        Args:
            user_id: Owner of the index to search.
            query: Free-text query.
            options: Filters, threshold and limit. Configured defaults if None.

        Returns:
            Ranked results; empty when nothing clears the threshold.

        Raises:
            EmptyQueryError: If the query is blank. The backend is not called.
            BackendNotReadyError: If no backend is ready.
            DimensionMismatchError: If the index was built with another model.
            EmbeddingUnavailableError: If the query could not be embedded.
            StorageError: If the store could not be read.
        """
        options = options or self.default_options()
        started = time.perf_counter()
        self._state.begin_search()

        try:
            if not query or not query.strip():
                raise EmptyQueryError()
            if not self._selector.is_ready():
                raise BackendNotReadyError(details={"state": self._selector.state.value})

            query_embedding = await self._selector.embed(query)
            records = await self._store.get_all(user_id)
            results = rank_records(query_embedding, records, options)

        except AgriSearchError as e:
            self._state.set_search_error(e.message)
            track_search_request(time.perf_counter() - started, 0, 0.0, success=False)
            logger.warning(
                f"Search failed: {e.message}",
                extra={"user_id": user_id, "code": e.code.value},
            )
            raise

        finally:
            self._state.finish_search()

        duration = time.perf_counter() - started
        top_similarity = results[0].similarity if results else 0.0
        track_search_request(duration, len(results), top_similarity)
        logger.debug(
            f"Search returned {len(results)} of {len(records)} records",
            extra={
                "user_id": user_id,
                "query_length": len(query),
                "limit": options.limit,
                "threshold": options.threshold,
                "duration_ms": round(duration * 1000, 2),
            },
        )
        return results
