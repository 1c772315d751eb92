"""Indexing pipeline: documents in, embedded records stored."""

import asyncio
from collections import defaultdict
from collections.abc import Sequence

from agrisearch.backends.selector import BackendSelector
from agrisearch.documents.models import Document
from agrisearch.exceptions import AgriSearchError, BackendNotReadyError
from agrisearch.indexing.models import IndexingFailure, IndexingReport
from agrisearch.logging_config import get_logger
from agrisearch.observability.metrics import track_indexed_documents
from agrisearch.state import IndexStateTracker
from agrisearch.vectorstore.models import VectorRecord
from agrisearch.vectorstore.service import VectorRecordStore

logger = get_logger(__name__)


class IndexingPipeline:
    """Embeds documents and writes them to the vector record store.

    Batches for the same user run one at a time; a second call waits for
    the first to finish so progress always describes a single batch.
    """

    def __init__(
        self,
        selector: BackendSelector,
        store: VectorRecordStore,
        state: IndexStateTracker,
    ) -> None:
        """Initialize the pipeline.

        Args:
            selector: Gives access to the active embedding backend.
            store: Destination for the records.
            state: Observable state to report progress to.
        """
        self._selector = selector
        self._store = store
        self._state = state
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        return self._locks[user_id]

    async def index_documents(
        self,
        user_id: str,
        documents: Sequence[Document],
    ) -> IndexingReport:
        """Embed and store documents in input order.

        A failing document is recorded in the report and the batch goes on;
        documents stored before it stay stored. Each document is stamped
        with ``user_id`` as its owner.

        Args:
            user_id: Owner of the index.
            documents: Documents to index. Existing ids are overwritten.

        Returns:
            Ids that were indexed and the documents that failed.

        Raises:
            BackendNotReadyError: If no backend is ready when the batch starts.
        """
        async with self._lock_for(user_id):
            if not self._selector.is_ready():
                error = BackendNotReadyError(details={"state": self._selector.state.value})
                self._state.set_error(error.message)
                raise error

            report = IndexingReport()
            total = len(documents)
            self._state.begin_indexing()
            if total == 0:
                self._state.set_progress(0, 0)
            logger.info(f"Indexing {total} documents", extra={"user_id": user_id})

            try:
                for processed, document in enumerate(documents, start=1):
                    try:
                        await self._index_one(user_id, document)
                    except AgriSearchError as e:
                        logger.warning(
                            f"Failed to index document {document.id}: {e.message}",
                            extra={"user_id": user_id, "code": e.code.value},
                        )
                        report.failed.append(
                            IndexingFailure(id=document.id, reason=e.message, code=e.code.value)
                        )
                    else:
                        report.succeeded.append(document.id)
                    self._state.set_progress(processed, total)

                await self._refresh_total(user_id)
                if report.failed:
                    self._state.set_error(
                        f"Failed to index {len(report.failed)} of {total} documents"
                    )

            except AgriSearchError as e:
                self._state.set_error(e.message)
                raise

            finally:
                self._state.finish_indexing()
                track_indexed_documents(len(report.succeeded), len(report.failed))

        logger.info(
            "Indexing finished",
            extra={
                "user_id": user_id,
                "succeeded": len(report.succeeded),
                "failed": len(report.failed),
            },
        )
        return report

    async def _index_one(self, user_id: str, document: Document) -> None:
        metadata = document.metadata.model_copy(update={"user_id": user_id})
        owned = document.model_copy(update={"metadata": metadata})

        result = await self._selector.embed(owned.text)
        record = VectorRecord.from_document(owned, result.embedding, result.model)
        await self._store.put(record)

    async def _refresh_total(self, user_id: str) -> None:
        stats = await self._store.stats(user_id)
        self._state.set_total_documents(stats.total_documents)

    async def refresh_total(self, user_id: str) -> int:
        """Sync the observable document count with the store."""
        async with self._lock_for(user_id):
            await self._refresh_total(user_id)
        return self._state.snapshot().total_documents

    async def clear_index(self, user_id: str) -> int:
        """Remove every record of a user.

        Returns:
            Number of records removed.
        """
        async with self._lock_for(user_id):
            removed = await self._store.delete(user_id)
            self._state.set_total_documents(0)
        logger.info(f"Cleared index: {removed} records", extra={"user_id": user_id})
        return removed

    async def delete_document(self, user_id: str, document_id: str) -> bool:
        """Remove one record. Returns True if it existed."""
        async with self._lock_for(user_id):
            deleted = await self._store.delete_document(user_id, document_id)
            if deleted:
                await self._refresh_total(user_id)
        return deleted

    async def import_records(self, user_id: str, payload: str) -> int:
        """Load an export into the user's index.

        Records are re-owned by ``user_id`` before they are stored.

        Returns:
            Number of records imported.
        """
        async with self._lock_for(user_id):
            count = await self._store.import_records(payload, user_id=user_id)
            await self._refresh_total(user_id)
        return count
