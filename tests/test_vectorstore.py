"""Tests for the vector record store."""

import asyncio
import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from qdrant_client.models import Distance, VectorParams

from agrisearch.config import StorageSettings
from agrisearch.documents.models import DocumentMetadata, DocumentType
from agrisearch.exceptions import (
    DimensionMismatchError,
    ErrorCode,
    StorageError,
    ValidationError,
)
from agrisearch.vectorstore.models import StorageStats, VectorRecord
from agrisearch.vectorstore.service import QdrantVectorRecordStore


def make_record(
    record_id: str,
    embedding: list[float],
    user_id: str = "user-1",
    created_at: datetime | None = None,
    text: str = "Soil test for corn",
    model: str = "fake/model",
) -> VectorRecord:
    return VectorRecord(
        id=record_id,
        text=text,
        metadata=DocumentMetadata(
            type=DocumentType.SOIL_ANALYSIS,
            user_id=user_id,
            created_at=created_at or datetime(2024, 5, 1, tzinfo=UTC),
        ),
        embedding=embedding,
        embedding_model=model,
    )


class TestVectorRecord:
    """Tests for VectorRecord model."""

    def test_dimensions(self) -> None:
        """Dimensions is the embedding length."""
        assert make_record("a", [0.1, 0.2, 0.3]).dimensions == 3


class TestStorageStats:
    """Tests for StorageStats model."""

    def test_empty_defaults(self) -> None:
        """Empty stats report no documents and the current index version."""
        stats = StorageStats()
        assert stats.total_documents == 0
        assert stats.total_size == 0
        assert stats.last_updated is None
        assert stats.index_versions == ["v1.0"]


class TestQdrantVectorRecordStore:
    """Tests for QdrantVectorRecordStore in local in-memory mode."""

    async def test_put_and_get(self, store: QdrantVectorRecordStore) -> None:
        """Stored record round-trips through the store unchanged."""
        record = make_record("soil-1", [0.5, 0.25, 1.0])
        await store.put(record)

        fetched = await store.get("user-1", "soil-1")

        assert fetched == record

    async def test_get_missing(self, store: QdrantVectorRecordStore) -> None:
        """Missing records and unknown users return None."""
        assert await store.get("nobody", "x") is None
        await store.put(make_record("a", [1.0, 0.0]))
        assert await store.get("user-1", "x") is None

    async def test_put_overwrites_by_id(self, store: QdrantVectorRecordStore) -> None:
        """Putting an existing id replaces the record."""
        await store.put(make_record("a", [1.0, 0.0], text="old text"))
        await store.put(make_record("a", [0.0, 1.0], text="new text"))

        records = await store.get_all("user-1")

        assert len(records) == 1
        assert records[0].text == "new text"
        assert records[0].embedding == [0.0, 1.0]

    async def test_users_are_isolated(self, store: QdrantVectorRecordStore) -> None:
        """Records are scoped to their owner."""
        await store.put(make_record("a", [1.0, 0.0], user_id="user-1"))
        await store.put(make_record("b", [1.0, 0.0], user_id="user-2"))

        assert [r.id for r in await store.get_all("user-1")] == ["a"]
        assert [r.id for r in await store.get_all("user-2")] == ["b"]

    async def test_get_all_unknown_user(self, store: QdrantVectorRecordStore) -> None:
        """A user with no collection has no records."""
        assert await store.get_all("nobody") == []

    async def test_delete_clears_user(self, store: QdrantVectorRecordStore) -> None:
        """delete removes every record of the user and reports the count."""
        await store.put(make_record("a", [1.0, 0.0]))
        await store.put(make_record("b", [0.0, 1.0]))
        await store.put(make_record("c", [1.0, 1.0], user_id="user-2"))

        removed = await store.delete("user-1")

        assert removed == 2
        assert await store.get_all("user-1") == []
        assert len(await store.get_all("user-2")) == 1
        assert await store.delete("user-1") == 0

    async def test_delete_document(self, store: QdrantVectorRecordStore) -> None:
        """delete_document removes one record."""
        await store.put(make_record("a", [1.0, 0.0]))
        await store.put(make_record("b", [0.0, 1.0]))

        assert await store.delete_document("user-1", "a") is True
        assert await store.delete_document("user-1", "a") is False
        assert [r.id for r in await store.get_all("user-1")] == ["b"]

    async def test_clear_is_snapshot_or_empty(self, store: QdrantVectorRecordStore) -> None:
        """Reads racing a clear see all records or none."""
        for i in range(5):
            await store.put(make_record(f"doc-{i}", [float(i), 1.0]))

        before, removed, after = await asyncio.gather(
            store.get_all("user-1"),
            store.delete("user-1"),
            store.get_all("user-1"),
        )

        assert len(before) == 5
        assert removed == 5
        assert after == []

    async def test_dimension_mismatch_rejected(self, store: QdrantVectorRecordStore) -> None:
        """Records of another dimension cannot join an existing index."""
        await store.put(make_record("a", [1.0, 0.0, 0.0]))

        with pytest.raises(DimensionMismatchError):
            await store.put(make_record("b", [1.0, 0.0]))

    async def test_model_mismatch_rejected(self, store: QdrantVectorRecordStore) -> None:
        """Records of another model cannot join an index, even at equal size."""
        await store.put(make_record("a", [1.0, 0.0], model="minilm"))

        with pytest.raises(DimensionMismatchError, match="re-index required"):
            await store.put(make_record("b", [0.0, 1.0], model="mxbai"))

        assert [r.id for r in await store.get_all("user-1")] == ["a"]

    async def test_model_check_ignores_other_users(self, store: QdrantVectorRecordStore) -> None:
        """Each user's index tracks its own model."""
        await store.put(make_record("a", [1.0, 0.0], model="minilm"))
        await store.put(make_record("b", [1.0, 0.0], user_id="user-2", model="mxbai"))

        assert len(await store.get_all("user-2")) == 1

    async def test_quota_exceeded(self) -> None:
        """New records beyond the quota are refused; overwrites are not."""
        store = QdrantVectorRecordStore(StorageSettings(path=":memory:", max_records_per_user=2))
        try:
            await store.put(make_record("a", [1.0, 0.0]))
            await store.put(make_record("b", [0.0, 1.0]))
            await store.put(make_record("a", [0.5, 0.5]))

            with pytest.raises(StorageError) as exc_info:
                await store.put(make_record("c", [1.0, 1.0]))

            assert exc_info.value.code == ErrorCode.STORAGE_QUOTA_EXCEEDED
        finally:
            await store.close()

    async def test_stats(self, store: QdrantVectorRecordStore) -> None:
        """Stats count records, estimate size and track the newest record."""
        newest = datetime(2024, 6, 1, tzinfo=UTC)
        await store.put(make_record("a", [1.0, 0.0], created_at=datetime(2024, 1, 1, tzinfo=UTC)))
        await store.put(make_record("b", [0.0, 1.0], created_at=newest))

        stats = await store.stats("user-1")

        assert stats.total_documents == 2
        assert stats.total_size > 0
        assert stats.last_updated == newest

    async def test_stats_empty(self, store: QdrantVectorRecordStore) -> None:
        """An empty index reports zero and no last update."""
        stats = await store.stats("user-1")

        assert stats.total_documents == 0
        assert stats.last_updated is None

    async def test_collection_name_sanitized(self) -> None:
        """User ids with unsafe characters map to a stable hex suffix."""
        store = QdrantVectorRecordStore(StorageSettings(path=":memory:"))

        assert store.collection_name("user_1") == "agrisearch_user_1"
        unsafe = store.collection_name("farmer@example.com")
        assert unsafe.startswith("agrisearch_")
        assert "@" not in unsafe
        assert unsafe == store.collection_name("farmer@example.com")


class TestExportImport:
    """Tests for exporting and importing an index."""

    async def test_export_format(self, store: QdrantVectorRecordStore) -> None:
        """Exports carry a version, timestamp and the records."""
        await store.put(make_record("a", [1.0, 0.0]))

        data = json.loads(await store.export_records("user-1"))

        assert data["version"] == "1.0"
        assert "exported" in data
        assert data["embeddings"][0]["id"] == "a"
        assert data["embeddings"][0]["metadata"]["userId"] == "user-1"

    async def test_import_into_other_user(self, store: QdrantVectorRecordStore) -> None:
        """Imported records can be re-owned."""
        await store.put(make_record("a", [1.0, 0.0]))
        payload = await store.export_records("user-1")

        imported = await store.import_records(payload, user_id="user-2")

        assert imported == 1
        records = await store.get_all("user-2")
        assert records[0].metadata.user_id == "user-2"

    @pytest.mark.parametrize("payload", ["not json", "[]", '{"version": "1.0"}'])
    async def test_import_rejects_malformed(
        self,
        store: QdrantVectorRecordStore,
        payload: str,
    ) -> None:
        """Malformed payloads fail validation."""
        with pytest.raises(ValidationError, match="Invalid import data format"):
            await store.import_records(payload)


class TestStorageFaults:
    """Tests for error wrapping with a mocked client."""

    def _create_mock_client(self) -> AsyncMock:
        """Create a mock Qdrant client whose writes fail."""
        client = AsyncMock()
        client.collection_exists = AsyncMock(return_value=True)
        info = MagicMock()
        info.config.params.vectors = VectorParams(size=2, distance=Distance.DOT)
        client.get_collection = AsyncMock(return_value=info)
        client.upsert = AsyncMock(side_effect=RuntimeError("disk full"))
        client.scroll = AsyncMock(side_effect=RuntimeError("disk gone"))
        return client

    async def test_put_failure_is_storage_error(self) -> None:
        """Client failures surface as StorageError."""
        client = self._create_mock_client()
        client.scroll = AsyncMock(return_value=([], None))
        store = QdrantVectorRecordStore(
            StorageSettings(path=":memory:"),
            client=client,
        )

        with pytest.raises(StorageError, match="disk full") as exc_info:
            await store.put(make_record("a", [1.0, 0.0]))

        assert exc_info.value.code == ErrorCode.STORAGE_FAULT
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    async def test_read_failure_is_storage_error(self) -> None:
        """Scroll failures surface as StorageError."""
        store = QdrantVectorRecordStore(
            StorageSettings(path=":memory:"),
            client=self._create_mock_client(),
        )

        with pytest.raises(StorageError):
            await store.get_all("user-1")

    async def test_close_keeps_injected_client(self) -> None:
        """An injected client is not closed by the store."""
        client = self._create_mock_client()
        store = QdrantVectorRecordStore(StorageSettings(path=":memory:"), client=client)

        await store.close()

        client.close.assert_not_called()
