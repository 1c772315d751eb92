"""Vector record store interface and local Qdrant implementation."""

import asyncio
import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from uuid import NAMESPACE_URL, uuid5

import pydantic
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, PointIdsList, PointStruct, VectorParams

from agrisearch.config import StorageSettings, get_settings
from agrisearch.exceptions import (
    DimensionMismatchError,
    ErrorCode,
    StorageError,
    ValidationError,
)
from agrisearch.logging_config import get_logger
from agrisearch.vectorstore.models import IndexExport, StorageStats, VectorRecord

logger = get_logger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")
_SCROLL_PAGE_SIZE = 256


class VectorRecordStore(ABC):
    """Abstract base class for per-user vector record storage.

    Records are keyed by document id within a user's scope. Implementations
    must guarantee that ``get_all`` returns either the state before or after
    a concurrent ``delete``, never a partial mix.
    """

    @abstractmethod
    async def put(self, record: VectorRecord) -> None:
        """Insert or overwrite a record by id.

        Args:
            record: Record to store, scoped by ``record.metadata.user_id``.

        Raises:
            DimensionMismatchError: If the user's index holds vectors of a
                different dimension.
            StorageError: If persistence fails or the quota is exceeded.
        """
        ...

    @abstractmethod
    async def get(self, user_id: str, record_id: str) -> VectorRecord | None:
        """Fetch a single record, or None if absent."""
        ...

    @abstractmethod
    async def get_all(self, user_id: str) -> list[VectorRecord]:
        """Return all records for a user, in no particular order.

        Raises:
            StorageError: If persistence fails.
        """
        ...

    @abstractmethod
    async def delete(self, user_id: str) -> int:
        """Remove all records for a user.

        Returns:
            Number of records removed.

        Raises:
            StorageError: If persistence fails.
        """
        ...

    @abstractmethod
    async def delete_document(self, user_id: str, record_id: str) -> bool:
        """Remove one record.

        Returns:
            True if the record existed.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""
        return None

    async def stats(self, user_id: str) -> StorageStats:
        """Summarize a user's index.

        Size is estimated from the JSON-serialized records.
        """
        records = await self.get_all(user_id)
        if not records:
            return StorageStats()

        return StorageStats(
            total_documents=len(records),
            total_size=sum(len(r.model_dump_json().encode("utf-8")) for r in records),
            last_updated=max(r.metadata.created_at for r in records),
        )

    async def export_records(self, user_id: str) -> str:
        """Serialize a user's records to a portable JSON document."""
        export = IndexExport(embeddings=await self.get_all(user_id))
        return export.model_dump_json(by_alias=True, indent=2)

    async def import_records(self, payload: str, user_id: str | None = None) -> int:
        """Store every record of an export document.

        Args:
            payload: JSON produced by ``export_records``.
            user_id: New owner for every record; keeps the exported owner
                when None.

        Returns:
            Number of records imported.

        Raises:
            ValidationError: If the payload is not a valid export.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationError(
                "Invalid import data format",
                details={"error": e.msg},
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("embeddings"), list):
            raise ValidationError("Invalid import data format")

        try:
            export = IndexExport.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Invalid import data format",
                details={"error": str(e)},
            ) from e

        for record in export.embeddings:
            if user_id is not None and record.metadata.user_id != user_id:
                metadata = record.metadata.model_copy(update={"user_id": user_id})
                record = record.model_copy(update={"metadata": metadata})
            await self.put(record)

        logger.info(f"Imported {len(export.embeddings)} records")
        return len(export.embeddings)


class QdrantVectorRecordStore(VectorRecordStore):
    """Vector record store backed by Qdrant's embedded local mode.

    Each user gets a dedicated collection, so clearing an index is a single
    collection drop. Vectors are stored with dot-product distance so Qdrant
    keeps them exactly as given; similarity ranking happens in the search
    engine.
    """

    def __init__(
        self,
        settings: StorageSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            settings: Storage configuration.
            client: Existing client (for testing).
        """
        self._settings = settings or get_settings().storage
        self._client = client
        self._owns_client = client is None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create the embedded Qdrant client."""
        if self._client is None:
            if self._settings.path == ":memory:":
                self._client = AsyncQdrantClient(location=":memory:")
            else:
                Path(self._settings.path).mkdir(parents=True, exist_ok=True)
                self._client = AsyncQdrantClient(path=self._settings.path)
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    def collection_name(self, user_id: str) -> str:
        """Name of the collection holding a user's records."""
        suffix = user_id if _SAFE_NAME.match(user_id) else uuid5(NAMESPACE_URL, user_id).hex
        return f"{self._settings.collection_prefix}_{suffix}"

    @staticmethod
    def _point_id(record_id: str) -> str:
        # Qdrant only accepts integer or UUID point ids.
        return str(uuid5(NAMESPACE_URL, record_id))

    @staticmethod
    def _to_payload(record: VectorRecord) -> dict[str, Any]:
        return record.model_dump(mode="json", exclude={"embedding"})

    @staticmethod
    def _from_point(payload: dict[str, Any] | None, vector: Any) -> VectorRecord:
        return VectorRecord.model_validate(
            {**(payload or {}), "embedding": [float(v) for v in vector]}
        )

    async def _ensure_collection(
        self,
        client: AsyncQdrantClient,
        name: str,
        dimensions: int,
    ) -> None:
        if await client.collection_exists(name):
            info = await client.get_collection(name)
            vectors = info.config.params.vectors
            size = vectors.size if isinstance(vectors, VectorParams) else None
            if size is not None and size != dimensions:
                raise DimensionMismatchError(
                    f"Index holds {size}-dimensional vectors, got {dimensions}",
                    details={"collection": name, "expected": size, "actual": dimensions},
                )
            return

        await client.create_collection(
            collection_name=name,
            vectors_config=VectorParams(size=dimensions, distance=Distance.DOT),
        )
        logger.info(f"Created collection: {name}", extra={"dimensions": dimensions})

    async def _check_model(
        self,
        client: AsyncQdrantClient,
        name: str,
        record: VectorRecord,
    ) -> None:
        points, _ = await client.scroll(
            collection_name=name,
            limit=1,
            with_payload=["embedding_model"],
            with_vectors=False,
        )
        if not points:
            return

        stored = (points[0].payload or {}).get("embedding_model")
        if stored is not None and stored != record.embedding_model:
            raise DimensionMismatchError(
                f"Index holds vectors from {stored}, got {record.embedding_model}; "
                "re-index required",
                details={
                    "collection": name,
                    "id": record.id,
                    "index_model": stored,
                    "record_model": record.embedding_model,
                },
            )

    async def _check_quota(
        self,
        client: AsyncQdrantClient,
        name: str,
        point_id: str,
    ) -> None:
        limit = self._settings.max_records_per_user
        if limit is None:
            return

        existing = await client.retrieve(name, ids=[point_id], with_payload=False)
        if existing:
            return

        count = (await client.count(name, exact=True)).count
        if count >= limit:
            raise StorageError(
                f"Storage quota of {limit} records exceeded",
                code=ErrorCode.STORAGE_QUOTA_EXCEEDED,
                details={"collection": name, "limit": limit},
            )

    async def put(self, record: VectorRecord) -> None:
        """Upsert a record into its owner's collection."""
        client = await self._get_client()
        name = self.collection_name(record.metadata.user_id)
        point_id = self._point_id(record.id)

        async with self._lock:
            try:
                await self._ensure_collection(client, name, record.dimensions)
                await self._check_model(client, name, record)
                await self._check_quota(client, name, point_id)
                await client.upsert(
                    collection_name=name,
                    points=[
                        PointStruct(
                            id=point_id,
                            vector=record.embedding,
                            payload=self._to_payload(record),
                        )
                    ],
                )
            except (DimensionMismatchError, StorageError):
                raise
            except Exception as e:
                raise StorageError(
                    f"Failed to store record: {e}",
                    details={"collection": name, "id": record.id, "error": str(e)},
                ) from e

        logger.debug(f"Stored record {record.id}", extra={"collection": name})

    async def get(self, user_id: str, record_id: str) -> VectorRecord | None:
        """Fetch a single record by id."""
        client = await self._get_client()
        name = self.collection_name(user_id)

        async with self._lock:
            try:
                if not await client.collection_exists(name):
                    return None
                points = await client.retrieve(
                    name,
                    ids=[self._point_id(record_id)],
                    with_payload=True,
                    with_vectors=True,
                )
            except Exception as e:
                raise StorageError(
                    f"Failed to read record: {e}",
                    details={"collection": name, "id": record_id, "error": str(e)},
                ) from e

        if not points:
            return None
        return self._from_point(points[0].payload, points[0].vector)

    async def get_all(self, user_id: str) -> list[VectorRecord]:
        """Scroll through every record in the user's collection."""
        client = await self._get_client()
        name = self.collection_name(user_id)
        records: list[VectorRecord] = []

        async with self._lock:
            try:
                if not await client.collection_exists(name):
                    return []

                offset = None
                while True:
                    points, offset = await client.scroll(
                        collection_name=name,
                        limit=_SCROLL_PAGE_SIZE,
                        offset=offset,
                        with_payload=True,
                        with_vectors=True,
                    )
                    records.extend(self._from_point(p.payload, p.vector) for p in points)
                    if offset is None:
                        break
            except Exception as e:
                raise StorageError(
                    f"Failed to read records: {e}",
                    details={"collection": name, "error": str(e)},
                ) from e

        return records

    async def delete(self, user_id: str) -> int:
        """Drop the user's collection."""
        client = await self._get_client()
        name = self.collection_name(user_id)

        async with self._lock:
            try:
                if not await client.collection_exists(name):
                    return 0
                count = (await client.count(name, exact=True)).count
                await client.delete_collection(name)
            except Exception as e:
                raise StorageError(
                    f"Failed to clear records: {e}",
                    details={"collection": name, "error": str(e)},
                ) from e

        logger.info(f"Cleared {count} records", extra={"collection": name})
        return count

    async def delete_document(self, user_id: str, record_id: str) -> bool:
        """Delete one record by id."""
        client = await self._get_client()
        name = self.collection_name(user_id)
        point_id = self._point_id(record_id)

        async with self._lock:
            try:
                if not await client.collection_exists(name):
                    return False
                existing = await client.retrieve(name, ids=[point_id], with_payload=False)
                if not existing:
                    return False
                await client.delete(
                    collection_name=name,
                    points_selector=PointIdsList(points=[point_id]),
                )
            except Exception as e:
                raise StorageError(
                    f"Failed to delete record: {e}",
                    details={"collection": name, "id": record_id, "error": str(e)},
                ) from e

        logger.debug(f"Deleted record {record_id}", extra={"collection": name})
        return True
