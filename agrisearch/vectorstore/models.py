"""Vector store data models."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from agrisearch.documents.models import Document, DocumentMetadata

INDEX_VERSION = "v1.0"
EXPORT_FORMAT_VERSION = "1.0"


class VectorRecord(BaseModel):
    """A document plus the embedding computed from its text.

    Attributes:
        id: Document identifier.
        text: Text the embedding was computed from.
        metadata: Document metadata.
        embedding: The embedding vector.
        embedding_model: Identifier of the model configuration that
            produced the vector.
    """

    id: str = Field(description="Document identifier")
    text: str = Field(description="Text the embedding was computed from")
    metadata: DocumentMetadata = Field(description="Document metadata")
    embedding: list[float] = Field(description="Embedding vector")
    embedding_model: str = Field(description="Model that produced the vector")

    @property
    def dimensions(self) -> int:
        """Number of dimensions in the embedding."""
        return len(self.embedding)

    @classmethod
    def from_document(
        cls,
        document: Document,
        embedding: list[float],
        embedding_model: str,
    ) -> "VectorRecord":
        """Build a record from a document and its freshly computed vector."""
        return cls(
            id=document.id,
            text=document.text,
            metadata=document.metadata,
            embedding=embedding,
            embedding_model=embedding_model,
        )


class StorageStats(BaseModel):
    """Summary of one user's index.

    Attributes:
        total_documents: Number of stored records.
        total_size: Estimated size in bytes of the serialized records.
        last_updated: Most recent ``created_at`` across records.
        index_versions: Index format versions present.
    """

    total_documents: int = Field(default=0, description="Number of records")
    total_size: int = Field(default=0, description="Estimated size in bytes")
    last_updated: datetime | None = Field(
        default=None,
        description="Most recent record creation time",
    )
    index_versions: list[str] = Field(
        default_factory=lambda: [INDEX_VERSION],
        description="Index format versions",
    )


class IndexExport(BaseModel):
    """Portable dump of a user's records."""

    version: str = Field(default=EXPORT_FORMAT_VERSION, description="Export format")
    exported: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the export was taken",
    )
    embeddings: list[VectorRecord] = Field(description="Exported records")
