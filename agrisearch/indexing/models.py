"""Indexing pipeline data models."""

from pydantic import BaseModel, Field


class IndexingFailure(BaseModel):
    """A document that could not be indexed.

    Attributes:
        id: Document identifier.
        reason: Human-readable cause.
        code: Error code of the cause.
    """

    id: str = Field(description="Document identifier")
    reason: str = Field(description="Failure message")
    code: str = Field(description="Error code")


class IndexingReport(BaseModel):
    """Outcome of one indexing batch."""

    succeeded: list[str] = Field(default_factory=list, description="Indexed document ids")
    failed: list[IndexingFailure] = Field(
        default_factory=list,
        description="Documents that could not be indexed",
    )

    @property
    def total(self) -> int:
        """Number of documents processed."""
        return len(self.succeeded) + len(self.failed)

    @property
    def is_complete(self) -> bool:
        """True when every document was indexed."""
        return not self.failed
