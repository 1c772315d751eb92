"""Similarity search data models."""

from pydantic import BaseModel, ConfigDict, Field

from agrisearch.documents.models import DocumentType
from agrisearch.vectorstore.models import VectorRecord


class SearchOptions(BaseModel):
    """Query configuration.

    Attributes:
        limit: Maximum number of results.
        threshold: Minimum similarity a result must reach.
        document_types: Allowed document types; empty means any.
        county_fips: Exact county filter.
        crop_type: Exact crop filter.
    """

    model_config = ConfigDict(populate_by_name=True)

    limit: int = Field(default=10, ge=1, description="Maximum results")
    threshold: float = Field(default=0.5, ge=0.0, le=1.0, description="Minimum similarity")
    document_types: list[DocumentType] = Field(
        default_factory=list,
        alias="documentTypes",
        description="Allowed document types",
    )
    county_fips: str | None = Field(
        default=None,
        alias="countyFips",
        description="County FIPS code filter",
    )
    crop_type: str | None = Field(
        default=None,
        alias="cropType",
        description="Crop type filter",
    )


class SearchResult(BaseModel):
    """A stored record and how similar it is to the query."""

    document: VectorRecord = Field(description="Matching record")
    similarity: float = Field(ge=0.0, le=1.0, description="Cosine similarity in [0, 1]")
