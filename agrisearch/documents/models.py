"""Document data models."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocumentType(str, Enum):
    """Kinds of agricultural records that can be indexed."""

    SOIL_ANALYSIS = "soil_analysis"
    WATER_QUALITY = "water_quality"
    FIELD_DATA = "field_data"
    PLANTING_OPTIMIZATION = "planting_optimization"


class DocumentMetadata(BaseModel):
    """Structured metadata attached to a document.

    Accepts the camelCase keys used by the web client as aliases.

    Attributes:
        type: Kind of record.
        user_id: Owner of the record.
        county_fips: Optional county FIPS code.
        crop_type: Optional crop the record refers to.
        created_at: When the record was created.
        title: Optional display title.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: DocumentType = Field(description="Kind of record")
    user_id: str = Field(alias="userId", description="Owner of the record")
    county_fips: str | None = Field(
        default=None,
        alias="countyFips",
        description="County FIPS code",
    )
    crop_type: str | None = Field(
        default=None,
        alias="cropType",
        description="Crop the record refers to",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        alias="createdAt",
        description="When the record was created",
    )
    title: str | None = Field(default=None, description="Display title")


class Document(BaseModel):
    """A unit of user content to be searched.

    Attributes:
        id: Identifier, unique per user and stable across re-indexing.
        text: Raw content the embedding is computed from.
        metadata: Associated metadata.
    """

    id: str = Field(min_length=1, description="Document identifier")
    text: str = Field(description="Raw content used for the embedding")
    metadata: DocumentMetadata = Field(description="Document metadata")

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be empty")
        return value
