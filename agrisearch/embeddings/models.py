"""Embedding data models."""

from typing import Any

from pydantic import BaseModel, Field, model_validator


class EmbeddingResult(BaseModel):
    """Result of an embedding operation.

    Attributes:
        text: The original (unprocessed) text that was embedded.
        embedding: The embedding vector.
        model: The model used to generate the embedding.
        dimensions: Number of dimensions; derived from the vector when omitted.
    """

    text: str = Field(description="Original text")
    embedding: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Model used for embedding")
    dimensions: int = Field(default=0, description="Vector dimensions")

    @model_validator(mode="before")
    @classmethod
    def _default_dimensions(cls, data: Any) -> Any:
        if isinstance(data, dict) and "dimensions" not in data and "embedding" in data:
            return {**data, "dimensions": len(data["embedding"])}
        return data

    @model_validator(mode="after")
    def _check_dimensions(self) -> "EmbeddingResult":
        if self.dimensions != len(self.embedding):
            raise ValueError(
                f"dimensions ({self.dimensions}) does not match "
                f"embedding length ({len(self.embedding)})"
            )
        return self
