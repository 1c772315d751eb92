"""Indexing pipeline: turns documents into stored vector records."""

from agrisearch.indexing.models import IndexingFailure, IndexingReport
from agrisearch.indexing.pipeline import IndexingPipeline

__all__ = ["IndexingFailure", "IndexingPipeline", "IndexingReport"]
