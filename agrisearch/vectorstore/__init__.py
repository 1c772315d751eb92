"""Vector record store module."""

from agrisearch.vectorstore.models import IndexExport, StorageStats, VectorRecord
from agrisearch.vectorstore.service import QdrantVectorRecordStore, VectorRecordStore

__all__ = [
    "IndexExport",
    "QdrantVectorRecordStore",
    "StorageStats",
    "VectorRecord",
    "VectorRecordStore",
]
