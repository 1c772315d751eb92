"""Document model and loading."""

from agrisearch.documents.loader import JSONDocumentLoader
from agrisearch.documents.models import Document, DocumentMetadata, DocumentType

__all__ = [
    "Document",
    "DocumentMetadata",
    "DocumentType",
    "JSONDocumentLoader",
]
