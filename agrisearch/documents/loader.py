"""Load document batches from JSON files."""

import json
from pathlib import Path
from typing import Any

import pydantic

from agrisearch.documents.models import Document
from agrisearch.exceptions import DocumentError, ErrorCode


class JSONDocumentLoader:
    """Loader for document batches stored as JSON.

    Accepts either a JSON array of documents, an object with a
    ``documents`` array, or JSON Lines (one document per line).
    """

    SUPPORTED_EXTENSIONS = {".json", ".jsonl"}

    def __init__(self, encoding: str = "utf-8") -> None:
        """Initialize the loader.

        Args:
            encoding: Text encoding to use when reading files.
        """
        self.encoding = encoding

    def supports(self, source: str | Path) -> bool:
        """Check if source has a supported extension."""
        return Path(source).suffix.lower() in self.SUPPORTED_EXTENSIONS

    def load(self, source: str | Path) -> list[Document]:
        """Load all documents in a file.

        Args:
            source: Path to the JSON or JSONL file.

        Returns:
            Documents in file order.

        Raises:
            DocumentError: If the file is missing or malformed.
        """
        path = Path(source)

        if not path.is_file():
            raise DocumentError(
                f"File not found: {path}",
                code=ErrorCode.DOCUMENT_NOT_FOUND,
                details={"path": str(path)},
            )

        try:
            raw = path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentError(
                f"Failed to read file: {path}",
                details={"path": str(path), "error": str(e)},
            ) from e

        try:
            items = self._parse(raw, jsonl=path.suffix.lower() == ".jsonl")
        except json.JSONDecodeError as e:
            raise DocumentError(
                f"Invalid JSON in {path}: {e.msg}",
                details={"path": str(path), "line": e.lineno},
            ) from e

        documents: list[Document] = []
        for position, item in enumerate(items):
            try:
                documents.append(Document.model_validate(item))
            except pydantic.ValidationError as e:
                raise DocumentError(
                    f"Invalid document at position {position} in {path}",
                    details={"path": str(path), "position": position, "error": str(e)},
                ) from e

        return documents

    def _parse(self, raw: str, jsonl: bool) -> list[Any]:
        if jsonl:
            return [json.loads(line) for line in raw.splitlines() if line.strip()]

        data = json.loads(raw)
        if isinstance(data, dict):
            data = data.get("documents", [])
        if not isinstance(data, list):
            raise DocumentError("Expected a list of documents")
        return data
