"""Knowledge documents stored as Markdown files in a single directory."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from autoreply.models import KnowledgeDocument

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_SUFFIX = ".md"


class InvalidDocumentNameError(ValueError):
    """Raised when a document name has no allowed characters left."""

    pass


def sanitize_name(name: str) -> str:
    """Strip every character outside ``[A-Za-z0-9-_]``.

    Separators and dots never survive, so the result cannot leave the
    knowledge directory.
    """
    return _UNSAFE_NAME_CHARS.sub("", name)


class KnowledgeStore:
    """Reads and writes named knowledge documents."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def list_documents(self) -> list[KnowledgeDocument]:
        if not self.directory.is_dir():
            return []
        documents: list[KnowledgeDocument] = []
        for path in sorted(self.directory.glob(f"*{_SUFFIX}")):
            if not path.is_file():
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable knowledge file %s: %s", path, exc)
                continue
            documents.append(KnowledgeDocument(name=path.stem, content=content))
        return documents

    def put(self, name: str, content: str) -> KnowledgeDocument:
        path = self._path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return KnowledgeDocument(name=path.stem, content=content)

    def delete(self, name: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        path = self._path_for(name)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _path_for(self, name: str) -> Path:
        safe_name = sanitize_name(name)
        if not safe_name:
            raise InvalidDocumentNameError(f"Invalid document name: {name!r}")
        return self.directory / f"{safe_name}{_SUFFIX}"
