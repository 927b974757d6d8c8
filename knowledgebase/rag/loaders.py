"""Document sources for uploaded files.

Every supported upload maps to one :class:`DocumentSource` variant:

``TextFileSource``
    Plain-text formats, decoded as UTF-8 (undecodable bytes replaced).
``PdfFileSource``
    PDFs, read with ``pypdf``; one document per page that has text.
``GenericFileSource``
    Anything else, treated as text.

:func:`source_for` picks the variant from the file extension (falling back
to the content type); callers only ever call ``load()``.
"""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from knowledgebase.scraper.models import ParsedDocument

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = frozenset({".txt", ".md", ".markdown", ".csv", ".json", ".log", ".rst"})


class DocumentSource(ABC):
    """One uploaded file that can produce documents."""

    kind: str = "file"

    def __init__(self, filename: str, data: bytes, organisation: Optional[str] = None) -> None:
        self.filename = filename
        self.data = data
        self.organisation = organisation

    def _metadata(self, **extra: object) -> dict:
        meta = {
            "source": self.filename,
            "organisation": self.organisation or "unknown",
            "type": self.kind,
        }
        meta.update(extra)
        return meta

    @abstractmethod
    def load(self) -> List[ParsedDocument]:
        """Return the documents contained in the file (possibly empty)."""


class TextFileSource(DocumentSource):
    kind = "text"

    def load(self) -> List[ParsedDocument]:
        text = self.data.decode("utf-8", errors="replace")
        if not text.strip():
            return []
        return [ParsedDocument(text=text, metadata=self._metadata())]


class GenericFileSource(TextFileSource):
    """Unknown formats: best effort as text."""

    kind = "generic"


class PdfFileSource(DocumentSource):
    kind = "pdf"

    def load(self) -> List[ParsedDocument]:
        """Extract text page by page using ``pypdf``.

        Raises:
            pypdf.errors.PdfReadError: If the bytes are not a readable PDF.
        """
        import pypdf  # noqa: PLC0415

        reader = pypdf.PdfReader(io.BytesIO(self.data))
        total = len(reader.pages)
        documents: List[ParsedDocument] = []
        for number, page in enumerate(reader.pages, start=1):
            text = page.extract_text() or ""
            if not text.strip():
                continue
            documents.append(
                ParsedDocument(
                    text=text,
                    metadata=self._metadata(
                        loc={"pageNumber": number}, pdf={"totalPages": total}
                    ),
                )
            )
        return documents


def source_for(
    filename: str,
    data: bytes,
    organisation: Optional[str] = None,
    content_type: Optional[str] = None,
) -> DocumentSource:
    """Return the document source variant that handles *filename*."""
    suffix = Path(filename).suffix.lower()
    ctype = (content_type or "").split(";")[0].strip().lower()

    if suffix == ".pdf" or ctype == "application/pdf":
        return PdfFileSource(filename, data, organisation)
    if suffix in TEXT_EXTENSIONS or ctype.startswith("text/"):
        return TextFileSource(filename, data, organisation)
    logger.info("No dedicated loader for %s (%s); reading it as text", filename, ctype or "?")
    return GenericFileSource(filename, data, organisation)

