"""
ragroute - Document Loader
===========================
``DocumentLoader`` for local files and plain-text URLs.

Supported inputs:
    • ``.txt`` / ``.md``  — UTF-8, latin-1 fallback
    • ``.pdf``            — text layer via PyMuPDF (``fitz``), page by page
    • ``http(s)://…``     — ``text/plain`` or ``text/markdown`` responses

The returned ``Document`` carries raw text; cleaning happens at ingestion.
"""

from __future__ import annotations

from pathlib import Path

import httpx

from ragroute.config.settings import settings
from ragroute.src.core.errors import DocumentNotFoundError, UnsupportedFormatError
from ragroute.src.core.models import Document
from ragroute.src.utils.logger import get_logger

logger = get_logger(__name__)

_TEXT_EXTENSIONS = {".txt", ".md"}
_PDF_EXTENSIONS = {".pdf"}
_TEXT_CONTENT_TYPES = {"text/plain", "text/markdown"}


def _path_source_id(path: Path) -> str:
    resolved = path.resolve()
    try:
        return resolved.relative_to(Path.cwd().resolve()).as_posix()
    except ValueError:
        return resolved.as_posix()


class FileSystemLoader:
    """
    Load a path or URL into a ``Document``.

    ``source_id`` is the URL, or the resolved file path: relative to the
    working directory when the file lies under it, absolute otherwise.

    Parameters
    ----------
    timeout
        HTTP timeout for URLs; ``settings.WEB_SEARCH_TIMEOUT_SECONDS`` when omitted.
    client
        Pre-built ``httpx.Client`` (tests pass one with a mock transport).
    """

    __slots__ = ("_timeout", "_client")

    def __init__(self, timeout: float | None = None, client: httpx.Client | None = None) -> None:
        self._timeout = timeout or settings.WEB_SEARCH_TIMEOUT_SECONDS
        self._client = client

    def load(self, location: str) -> Document:
        if location.startswith(("http://", "https://")):
            return self._load_url(location)

        path = Path(location)
        if not path.is_file():
            raise DocumentNotFoundError(f"Document not found: {location}")

        suffix = path.suffix.lower()
        if suffix in _TEXT_EXTENSIONS:
            text = self._read_text(path)
        elif suffix in _PDF_EXTENSIONS:
            text = self._read_pdf(path)
        else:
            raise UnsupportedFormatError(f"Unsupported file type '{suffix or path.name}' (supported: {sorted(_TEXT_EXTENSIONS | _PDF_EXTENSIONS)})")

        source_id = _path_source_id(path)
        logger.info("Loaded '%s' (%d chars).", source_id, len(text))
        return Document(text=text, source_id=source_id)

    # ── Readers ────────────────────────────────────────────────────────

    @staticmethod
    def _read_text(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return path.read_text(encoding="latin-1")

    @staticmethod
    def _read_pdf(path: Path) -> str:
        import fitz

        with fitz.open(path) as pdf:
            pages = [page.get_text() for page in pdf]
        return "\n\n".join(pages)

    def _load_url(self, url: str) -> Document:
        client = self._client or httpx.Client(timeout=self._timeout, follow_redirects=True)
        try:
            response = client.get(url)
        finally:
            if self._client is None:
                client.close()

        if response.status_code == 404:
            raise DocumentNotFoundError(f"Document not found: {url}")
        response.raise_for_status()

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type not in _TEXT_CONTENT_TYPES:
            raise UnsupportedFormatError(f"Unsupported content type '{content_type or 'unknown'}' for {url}")

        logger.info("Fetched '%s' (%d chars).", url, len(response.text))
        return Document(text=response.text, source_id=url)

    def __repr__(self) -> str:
        return f"FileSystemLoader(timeout={self._timeout})"
