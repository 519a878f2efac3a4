"""
ragroute - Text Utilities
==========================
Helper functions for text cleaning and log-friendly previews.

These utilities are consumed by the document loader, the ingestion path
and the observers, and must remain stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata

# Control characters (C0/C1) except \n, \r, \t, plus BOM, zero-width
# characters, soft hyphens and directional marks left behind by PDF
# extraction.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")
_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def clean_text(text: str) -> str:
    """
    Sanitise extracted document text before chunking.

    Steps:
        1. Unicode NFC normalisation, so accented characters have a
           single representation.
        2. Strip non-printable / zero-width characters.
        3. Normalise line endings to ``\\n``.
        4. Collapse runs of horizontal whitespace into a single space,
           *preserving* newlines.
        5. Strip every line and collapse 3+ consecutive newlines to 2,
           which keeps paragraph breaks usable as chunk boundaries.

    Args:
        text: Raw text extracted from a source file.

    Returns:
        Cleaned text ready for chunking.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_WS_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def preview(text: str, width: int = 60) -> str:
    """One-line excerpt of *text* for log messages."""
    flat = " ".join(text.split())
    if len(flat) <= width:
        return flat
    return flat[: width - 1] + "…"
