"""Text extraction and normalization for fetched documents.

HTML main content is pulled out with trafilatura, falling back to
readabilipy and then to the whole page text via BeautifulSoup. PDFs are read
with pypdf. All functions here are synchronous and CPU bound; the fetcher
runs them in a thread executor.
"""

from __future__ import annotations

import hashlib
import io
import logging
import re
from dataclasses import dataclass

import trafilatura
from bs4 import BeautifulSoup
from pypdf import PdfReader
from readabilipy import simple_json_from_html_string

logger = logging.getLogger(__name__)

_SPACES = re.compile(r"[ ]+")
_SPACE_AROUND_NEWLINE = re.compile(r" *\n *")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")


@dataclass
class ExtractedText:
    """Raw (not yet normalized) text pulled from a response body."""

    title: str = ""
    text: str = ""
    pages: int | None = None


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace while keeping paragraph breaks.

    CRLF and CR become LF, tabs become spaces, runs of spaces collapse to one,
    spaces around newlines are stripped and three or more newlines become two.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", " ")
    text = _SPACES.sub(" ", text)
    text = _SPACE_AROUND_NEWLINE.sub("\n", text)
    text = _EXTRA_NEWLINES.sub("\n\n", text)
    return text.strip()


def compute_hash(content: str) -> str | None:
    """sha256 hex digest of *content*, or ``None`` for empty content."""
    if not content:
        return None
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _extract_with_trafilatura(html: str) -> str:
    text = trafilatura.extract(html, output_format="txt", include_comments=False)
    return text if isinstance(text, str) else ""


def _extract_with_readabilipy(html: str) -> tuple[str, str]:
    article = simple_json_from_html_string(html, use_readability=False)
    title = (article.get("title") or "").strip()
    blocks = article.get("plain_text") or []
    text = "\n\n".join(
        block.get("text", "").strip() for block in blocks if isinstance(block, dict) and block.get("text")
    )
    return title, text


def extract_html(html: str) -> ExtractedText:
    """Extract the title and main-content text of an HTML page.

    trafilatura picks the main content and drops navigation, sidebars and
    footers. When it finds nothing, readabilipy's simplified text is used,
    then the whole page text via BeautifulSoup.
    """
    title = ""
    text = ""
    try:
        text = _extract_with_trafilatura(html)
    except Exception:
        logger.debug("trafilatura extraction failed", exc_info=True)

    try:
        readable_title, readable_text = _extract_with_readabilipy(html)
        title = readable_title
        text = text or readable_text
    except Exception:
        logger.debug("readabilipy extraction failed, using full page text", exc_info=True)

    if not text or not title:
        soup = BeautifulSoup(html, "html.parser")
        if not title and soup.title and soup.title.string:
            title = soup.title.string.strip()
        if not text:
            for tag in soup(["title", "script", "style", "noscript", "nav", "header", "footer", "aside"]):
                tag.decompose()
            text = soup.get_text("\n")

    return ExtractedText(title=title, text=text)


def extract_pdf(data: bytes) -> ExtractedText:
    """Extract the text of every page of a PDF document."""
    reader = PdfReader(io.BytesIO(data))
    parts = []
    for page in reader.pages:
        page_text = page.extract_text() or ""
        if page_text.strip():
            parts.append(page_text)

    title = ""
    metadata = reader.metadata
    if metadata is not None and metadata.title:
        title = str(metadata.title).strip()

    return ExtractedText(title=title, text="\n\n".join(parts), pages=len(reader.pages))
