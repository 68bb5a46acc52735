"""Tests for text extraction helpers."""

from __future__ import annotations

import io

from pypdf import PdfWriter

from ideascope.retrieval.extract import compute_hash, extract_html, extract_pdf, normalize_whitespace

ARTICLE_HTML = """
<html>
  <head><title>Note Apps Report</title><style>body { color: red; }</style></head>
  <body>
    <nav>Home | About</nav>
    <article>
      <h1>Note Apps Report</h1>
      <p>The note-taking market is growing quickly across small teams.</p>
      <p>Buyers want meeting capture and semantic search.</p>
    </article>
  </body>
</html>
"""

BOILERPLATE_HTML = (
    "<html><head><title>Meeting Notes Market</title></head><body>"
    "<nav><a href=\"/\">NAVIGATION MENU home</a> <a href=\"/about\">about</a></nav>"
    "<div class=\"sidebar\"><p>SIDEBAR ADVERT subscribe now for weekly deals</p></div>"
    "<article><h1>Meeting Notes Market</h1>"
    + "".join(
        f"<p>Remote teams now record most of their meetings, and paragraph {i} explains how buyers "
        "compare transcription accuracy, search quality and integrations before choosing a tool.</p>"
        for i in range(8)
    )
    + "</article>"
    "<footer><p>FOOTER COPYRIGHT 2025 all rights reserved</p></footer>"
    "</body></html>"
)


class TestNormalizeWhitespace:
    def test_collapses_spaces_and_tabs(self) -> None:
        assert normalize_whitespace("a  \t b") == "a b"

    def test_keeps_paragraph_breaks(self) -> None:
        assert normalize_whitespace("one \r\n\r\n\r\n\n  two\rthree") == "one\n\ntwo\nthree"

    def test_strips_ends(self) -> None:
        assert normalize_whitespace("   \n text \n  ") == "text"


class TestComputeHash:
    def test_empty_is_none(self) -> None:
        assert compute_hash("") is None

    def test_deterministic_sha256(self) -> None:
        digest = compute_hash("hello")
        assert digest == compute_hash("hello")
        assert digest == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


class TestExtractHtml:
    def test_main_text_and_title(self) -> None:
        extracted = extract_html(ARTICLE_HTML)

        assert extracted.title == "Note Apps Report"
        assert "note-taking market is growing quickly" in extracted.text
        assert "semantic search" in extracted.text

    def test_page_without_body_text(self) -> None:
        extracted = extract_html("<html><head><title>Empty</title></head><body></body></html>")
        assert extracted.title == "Empty"
        assert extracted.pages is None

    def test_boilerplate_excluded(self) -> None:
        extracted = extract_html(BOILERPLATE_HTML)

        assert "Remote teams now record most of their meetings" in extracted.text
        assert "SIDEBAR ADVERT" not in extracted.text
        assert "FOOTER COPYRIGHT" not in extracted.text
        assert "NAVIGATION MENU" not in extracted.text


class TestExtractPdf:
    def test_page_count_and_title(self) -> None:
        writer = PdfWriter()
        writer.add_blank_page(width=200, height=200)
        writer.add_blank_page(width=200, height=200)
        writer.add_metadata({"/Title": "Market Study"})
        buffer = io.BytesIO()
        writer.write(buffer)

        extracted = extract_pdf(buffer.getvalue())

        assert extracted.pages == 2
        assert extracted.title == "Market Study"
        assert extracted.text == ""
