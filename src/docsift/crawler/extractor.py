"""Article extraction and markdown normalization.

Rendered HTML goes through readability to isolate the main article, then
markdownify converts it to markdown with ATX headings, fenced code blocks
and ``-`` bullets. Media and script-like elements never reach the output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog
from bs4 import BeautifulSoup
from markdownify import MarkdownConverter
from readability import Document

log = structlog.get_logger()

# Elements dropped entirely (content included) before conversion
REMOVED_TAGS = (
    "img",
    "video",
    "audio",
    "iframe",
    "picture",
    "figure",
    "svg",
    "script",
    "style",
    "noscript",
)

_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_TRAILING_WHITESPACE = re.compile(r"[ \t]+$", re.MULTILINE)

# Placeholder readability returns for pages without a <title>
NO_TITLE = "[no-title]"


@dataclass
class ProcessedContent:
    """Readable article content of one page."""

    title: str
    markdown: str
    word_count: int


def _converter() -> MarkdownConverter:
    return MarkdownConverter(
        heading_style="ATX",
        code_language="",
        bullets="-",
        escape_underscores=False,
        escape_asterisks=False,
    )


def html_to_markdown(html: str) -> str:
    """Convert an HTML fragment to normalized markdown."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(REMOVED_TAGS):
        tag.decompose()

    markdown = _converter().convert_soup(soup)
    return normalize_markdown(markdown)


def normalize_markdown(markdown: str) -> str:
    """Strip trailing whitespace per line, collapse blank-line runs, trim."""
    markdown = _TRAILING_WHITESPACE.sub("", markdown)
    markdown = _EXCESS_NEWLINES.sub("\n\n", markdown)
    return markdown.strip()


def count_words(markdown: str) -> int:
    """Number of non-empty whitespace-delimited tokens."""
    return len(markdown.split())


def process_html(html: str, url: str) -> ProcessedContent | None:
    """Extract the readable article from rendered page HTML.

    Args:
        html: Rendered page markup
        url: Page URL (lets readability resolve relative links)

    Returns:
        ProcessedContent, or None when no article-like content was found
    """
    try:
        document = Document(html, url=url)
        summary = document.summary(html_partial=True)
        title = document.short_title()
    except Exception as e:
        log.warning("Readability failed to parse page", url=url, error=str(e))
        return None

    if not summary or not BeautifulSoup(summary, "lxml").get_text(strip=True):
        return None

    markdown = html_to_markdown(summary)
    if not markdown:
        return None

    return ProcessedContent(
        title="" if title == NO_TITLE else title.strip(),
        markdown=markdown,
        word_count=count_words(markdown),
    )
