"""Markdown chunking for retrieval.

Splits a page's markdown into heading-labeled chunks bounded by an
estimated token count. The estimate is deliberately simple (one token per
four characters, rounded up) and must stay stable: chunk boundaries and the
stored token counts depend on it.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

TARGET_TOKENS = 500
MAX_TOKENS = 800

_HEADING = re.compile(r"^#{1,6}\s")
_HEADING_PREFIX = re.compile(r"^#+\s*")


@dataclass
class Chunk:
    """A chunk of page content ready for embedding.

    Attributes:
        content: Trimmed chunk text
        heading: Nearest preceding heading text, if any
        token_count: Estimated token count of ``content``
        index: Position in the page (0-based, contiguous)
    """

    content: str
    heading: str | None
    token_count: int
    index: int


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 characters per token, rounded up."""
    return math.ceil(len(text) / 4)


class MarkdownChunker:
    """Line-oriented chunker with heading boundaries and a hard token cap."""

    def __init__(
        self,
        *,
        target_tokens: int = TARGET_TOKENS,
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        self.target_tokens = target_tokens
        self.max_tokens = max_tokens

    def chunk(self, markdown: str) -> list[Chunk]:
        chunks: list[Chunk] = []
        lines: list[str] = []
        tokens = 0
        heading: str | None = None

        def flush() -> None:
            nonlocal lines, tokens
            content = "\n".join(lines).strip()
            lines = []
            tokens = 0
            if content:
                chunks.append(
                    Chunk(
                        content=content,
                        heading=heading,
                        token_count=estimate_tokens(content),
                        index=len(chunks),
                    )
                )

        for line in markdown.split("\n"):
            if _HEADING.match(line):
                if tokens > 0:
                    flush()
                heading = _HEADING_PREFIX.sub("", line).strip()
                lines.append(line)
                tokens = estimate_tokens("\n".join(lines))
                continue

            # Estimate over the joined text so newlines count toward the cap
            pending = estimate_tokens("\n".join([*lines, line]))
            if pending > self.max_tokens and tokens > 0:
                flush()
                pending = estimate_tokens(line)

            lines.append(line)
            tokens = pending

            # Soft boundary: target reached at a paragraph break
            if tokens >= self.target_tokens and line == "":
                flush()

        flush()
        return chunks


def chunk_markdown(
    markdown: str,
    *,
    target_tokens: int = TARGET_TOKENS,
    max_tokens: int = MAX_TOKENS,
) -> list[Chunk]:
    """Convenience function to chunk markdown with the default limits."""
    return MarkdownChunker(target_tokens=target_tokens, max_tokens=max_tokens).chunk(markdown)
