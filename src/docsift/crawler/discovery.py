"""URL discovery - decide which links found on the seed page get crawled."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from urllib.parse import urlsplit, urlunsplit

import structlog

log = structlog.get_logger()


def _origin(scheme: str, netloc: str) -> tuple[str, str]:
    return scheme.lower(), netloc.lower()


def filter_discovered_urls(
    links: Iterable[str],
    base_url: str,
    include_patterns: Sequence[str] | None = None,
    exclude_patterns: Sequence[str] | None = None,
) -> list[str]:
    """Filter raw anchor hrefs down to crawlable documentation URLs.

    A link is kept when it shares the base URL's origin, its path starts with
    the base path, and it passes the pattern filters. Fragments are dropped
    and duplicates removed (first occurrence wins). Include patterns are
    plain substrings of which at least one must match; any matching exclude
    pattern drops the link, even if it was included.

    Args:
        links: Absolute hrefs collected from the seed page
        base_url: Seed URL of the crawl
        include_patterns: Substrings of which one must be present
        exclude_patterns: Substrings that must not be present

    Returns:
        Normalized URLs in discovery order
    """
    base = urlsplit(base_url)
    base_origin = _origin(base.scheme, base.netloc)
    base_path = base.path

    seen: set[str] = set()
    urls: list[str] = []

    for link in links:
        try:
            parts = urlsplit(link)
            # Accessing .port validates it
            _ = parts.port
        except ValueError:
            continue

        if not parts.scheme or not parts.netloc:
            continue
        if _origin(parts.scheme, parts.netloc) != base_origin:
            continue
        if not parts.path.startswith(base_path):
            continue

        normalized = urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))
        if normalized in seen:
            continue
        seen.add(normalized)

        if include_patterns and not any(p in normalized for p in include_patterns):
            continue
        if exclude_patterns and any(p in normalized for p in exclude_patterns):
            continue

        urls.append(normalized)

    log.debug("Filtered discovered links", base_url=base_url, kept=len(urls))
    return urls


def build_crawl_list(seed_url: str, discovered: Sequence[str], max_pages: int) -> list[str]:
    """Seed first, then discovered URLs other than the seed, capped at max_pages."""
    urls = [seed_url, *(url for url in discovered if url != seed_url)]
    return urls[:max_pages]
