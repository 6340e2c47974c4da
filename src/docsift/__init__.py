"""Documentation ingestion and hybrid retrieval MCP server.

Crawls documentation sites, converts pages to markdown, chunks and embeds
them into PostgreSQL/pgvector, and serves semantic + full-text search.
"""

import logging

import structlog

# Configure logging FIRST before any other modules use structlog
_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "arq.worker",
    "arq.jobs",
    "crawl4ai",
    "readability.readability",
)
for _noisy in _NOISY_LOGGERS:
    logging.getLogger(_noisy).setLevel(logging.WARNING)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(colors=False, pad_event=30),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=False,
)


def configure_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    """Reconfigure structlog for a long-running process (server or worker).

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Emit JSON lines instead of console output
    """
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[logging.StreamHandler()],
        force=True,
    )

    renderer: structlog.typing.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False, pad_event=30)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso" if json_output else "%H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


__version__ = "0.1.0"
__all__ = ["__version__", "configure_logging"]
