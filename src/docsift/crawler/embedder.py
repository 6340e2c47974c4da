"""Embedding generation for page chunks and search queries.

Talks to an OpenAI-compatible embeddings API (OpenRouter by default) in
batches of at most 100 texts. Each batch is retried on rate-limit and
connectivity errors with exponential backoff; rate limits back off one
step further than connectivity errors.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import openai
import structlog
from openai import AsyncOpenAI

from docsift.config import Settings
from docsift.db.models import EMBEDDING_DIMENSIONS
from docsift.errors import EmbeddingError

log = structlog.get_logger()

# Type alias for embeddings
Embedding = list[float]

MAX_BATCH_SIZE = 100
MAX_ATTEMPTS = 3
BASE_DELAY = 1.0


def is_retryable(error: BaseException) -> bool:
    """Rate-limit and connectivity (incl. timeout) errors are worth retrying."""
    return isinstance(error, (openai.RateLimitError, openai.APIConnectionError))


def backoff_delay(error: BaseException, attempt: int, base_delay: float = BASE_DELAY) -> float:
    """Delay before retrying a failed attempt (0-indexed).

    Connectivity errors wait base * 2**attempt; rate limits wait
    base * 2**(attempt + 1) to shed load harder.
    """
    exponent = attempt + 1 if isinstance(error, openai.RateLimitError) else attempt
    return base_delay * (2**exponent)


class EmbeddingService:
    """Service for generating embeddings from text.

    Order-preserving: output position always matches input position,
    whatever order the upstream returns vectors in.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str,
        dimensions: int | None = None,
        batch_size: int = MAX_BATCH_SIZE,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the embedding service.

        Args:
            client: OpenAI-compatible async client
            model: Embedding model name
            dimensions: Requested vector size (None keeps the model default)
            batch_size: Texts per request (capped at 100)
            max_attempts: Attempts per batch, including the first
            base_delay: Backoff unit in seconds
            sleep: Sleep function (injectable for tests)
        """
        self._client = client
        self.model = model
        self.dimensions = dimensions
        self.batch_size = min(batch_size, MAX_BATCH_SIZE)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> EmbeddingService:
        api_key = settings.embedding_api_key.get_secret_value()
        if not api_key:
            log.warning("No embeddings API key configured (set DOCSIFT_EMBEDDING_API_KEY)")
        if settings.embedding_dimensions != EMBEDDING_DIMENSIONS:
            raise ValueError(
                f"embedding_dimensions={settings.embedding_dimensions} does not match the "
                f"{EMBEDDING_DIMENSIONS}-dimension page_chunks.embedding column"
            )
        client = AsyncOpenAI(api_key=api_key or "unset", base_url=settings.embedding_base_url)
        return cls(
            client,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            batch_size=settings.embedding_batch_size,
        )

    async def close(self) -> None:
        await self._client.close()

    async def embed_text(self, text: str) -> Embedding:
        """Generate the embedding for a single text."""
        [embedding] = await self.embed_texts([text])
        return embedding

    async def embed_texts(self, texts: list[str]) -> list[Embedding]:
        """Generate embeddings for multiple texts.

        Batches are sent sequentially.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors (same order and length as input)
        """
        embeddings: list[Embedding] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            embeddings.extend(await self._embed_batch(batch))

            log.debug(
                "Embedded batch",
                batch_size=len(batch),
                total_processed=len(embeddings),
                total_remaining=len(texts) - len(embeddings),
            )

        return embeddings

    async def _embed_batch(self, batch: list[str]) -> list[Embedding]:
        for attempt in range(self.max_attempts):
            try:
                kwargs: dict[str, object] = {"model": self.model, "input": batch}
                if self.dimensions:
                    kwargs["dimensions"] = self.dimensions
                response = await self._client.embeddings.create(**kwargs)  # type: ignore[arg-type]
            except Exception as e:
                if not is_retryable(e):
                    raise
                if attempt == self.max_attempts - 1:
                    log.error(  # noqa: TRY400
                        "Embedding batch failed after retries",
                        attempts=self.max_attempts,
                        batch_size=len(batch),
                        error=str(e),
                    )
                    raise EmbeddingError(
                        f"Embedding failed after {self.max_attempts} attempts: {e}",
                        details={"batch_size": len(batch)},
                    ) from e

                delay = backoff_delay(e, attempt, self.base_delay)
                log.warning(
                    "Embedding request failed, retrying",
                    attempt=attempt + 1,
                    delay=f"{delay:.2f}s",
                    error=str(e),
                )
                await self._sleep(delay)
                continue

            # Ensure correct ordering
            ordered = sorted(response.data, key=lambda item: item.index)
            if len(ordered) != len(batch):
                raise EmbeddingError(
                    f"Embeddings API returned {len(ordered)} vectors for {len(batch)} inputs",
                    details={"batch_size": len(batch)},
                )
            return [item.embedding for item in ordered]

        raise EmbeddingError("Embedding failed after all retries")
