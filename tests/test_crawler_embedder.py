"""Tests for the batched embedding client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from docsift.config import Settings
from docsift.crawler.embedder import EmbeddingService, backoff_delay, is_retryable
from docsift.db.models import EMBEDDING_DIMENSIONS
from docsift.errors import EmbeddingError

API_URL = "https://openrouter.ai/api/v1/embeddings"


def rate_limit_error() -> openai.RateLimitError:
    response = httpx.Response(429, request=httpx.Request("POST", API_URL))
    return openai.RateLimitError("rate limited", response=response, body=None)


def connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", API_URL))


def timeout_error() -> openai.APITimeoutError:
    return openai.APITimeoutError(request=httpx.Request("POST", API_URL))


def embedding_response(inputs: list[str], *, reverse: bool = False) -> SimpleNamespace:
    """Fake response whose vectors encode the input text."""
    data = [
        SimpleNamespace(index=i, embedding=[float(text), 0.5])
        for i, text in enumerate(inputs)
    ]
    if reverse:
        data.reverse()
    return SimpleNamespace(data=data)


def make_service(create: AsyncMock, sleeps: list[float], **kwargs: object) -> EmbeddingService:
    client = MagicMock()
    client.embeddings.create = create

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    return EmbeddingService(
        client,
        model="openai/text-embedding-3-small",
        sleep=fake_sleep,
        **kwargs,  # type: ignore[arg-type]
    )


class TestRetryClassification:
    """Tests for which errors are retried and how long to wait."""

    def test_rate_limit_is_retryable(self) -> None:
        assert is_retryable(rate_limit_error())

    def test_connection_and_timeout_are_retryable(self) -> None:
        assert is_retryable(connection_error())
        assert is_retryable(timeout_error())

    def test_other_errors_are_not_retryable(self) -> None:
        assert not is_retryable(ValueError("bad input"))

    @pytest.mark.parametrize(("attempt", "expected"), [(0, 2.0), (1, 4.0), (2, 8.0)])
    def test_rate_limit_backoff(self, attempt: int, expected: float) -> None:
        assert backoff_delay(rate_limit_error(), attempt) == expected

    @pytest.mark.parametrize(("attempt", "expected"), [(0, 1.0), (1, 2.0), (2, 4.0)])
    def test_connection_backoff(self, attempt: int, expected: float) -> None:
        assert backoff_delay(connection_error(), attempt) == expected


class TestEmbedTexts:
    """Tests for EmbeddingService.embed_texts."""

    @pytest.mark.asyncio
    async def test_preserves_input_order(self) -> None:
        """Output follows input order even when the API returns it shuffled."""
        create = AsyncMock(side_effect=lambda **kw: embedding_response(kw["input"], reverse=True))
        service = make_service(create, [])
        texts = [str(i) for i in range(10)]

        embeddings = await service.embed_texts(texts)

        assert [e[0] for e in embeddings] == [float(i) for i in range(10)]

    @pytest.mark.asyncio
    async def test_batches_of_at_most_100(self) -> None:
        create = AsyncMock(side_effect=lambda **kw: embedding_response(kw["input"]))
        service = make_service(create, [])
        texts = [str(i) for i in range(250)]

        embeddings = await service.embed_texts(texts)

        sizes = [len(call.kwargs["input"]) for call in create.await_args_list]
        assert sizes == [100, 100, 50]
        assert len(embeddings) == 250
        assert [e[0] for e in embeddings] == [float(i) for i in range(250)]

    @pytest.mark.asyncio
    async def test_batch_size_is_capped(self) -> None:
        create = AsyncMock(side_effect=lambda **kw: embedding_response(kw["input"]))
        service = make_service(create, [], batch_size=500)

        assert service.batch_size == 100

    @pytest.mark.asyncio
    async def test_sends_model_name(self) -> None:
        create = AsyncMock(side_effect=lambda **kw: embedding_response(kw["input"]))
        service = make_service(create, [])

        await service.embed_texts(["1"])

        assert create.await_args.kwargs["model"] == "openai/text-embedding-3-small"

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_calls(self) -> None:
        create = AsyncMock()
        service = make_service(create, [])

        assert await service.embed_texts([]) == []
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_rate_limit_with_doubled_backoff(self) -> None:
        sleeps: list[float] = []
        create = AsyncMock(
            side_effect=[rate_limit_error(), rate_limit_error(), embedding_response(["7"])]
        )
        service = make_service(create, sleeps)

        embeddings = await service.embed_texts(["7"])

        assert embeddings == [[7.0, 0.5]]
        assert sleeps == [2.0, 4.0]
        assert create.await_count == 3

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self) -> None:
        sleeps: list[float] = []
        create = AsyncMock(
            side_effect=[connection_error(), timeout_error(), embedding_response(["3"])]
        )
        service = make_service(create, sleeps)

        await service.embed_texts(["3"])

        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_embedding_error(self) -> None:
        sleeps: list[float] = []
        create = AsyncMock(side_effect=[rate_limit_error()] * 3)
        service = make_service(create, sleeps)

        with pytest.raises(EmbeddingError):
            await service.embed_texts(["1"])

        assert create.await_count == 3
        assert sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self) -> None:
        sleeps: list[float] = []
        create = AsyncMock(side_effect=ValueError("invalid input"))
        service = make_service(create, sleeps)

        with pytest.raises(ValueError, match="invalid input"):
            await service.embed_texts(["1"])

        assert create.await_count == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_each_batch_has_its_own_retry_budget(self) -> None:
        sleeps: list[float] = []
        first = [str(i) for i in range(100)]
        second = ["100"]
        create = AsyncMock(
            side_effect=[
                rate_limit_error(),
                rate_limit_error(),
                embedding_response(first),
                rate_limit_error(),
                rate_limit_error(),
                embedding_response(second),
            ]
        )
        service = make_service(create, sleeps)

        embeddings = await service.embed_texts(first + second)

        assert len(embeddings) == 101
        assert sleeps == [2.0, 4.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_embed_text_returns_single_vector(self) -> None:
        create = AsyncMock(side_effect=lambda **kw: embedding_response(kw["input"]))
        service = make_service(create, [])

        assert await service.embed_text("42") == [42.0, 0.5]


class TestFromSettings:
    """Tests for building the service from settings."""

    def test_requests_configured_dimensions(self) -> None:
        settings = Settings(embedding_api_key="test-key", embedding_dimensions=EMBEDDING_DIMENSIONS)

        service = EmbeddingService.from_settings(settings)

        assert service.dimensions == EMBEDDING_DIMENSIONS
        assert service.model == settings.embedding_model

    def test_rejects_dimensions_the_schema_cannot_store(self) -> None:
        settings = Settings(embedding_api_key="test-key", embedding_dimensions=768)

        with pytest.raises(ValueError, match="768"):
            EmbeddingService.from_settings(settings)

    @pytest.mark.asyncio
    async def test_dimensions_sent_with_request(self) -> None:
        create = AsyncMock(side_effect=lambda **kw: embedding_response(kw["input"]))
        service = make_service(create, [], dimensions=EMBEDDING_DIMENSIONS)

        await service.embed_texts(["1"])

        assert create.await_args.kwargs["dimensions"] == EMBEDDING_DIMENSIONS
