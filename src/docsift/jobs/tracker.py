"""Crawl job progress stored as Redis hashes.

Each job lives under ``job:{id}`` with camelCase fields so any client can
read it. Every write renews the 24h TTL, so a job disappears a day after its
last update. Counters are only ever changed through HINCRBY.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from redis.asyncio import Redis

log = structlog.get_logger()

JOB_KEY_PREFIX = "job:"
DEFAULT_JOB_TTL = 86400


class JobStatus(StrEnum):
    """Lifecycle of a crawl job."""

    PENDING = "pending"
    CRAWLING = "crawling"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobInfo:
    """Snapshot of a crawl job."""

    id: str
    status: JobStatus
    total_pages: int = 0
    processed_pages: int = 0
    failed_pages: int = 0
    error: str | None = None
    started_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "status": self.status.value,
            "totalPages": self.total_pages,
            "processedPages": self.processed_pages,
            "failedPages": self.failed_pages,
            "startedAt": self.started_at,
            "updatedAt": self.updated_at,
        }
        if self.error:
            data["error"] = self.error
        return data


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


def job_key(job_id: str) -> str:
    return f"{JOB_KEY_PREFIX}{job_id}"


class JobTracker:
    """Reads and writes crawl job records."""

    def __init__(self, redis: Redis, *, ttl_seconds: int = DEFAULT_JOB_TTL) -> None:
        self._redis = redis
        self.ttl_seconds = ttl_seconds

    async def create_job(self, job_id: str) -> JobInfo:
        """Create a pending job with zeroed counters."""
        now = _now()
        job = JobInfo(id=job_id, status=JobStatus.PENDING, started_at=now, updated_at=now)
        key = job_key(job_id)
        await self._redis.hset(
            key,
            mapping={
                "id": job_id,
                "status": job.status.value,
                "totalPages": 0,
                "processedPages": 0,
                "failedPages": 0,
                "startedAt": now,
                "updatedAt": now,
            },
        )
        await self._redis.expire(key, self.ttl_seconds)
        log.debug("Created job", job_id=job_id)
        return job

    async def update_job(
        self,
        job_id: str,
        *,
        status: JobStatus | None = None,
        total_pages: int | None = None,
        error: str | None = None,
    ) -> None:
        """Overwrite the given fields and bump updatedAt."""
        mapping: dict[str, str | int] = {"updatedAt": _now()}
        if status is not None:
            mapping["status"] = status.value
        if total_pages is not None:
            mapping["totalPages"] = total_pages
        if error is not None:
            mapping["error"] = error

        key = job_key(job_id)
        await self._redis.hset(key, mapping=mapping)
        await self._redis.expire(key, self.ttl_seconds)

    async def increment(self, job_id: str, *, processed: int = 0, failed: int = 0) -> None:
        """Atomically add to the page counters."""
        key = job_key(job_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            if processed:
                pipe.hincrby(key, "processedPages", processed)
            if failed:
                pipe.hincrby(key, "failedPages", failed)
            pipe.hset(key, "updatedAt", _now())
            pipe.expire(key, self.ttl_seconds)
            await pipe.execute()

    async def get_job(self, job_id: str) -> JobInfo | None:
        """Read a job; None when it is unknown or expired."""
        raw = await self._redis.hgetall(job_key(job_id))
        data = {_decode(k): _decode(v) for k, v in raw.items()}
        if not data.get("id"):
            return None

        return JobInfo(
            id=data["id"],
            status=JobStatus(data.get("status", JobStatus.PENDING.value)),
            total_pages=int(data.get("totalPages", 0)),
            processed_pages=int(data.get("processedPages", 0)),
            failed_pages=int(data.get("failedPages", 0)),
            error=data.get("error") or None,
            started_at=data.get("startedAt", ""),
            updated_at=data.get("updatedAt", ""),
        )
