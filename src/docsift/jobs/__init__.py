"""Background crawl jobs: progress tracking in Redis and the arq queue.

The arq worker lives in ``docsift.jobs.worker``; run it with ``docsift worker``.
"""

from docsift.jobs.queue import ArqLauncher, get_redis_settings
from docsift.jobs.tracker import JobInfo, JobStatus, JobTracker

__all__ = [
    "ArqLauncher",
    "JobInfo",
    "JobStatus",
    "JobTracker",
    "get_redis_settings",
]
