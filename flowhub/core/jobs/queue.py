"""Delayed job queues: in-process and Redis sorted set."""

import asyncio
import heapq
import itertools
import logging
import time
from abc import ABC, abstractmethod

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError, RedisError

from flowhub.core.config_file import Settings, get_settings
from flowhub.core.jobs.payloads import JobPayload, QueuedJob

logger = logging.getLogger(__name__)


class JobQueueError(Exception):
    """Raised when the queue backend is unavailable."""

    pass


class JobQueue(ABC):
    """At-least-once queue of delayed jobs."""

    async def push(self, job: JobPayload) -> QueuedJob:
        """Enqueue a job for immediate dispatch."""
        return await self.later(0, job)

    @abstractmethod
    async def later(self, delay_seconds: float, job: JobPayload, attempt: int = 1) -> QueuedJob:
        """Enqueue a job to become due after a delay.

        Args:
            delay_seconds: Seconds from now until the job is due
            job: Job payload
            attempt: Delivery attempt number carried by the envelope

        Returns:
            The queued envelope
        """
        pass

    @abstractmethod
    async def pop_due(self, now: float | None = None, limit: int = 20) -> list[QueuedJob]:
        """Claim and remove jobs whose due time has passed.

        Args:
            now: Unix timestamp to compare against (defaults to current time)
            limit: Maximum number of jobs to claim
        """
        pass

    @abstractmethod
    async def size(self) -> int:
        """Number of queued jobs, due or not."""
        pass


class InMemoryJobQueue(JobQueue):
    """Heap-backed queue for a single process (local runs and tests)."""

    def __init__(self) -> None:
        self._heap: list[tuple[float, int, QueuedJob]] = []
        self._counter = itertools.count()
        self._lock = asyncio.Lock()

    async def later(self, delay_seconds: float, job: JobPayload, attempt: int = 1) -> QueuedJob:
        queued = QueuedJob(job=job, attempt=attempt)
        due_at = time.time() + max(delay_seconds, 0)
        async with self._lock:
            heapq.heappush(self._heap, (due_at, next(self._counter), queued))
        logger.debug(f"Queued {job.job_type} job {queued.id} (attempt {attempt}, delay {delay_seconds}s)")
        return queued

    async def pop_due(self, now: float | None = None, limit: int = 20) -> list[QueuedJob]:
        now = time.time() if now is None else now
        due: list[QueuedJob] = []
        async with self._lock:
            while self._heap and self._heap[0][0] <= now and len(due) < limit:
                due.append(heapq.heappop(self._heap)[2])
        return due

    async def size(self) -> int:
        return len(self._heap)

    def pending(self) -> list[QueuedJob]:
        """Snapshot of queued envelopes in due order."""
        return [entry[2] for entry in sorted(self._heap)]


class RedisJobQueue(JobQueue):
    """Queue stored in a Redis sorted set scored by due timestamp."""

    def __init__(self, redis_url: str, password: str = "", key: str = "flowhub:jobs"):
        """Initialize Redis job queue.

        Args:
            redis_url: Redis connection URL (e.g., 'redis://localhost:6379/0')
            password: Redis password (optional)
            key: Sorted set key holding the jobs
        """
        self.redis_url = redis_url
        self.password = password
        self.key = key
        self._client: aioredis.Redis | None = None

    async def _get_client(self) -> aioredis.Redis:
        """Get or create Redis client."""
        if self._client is None:
            connection_kwargs = {}
            if self.password and "@" not in self.redis_url:
                connection_kwargs["password"] = self.password
            try:
                self._client = aioredis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_keepalive=True,
                    **connection_kwargs,
                )
                await self._client.ping()
                logger.info("Connected to Redis job queue")
            except (ConnectionError, RedisError) as e:
                logger.error(f"Failed to connect to Redis: {e}")
                self._client = None
                raise JobQueueError(f"Failed to connect to Redis: {e}") from e
        return self._client

    async def later(self, delay_seconds: float, job: JobPayload, attempt: int = 1) -> QueuedJob:
        queued = QueuedJob(job=job, attempt=attempt)
        due_at = time.time() + max(delay_seconds, 0)
        client = await self._get_client()
        try:
            await client.zadd(self.key, {queued.model_dump_json(): due_at})
        except (ConnectionError, RedisError) as e:
            logger.error(f"Failed to enqueue {job.job_type} job: {e}")
            raise JobQueueError(f"Failed to enqueue job: {e}") from e
        logger.debug(f"Queued {job.job_type} job {queued.id} (attempt {attempt}, delay {delay_seconds}s)")
        return queued

    async def pop_due(self, now: float | None = None, limit: int = 20) -> list[QueuedJob]:
        now = time.time() if now is None else now
        client = await self._get_client()
        try:
            members = await client.zrangebyscore(self.key, "-inf", now, start=0, num=limit)
            claimed: list[QueuedJob] = []
            for member in members:
                # ZREM decides ownership when several workers race for the same member
                if await client.zrem(self.key, member):
                    claimed.append(QueuedJob.model_validate_json(member))
            return claimed
        except (ConnectionError, RedisError) as e:
            logger.error(f"Failed to pop due jobs: {e}")
            raise JobQueueError(f"Failed to pop due jobs: {e}") from e

    async def size(self) -> int:
        client = await self._get_client()
        return await client.zcard(self.key)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def get_job_queue(settings: Settings | None = None) -> JobQueue:
    """Build the job queue configured by JOB_QUEUE_BACKEND."""
    settings = settings or get_settings()
    if settings.JOB_QUEUE_BACKEND == "redis":
        return RedisJobQueue(
            redis_url=settings.REDIS_URL,
            password=settings.REDIS_PASSWORD,
            key=settings.JOB_QUEUE_KEY,
        )
    return InMemoryJobQueue()
