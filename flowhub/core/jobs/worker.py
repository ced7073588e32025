"""Job worker: dispatches due jobs to handlers with timeouts and retries."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from flowhub.core.config_file import Settings, get_settings
from flowhub.core.errors import (
    ExecutionTimeoutException,
    FlowNotActiveException,
    is_retryable,
)
from flowhub.core.jobs.payloads import JobPayload, QueuedJob
from flowhub.core.jobs.queue import JobQueue
from flowhub.core.jobs.retry import retry_delay, should_retry
from flowhub.core.logging import log_engine_event

logger = logging.getLogger(__name__)

JobHandler = Callable[[JobPayload, int], Awaitable[Any]]
FailureHandler = Callable[[JobPayload, BaseException], Awaitable[None]]


class JobWorker:
    """Pulls due jobs from a queue and runs them.

    Each handler receives the payload and the attempt number. A handler that
    exceeds the job's timeout fails with ExecutionTimeoutException. Retryable
    failures are re-queued while tries remain; anything else is logged and
    passed to the failure handler.
    """

    def __init__(
        self,
        queue: JobQueue,
        handlers: dict[str, JobHandler],
        failure_handler: FailureHandler | None = None,
        settings: Settings | None = None,
    ):
        self.queue = queue
        self.handlers = handlers
        self.failure_handler = failure_handler
        self.settings = settings or get_settings()
        self._running = False

    async def run_once(self, now: float | None = None) -> int:
        """Process every job due at ``now``.

        Returns:
            Number of jobs processed
        """
        queued_jobs = await self.queue.pop_due(now, self.settings.WORKER_BATCH_SIZE)
        for queued in queued_jobs:
            await self.process(queued)
        return len(queued_jobs)

    async def run_forever(self) -> None:
        """Poll the queue until stop() is called."""
        self._running = True
        logger.info("Job worker started")
        while self._running:
            processed = await self.run_once()
            if not processed:
                await asyncio.sleep(self.settings.WORKER_POLL_INTERVAL)
        logger.info("Job worker stopped")

    def stop(self) -> None:
        self._running = False

    async def process(self, queued: QueuedJob) -> None:
        """Run one queued job."""
        job = queued.job
        handler = self.handlers.get(job.job_type)
        if handler is None:
            logger.error(f"No handler registered for job type: {job.job_type}")
            return

        try:
            await asyncio.wait_for(handler(job, queued.attempt), timeout=job.timeout)
        except asyncio.TimeoutError:
            error = ExecutionTimeoutException(
                f"Job {job.job_type} exceeded its {job.timeout}s timeout",
                {"attempt": queued.attempt},
            )
            await self._handle_failure(queued, error)
        except Exception as e:
            await self._handle_failure(queued, e)

    async def _handle_failure(self, queued: QueuedJob, error: Exception) -> None:
        job = queued.job

        if is_retryable(error) and should_retry(queued.attempt, job.tries):
            delay = retry_delay(error, queued.attempt)
            log_engine_event(
                "job_retry_scheduled",
                level=logging.WARNING,
                job_type=job.job_type,
                job_id=queued.id,
                attempt=queued.attempt,
                delay=delay,
                error=str(error),
            )
            await self.queue.later(delay, job, attempt=queued.attempt + 1)
            return

        if isinstance(error, FlowNotActiveException):
            # Inactive flows and non-waiting resumes are expected outcomes, not failures
            logger.info(f"Dropping {job.job_type} job {queued.id}: {error}")
            return

        logger.error(
            f"Job {job.job_type} {queued.id} failed on attempt {queued.attempt}/{job.tries}: {error}",
            exc_info=error,
        )
        if self.failure_handler is not None:
            try:
                await self.failure_handler(job, error)
            except Exception as e:
                logger.error(f"Failure handler for job {queued.id} raised: {e}", exc_info=True)
