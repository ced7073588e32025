"""Background worker: runs execute, resume and poll jobs from the job queue."""

import asyncio
import logging
import signal
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any

from sqlalchemy.orm import Session

from flowhub.core.config_file import Settings, get_settings
from flowhub.core.db.session import SessionLocal
from flowhub.core.execution.engine import ExecutionEngine
from flowhub.core.integrations import ConnectorRegistry, CredentialVault, EngineHooks, StaticCredentialVault
from flowhub.core.integrations.connectors import register_builtin_connectors
from flowhub.core.jobs.payloads import ExecuteFlowJob, JobPayload, PollTriggerJob, ResumeFlowJob
from flowhub.core.jobs.queue import JobQueue, RedisJobQueue, get_job_queue
from flowhub.core.jobs.worker import JobWorker
from flowhub.core.logging import configure_logging
from flowhub.core.triggers.engine import TriggerEngine
from flowhub.models.execution import ExecutionStatus
from flowhub.repositories.execution_repository import ExecutionRepository

logger = logging.getLogger(__name__)


class JobHandlers:
    """Job handlers opening one database session per job."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: ConnectorRegistry,
        vault: CredentialVault,
        queue: JobQueue,
        hooks: EngineHooks | None = None,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.vault = vault
        self.queue = queue
        self.hooks = hooks or EngineHooks()
        self.settings = settings or get_settings()

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def _execution_engine(self, db: Session) -> ExecutionEngine:
        return ExecutionEngine(db, self.registry, self.vault, self.queue, self.hooks)

    def _trigger_engine(self, db: Session) -> TriggerEngine:
        return TriggerEngine(db, self.registry, self.vault, self.queue, self.hooks, self.settings)

    async def execute_flow(self, job: ExecuteFlowJob, attempt: int) -> None:
        final_attempt = attempt >= job.tries
        with self._session() as db:
            engine = self._execution_engine(db)
            if job.execution_id is not None:
                execution = ExecutionRepository(db).get_execution_by_id(job.execution_id)
                if execution is None:
                    logger.warning(f"Execution {job.execution_id} no longer exists, dropping job")
                    return
                await engine.run_execution(execution, final_attempt=final_attempt)
            elif job.trigger_event_id is not None:
                await engine.start_for_event(
                    job.flow_id, job.trigger_event_id, job.context, final_attempt=final_attempt
                )
            else:
                await engine.execute(job.flow_id, job.context, run_async=False)

    async def resume_flow(self, job: ResumeFlowJob, attempt: int) -> None:
        final_attempt = attempt >= job.tries
        with self._session() as db:
            engine = self._execution_engine(db)
            if attempt > 1:
                # A retried resume already moved the execution back to running
                execution = ExecutionRepository(db).get_execution_by_id(job.execution_id)
                if execution is not None and execution.status == ExecutionStatus.RUNNING.value:
                    await engine.run_execution(execution, final_attempt=final_attempt)
                    return
            await engine.resume(
                job.execution_id, job.data, node_id=job.node_id, final_attempt=final_attempt
            )

    async def poll_trigger(self, job: PollTriggerJob, attempt: int) -> None:
        with self._session() as db:
            await self._trigger_engine(db).poll(job.subscription_id, final_attempt=attempt >= job.tries)

    async def record_failure(self, job: JobPayload, error: BaseException) -> None:
        """Move the job's execution to failed once its job gives up."""
        if isinstance(job, PollTriggerJob):
            return

        with self._session() as db:
            engine = self._execution_engine(db)
            execution_id = getattr(job, "execution_id", None)
            if execution_id is None and isinstance(job, ExecuteFlowJob) and job.trigger_event_id:
                execution = ExecutionRepository(db).get_execution_by_event(job.trigger_event_id)
                execution_id = execution.id if execution else None
            if execution_id is not None:
                engine.fail(execution_id, error)

    async def requeue_pending_events(self) -> int:
        with self._session() as db:
            return await self._trigger_engine(db).requeue_pending_events()

    def handlers(self) -> dict[str, Any]:
        return {
            "execute_flow": self.execute_flow,
            "resume_flow": self.resume_flow,
            "poll_trigger": self.poll_trigger,
        }

    def build_worker(self) -> JobWorker:
        return JobWorker(self.queue, self.handlers(), self.record_failure, self.settings)


async def reconcile_pending_events(handlers: JobHandlers, interval: float) -> None:
    """Periodically re-enqueue trigger events whose execution job was lost."""
    while True:
        await asyncio.sleep(interval)
        try:
            await handlers.requeue_pending_events()
        except Exception as e:
            logger.error(f"Failed to requeue pending trigger events: {e}", exc_info=True)


async def run_worker(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    queue = get_job_queue(settings)
    handlers = JobHandlers(
        SessionLocal,
        register_builtin_connectors(ConnectorRegistry()),
        StaticCredentialVault(),
        queue,
        EngineHooks(),
        settings,
    )
    worker = handlers.build_worker()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    reconciler = asyncio.create_task(
        reconcile_pending_events(handlers, settings.PENDING_EVENT_GRACE_SECONDS)
    )
    try:
        await worker.run_forever()
    finally:
        reconciler.cancel()
        if isinstance(queue, RedisJobQueue):
            await queue.close()


def main() -> None:
    configure_logging()
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
