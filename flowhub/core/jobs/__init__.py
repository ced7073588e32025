"""Jobs module: payloads, delayed queues and the job worker."""

from flowhub.core.jobs.payloads import (
    ExecuteFlowJob,
    JobPayload,
    PollTriggerJob,
    QueuedJob,
    ResumeFlowJob,
)
from flowhub.core.jobs.queue import InMemoryJobQueue, JobQueue, RedisJobQueue, get_job_queue
from flowhub.core.jobs.worker import JobWorker

__all__ = [
    "ExecuteFlowJob",
    "InMemoryJobQueue",
    "JobPayload",
    "JobQueue",
    "JobWorker",
    "PollTriggerJob",
    "QueuedJob",
    "RedisJobQueue",
    "ResumeFlowJob",
    "get_job_queue",
]
