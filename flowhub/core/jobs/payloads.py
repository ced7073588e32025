"""Job payload models dispatched through the job queue."""

from typing import Annotated, Any, ClassVar, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from flowhub.core.config_file import get_settings

settings = get_settings()


class JobPayload(BaseModel):
    """Base payload. Subclasses set their own tries and timeout budget."""

    job_type: str
    tries: ClassVar[int] = 1
    timeout: ClassVar[int] = 60


class ExecuteFlowJob(JobPayload):
    """Start (or re-enter) a flow execution."""

    job_type: Literal["execute_flow"] = "execute_flow"
    flow_id: UUID
    execution_id: UUID | None = None
    trigger_event_id: UUID | None = None
    context: dict[str, Any] = Field(default_factory=dict)

    tries: ClassVar[int] = settings.EXECUTE_JOB_TRIES
    timeout: ClassVar[int] = settings.EXECUTE_JOB_TIMEOUT


class ResumeFlowJob(JobPayload):
    """Resume a waiting execution."""

    job_type: Literal["resume_flow"] = "resume_flow"
    execution_id: UUID
    node_id: str | None = None  # Suspended node this resume was scheduled for
    data: dict[str, Any] = Field(default_factory=dict)

    tries: ClassVar[int] = settings.EXECUTE_JOB_TRIES
    timeout: ClassVar[int] = settings.EXECUTE_JOB_TIMEOUT


class PollTriggerJob(JobPayload):
    """Poll one trigger subscription."""

    job_type: Literal["poll_trigger"] = "poll_trigger"
    subscription_id: UUID

    tries: ClassVar[int] = settings.POLL_JOB_TRIES
    timeout: ClassVar[int] = settings.POLL_JOB_TIMEOUT


Job = Annotated[
    ExecuteFlowJob | ResumeFlowJob | PollTriggerJob,
    Field(discriminator="job_type"),
]


class QueuedJob(BaseModel):
    """Envelope stored in the queue: the payload plus delivery bookkeeping."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    job: Job
    attempt: int = 1
