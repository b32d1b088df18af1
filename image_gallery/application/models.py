"""
Shared Application Models

Responsibility:
    Contains shared models used across Application Layer.
    Prevents circular dependencies between the queue, the orchestrator
    and the reconciliation poller.

Contains:
    - JobSource: Enum naming who submitted an annotation job
    - Job: Unit of work accepted by SequentialJobQueue
    - JobHandler: Type of the coroutine function a Job runs

Does NOT contain:
    - Business logic (belongs to Domain Layer)
    - HTTP models (belongs to API Layer)
    - Infrastructure details (belongs to Infrastructure Layer)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable

from image_gallery.domain.annotation.entities.annotation_record import utc_now


class JobSource(str, Enum):
    """
    Origin of an annotation job.

    Attributes:
        UPLOAD: Submitted right after a successful upload
        RECONCILIATION: Re-submitted by the reconciliation poller
        REANALYSIS: Submitted by an explicit user re-analysis request

    Usage:
        >>> JobSource.UPLOAD.value
        'upload'
    """

    UPLOAD = "upload"
    RECONCILIATION = "reconciliation"
    REANALYSIS = "reanalysis"


JobHandler = Callable[["Job"], Awaitable[None]]


@dataclass(frozen=True)
class Job:
    """
    One unit of annotation work.

    The queue treats a job as opaque: it only awaits handler(job). The
    image_reference must be fetchable by the AI service at the time the job
    runs (a temporary access URL, minted fresh on every submission).

    Attributes:
        image_id: Image to annotate (also the AnnotationRecord key)
        owner_id: Owner of the image
        image_reference: URL the AI service fetches the image from
        handler: Coroutine function executed by the queue
        source: Who submitted the job
        enqueued_at: Submission time (UTC)
    """

    image_id: str
    owner_id: str
    image_reference: str
    handler: JobHandler = field(repr=False, compare=False)
    source: JobSource = JobSource.UPLOAD
    enqueued_at: datetime = field(default_factory=utc_now)

    async def run(self) -> None:
        await self.handler(self)
