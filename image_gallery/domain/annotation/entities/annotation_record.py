"""
AnnotationRecord Entity.

Per-image processing state of the annotation pipeline. One record exists per
uploaded image (keyed by image id) and carries the current status plus the
most recent annotation result.

Unlike Value Objects, Entities are mutable and track their state over time.
The status state machine lives here so every store backend enforces the
same transition rules.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from image_gallery.domain.annotation.value_objects.annotation import Annotation
from image_gallery.domain.shared.exceptions import (
    InvalidInputError,
    InvalidStatusTransitionError,
)


def utc_now() -> datetime:
    """Timezone-aware current UTC time (single clock for all records)."""
    return datetime.now(timezone.utc)


class AnnotationStatus(str, Enum):
    """
    Lifecycle states of AnnotationRecord.

    States:
        PENDING: Record created, job queued or waiting for reconciliation
        PROCESSING: Job handler started, AI service being called
        DONE: Annotation stored (terminal unless re-analysis is requested)
        FAILED: Attempted and failed; re-submitted by the poller when the
            failure was transient (record.retryable), otherwise only on re-analysis

    Transitions:
        pending    -> processing | failed
        processing -> done | failed
        failed     -> processing            (re-submission, retry from scratch)
        done       -> pending               (explicit re-analysis)
        failed     -> pending               (explicit re-analysis)
        any        -> same status           (idempotent rewrite)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[AnnotationStatus, frozenset[AnnotationStatus]] = {
    AnnotationStatus.PENDING: frozenset(
        {AnnotationStatus.PENDING, AnnotationStatus.PROCESSING, AnnotationStatus.FAILED}
    ),
    AnnotationStatus.PROCESSING: frozenset(
        {AnnotationStatus.PROCESSING, AnnotationStatus.DONE, AnnotationStatus.FAILED}
    ),
    AnnotationStatus.DONE: frozenset(
        {AnnotationStatus.DONE, AnnotationStatus.PENDING}
    ),
    AnnotationStatus.FAILED: frozenset(
        {AnnotationStatus.FAILED, AnnotationStatus.PROCESSING, AnnotationStatus.PENDING}
    ),
}


@dataclass
class AnnotationRecord:
    """
    Mutable entity holding the annotation state of one image.

    Attributes:
        image_id: Opaque id of the annotated image (also the record key)
        owner_id: Id of the user who uploaded the image
        image_location: Storage location of the original image; the
            reconciliation poller mints a fresh access URL from it
        status: Current AnnotationStatus (exactly one at any time)
        annotation: Annotation result, present iff status == DONE
        created_at: When the record was created (UTC)
        updated_at: Last write (UTC); liveness signal for the poller
        retryable: True when a failed job may be retried by the poller
        failed_attempts: Failed jobs since the last success or re-analysis

    Business Rules:
        - Annotation fields are present iff status == DONE
        - Every transition away from DONE clears the annotation
        - Every write bumps updated_at
        - retryable is only ever set on a failed record

    Examples:
        >>> record = AnnotationRecord.new_pending("img-1", "user-1", "user-1/originals/a.jpg")
        >>> record.transition_to(AnnotationStatus.PROCESSING)
        >>> record.complete(Annotation(description="A cat", tags=["cat"], colors=["black"]))
        >>> record.status
        <AnnotationStatus.DONE: 'done'>
        >>> record.tags
        ('cat',)
    """

    image_id: str
    owner_id: str
    image_location: str
    status: AnnotationStatus = AnnotationStatus.PENDING
    annotation: Optional[Annotation] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    retryable: bool = False
    failed_attempts: int = 0

    def __post_init__(self) -> None:
        if not self.image_id:
            raise InvalidInputError("image_id cannot be empty", field_name="image_id")
        if not self.owner_id:
            raise InvalidInputError("owner_id cannot be empty", field_name="owner_id")

        self.status = AnnotationStatus(self.status)

        if self.status != AnnotationStatus.DONE and self.annotation is not None:
            raise ValueError(
                f"Annotation fields must be empty while status is '{self.status.value}'"
            )
        if self.status == AnnotationStatus.DONE and self.annotation is None:
            raise ValueError("A 'done' record must carry an annotation")
        if self.retryable and self.status != AnnotationStatus.FAILED:
            raise ValueError("Only a 'failed' record can be retryable")

    @classmethod
    def new_pending(
        cls,
        image_id: str,
        owner_id: str,
        image_location: str,
        now: Optional[datetime] = None,
    ) -> "AnnotationRecord":
        """Create the record written at upload time (status=pending)."""
        timestamp = now or utc_now()
        return cls(
            image_id=image_id,
            owner_id=owner_id,
            image_location=image_location,
            status=AnnotationStatus.PENDING,
            created_at=timestamp,
            updated_at=timestamp,
        )

    # ------------------------------------------------------------------
    # Annotation field accessors (None unless status == DONE)
    # ------------------------------------------------------------------

    @property
    def description(self) -> Optional[str]:
        return self.annotation.description if self.annotation else None

    @property
    def tags(self) -> Optional[tuple[str, ...]]:
        return self.annotation.tags if self.annotation else None

    @property
    def colors(self) -> Optional[tuple[str, ...]]:
        return self.annotation.colors if self.annotation else None

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def can_transition_to(self, status: AnnotationStatus) -> bool:
        return AnnotationStatus(status) in ALLOWED_TRANSITIONS[self.status]

    def _check_transition(self, status: AnnotationStatus) -> None:
        if not self.can_transition_to(status):
            raise InvalidStatusTransitionError(self.status.value, status.value)

    def transition_to(
        self, status: AnnotationStatus, now: Optional[datetime] = None
    ) -> None:
        """
        Move to a status that carries no annotation.

        DONE is reached only through complete(), because a done record must
        carry its annotation in the same write.

        Args:
            status: Target status (pending, processing or failed)
            now: Write timestamp (defaults to current UTC time)

        Raises:
            ValueError: If status is DONE
            InvalidStatusTransitionError: If the transition is not allowed
        """
        status = AnnotationStatus(status)
        if status == AnnotationStatus.DONE:
            raise ValueError("Status 'done' requires an annotation, use complete()")

        self._check_transition(status)
        if status == AnnotationStatus.PENDING:
            self.failed_attempts = 0
        self.status = status
        self.annotation = None
        self.retryable = False
        self.updated_at = now or utc_now()

    def complete(self, annotation: Annotation, now: Optional[datetime] = None) -> None:
        """
        Store the annotation result and mark the record DONE.

        Args:
            annotation: Annotation returned by the AI service
            now: Write timestamp (defaults to current UTC time)

        Raises:
            InvalidStatusTransitionError: If the record is not processing/done
        """
        self._check_transition(AnnotationStatus.DONE)
        self.status = AnnotationStatus.DONE
        self.annotation = annotation
        self.retryable = False
        self.failed_attempts = 0
        self.updated_at = now or utc_now()

    def fail(self, now: Optional[datetime] = None, retryable: bool = False) -> None:
        """
        Mark the record FAILED and drop any annotation fields.

        Args:
            now: Write timestamp (defaults to current UTC time)
            retryable: Whether the poller may submit the job again
        """
        self.transition_to(AnnotationStatus.FAILED, now=now)
        self.retryable = retryable
        self.failed_attempts += 1

    def is_older_than(self, cutoff: datetime) -> bool:
        """True when the last write happened strictly before cutoff."""
        return self.updated_at < cutoff

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize to a JSON-compatible dict.

        Annotation fields are emitted as null unless status == DONE.
        """
        return {
            "image_id": self.image_id,
            "owner_id": self.owner_id,
            "image_location": self.image_location,
            "status": self.status.value,
            "description": self.description,
            "tags": list(self.tags) if self.tags is not None else None,
            "colors": list(self.colors) if self.colors is not None else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "retryable": self.retryable,
            "failed_attempts": self.failed_attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnnotationRecord":
        """Rebuild a record from to_dict() output."""
        status = AnnotationStatus(data["status"])
        annotation = None
        if status == AnnotationStatus.DONE:
            annotation = Annotation(
                description=data.get("description"),
                tags=data.get("tags") or [],
                colors=data.get("colors") or [],
            )

        return cls(
            image_id=data["image_id"],
            owner_id=data["owner_id"],
            image_location=data.get("image_location", ""),
            status=status,
            annotation=annotation,
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            retryable=bool(data.get("retryable", False)),
            failed_attempts=int(data.get("failed_attempts", 0)),
        )

    def __repr__(self) -> str:
        return (
            f"AnnotationRecord(image_id={self.image_id!r}, "
            f"status={self.status.value!r}, updated_at={self.updated_at.isoformat()})"
        )
