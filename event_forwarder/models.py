"""Data models for the event forwarding pipeline.

Inbound items and everything derived from them are frozen dataclasses owned
by the pipeline.  The pydantic models at the bottom are the response shapes
of the control API.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, assert_never

from pydantic import BaseModel, Field

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utcnow() -> datetime:
    return datetime.now(UTC)


class ParticipantKind(str, Enum):
    """How a participant's address can be turned into a routable one."""

    SMTP = "smtp"
    DIRECTORY = "directory"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Participant:
    """Sender or organizer handle as reported by the mailbox."""

    address: str
    kind: ParticipantKind = ParticipantKind.SMTP
    name: str = ""


@dataclass(frozen=True)
class Attachment:
    """A lazily materialized attachment on an inbound item.

    ``save_to`` writes the attachment bytes to the given path; nothing is
    fetched until it is awaited.
    """

    display_name: str
    file_name: str
    save_to: Callable[[Path], Awaitable[None]]


@dataclass(frozen=True)
class Message:
    item_id: str
    sender: Participant | None
    subject: str
    body: str
    received_at: datetime
    attachments: tuple[Attachment, ...] = ()


@dataclass(frozen=True)
class MeetingRequest:
    item_id: str
    organizer: Participant | None
    subject: str
    body: str
    received_at: datetime
    attachments: tuple[Attachment, ...] = ()


InboundItem = Message | MeetingRequest


@dataclass(frozen=True)
class ForwardRequest:
    """Kind-independent view of an inbound item."""

    item_id: str
    participant: Participant | None
    subject: str
    body: str
    received_at: datetime
    attachments: tuple[Attachment, ...] = ()


def to_forward_request(item: InboundItem) -> ForwardRequest:
    """Extract the fields the forwarder needs from either item kind."""
    match item:
        case Message(sender=participant):
            pass
        case MeetingRequest(organizer=participant):
            pass
        case _:
            assert_never(item)

    return ForwardRequest(
        item_id=item.item_id,
        participant=participant,
        subject=item.subject,
        body=item.body,
        received_at=item.received_at,
        attachments=item.attachments,
    )


@dataclass(frozen=True)
class Skip:
    reason: str


@dataclass(frozen=True)
class Forward:
    target: str


ForwardDecision = Skip | Forward


@dataclass(frozen=True)
class EventDraft:
    """Content of a calendar event about to be created."""

    subject: str
    body: str
    start: datetime
    end: datetime


class EventOutcome(str, Enum):
    """Terminal result of creating a forwarded event."""

    SENT = "sent"
    SAVED = "saved"
    FAILED = "failed"


class ArrivalOutcome(str, Enum):
    """Terminal state of one arrival in the inbox watcher."""

    SUPPRESSED = "suppressed"
    DISCARDED = "discarded"
    DISCARDED_AFTER_WAIT = "discarded_after_wait"
    DISPATCHED = "dispatched"
    FAILED = "failed"


class ServiceStatus(str, Enum):
    """Runtime status of a forwarder service instance."""

    STARTING = "starting"
    RUNNING = "running"
    DEGRADED = "degraded"
    STOPPING = "stopping"
    STOPPED = "stopped"


class PauseStatus(BaseModel):
    """Current state of the pause window."""

    paused: bool = Field(description="Whether forwarding is currently suppressed")
    resume_at: datetime | None = Field(
        default=None,
        description="When forwarding resumes (UTC), or null if no window is set",
    )


class ManualTestResult(BaseModel):
    """Outcome of a manual "send now" test."""

    ok: bool = Field(description="Whether a test event was sent or saved")
    message: str = Field(description="Human-readable report")
    target: str = Field(default="", description="Address the test event went to")
    outcome: EventOutcome | None = Field(
        default=None,
        description="Event outcome, or null when nothing was attempted",
    )


class HealthStatus(BaseModel):
    """Response model for the /health endpoint."""

    service_name: str = Field(description="Name of the service instance")
    status: ServiceStatus = Field(description="Current service status")
    uptime_seconds: float = Field(description="Seconds since the service started")
    pause: PauseStatus = Field(description="Pause window state")
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Watcher counters and mailbox provider details",
    )
