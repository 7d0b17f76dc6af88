"""Shared test fixtures for the event forwarder test suite."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from event_forwarder.config import ForwarderConfig, GraphConfig, ServiceConfig
from event_forwarder.interface import EventHandle, MailboxProvider, TargetStore
from event_forwarder.models import (
    Attachment,
    EventDraft,
    InboundItem,
    MeetingRequest,
    Message,
    Participant,
    ParticipantKind,
)

INBOX = "inbox-folder"
DELETED = "deleteditems-folder"
FIXED_NOW = datetime(2025, 6, 2, 9, 0, tzinfo=UTC)


# ------------------------------------------------------------------
# In-memory collaborators
# ------------------------------------------------------------------


class FakeEventHandle(EventHandle):
    """Records everything done to an event."""

    def __init__(self, draft: EventDraft, *, resolvable: bool = True) -> None:
        self.draft = draft
        self.resolvable = resolvable
        self.attachments: list[tuple[str, bytes]] = []
        self.attachment_paths: list[Path] = []
        self.attendees: list[str] = []
        self.sent = False
        self.saved = False
        self.released = False
        self.send_error: Exception | None = None

    async def add_attachment(self, path: Path, display_name: str) -> None:
        self.attachment_paths.append(path)
        self.attachments.append((display_name, path.read_bytes()))

    async def add_required_attendee(self, address: str) -> bool:
        self.attendees.append(address)
        return self.resolvable

    async def send(self) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent = True

    async def save(self) -> None:
        self.saved = True

    async def release(self) -> None:
        self.released = True


class FakeMailboxProvider(MailboxProvider):
    """Mailbox whose folders, directory and calendar live in dicts."""

    def __init__(self, items: list[InboundItem] | None = None) -> None:
        self.items = list(items or [])
        self.folders: dict[str, str] = {}
        self.directory: dict[str, str] = {}
        self.events: list[FakeEventHandle] = []
        self.resolvable = True
        self.create_error: Exception | None = None
        self.folder_error: Exception | None = None
        self.send_error: Exception | None = None

    async def arrivals(self) -> AsyncIterator[InboundItem]:
        for item in self.items:
            yield item

    def discard(self, item_id: str) -> None:
        self.folders[item_id] = DELETED

    async def folder_id_of(self, item: InboundItem) -> str:
        if self.folder_error is not None:
            raise self.folder_error
        return self.folders.get(item.item_id, INBOX)

    async def discarded_folder_id(self) -> str:
        return DELETED

    async def directory_address(self, participant: Participant) -> str | None:
        return self.directory.get(participant.address)

    async def create_event(self, draft: EventDraft) -> FakeEventHandle:
        if self.create_error is not None:
            raise self.create_error
        event = FakeEventHandle(draft, resolvable=self.resolvable)
        event.send_error = self.send_error
        self.events.append(event)
        return event


class FakeTargetStore(TargetStore):
    def __init__(self, address: str = "team@example.com") -> None:
        self.address = address
        self.reads = 0

    def get_target_address(self) -> str:
        self.reads += 1
        return self.address


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def forwarder_config() -> ForwarderConfig:
    return ForwarderConfig(
        quiescence_seconds=0.05,
        pause_minutes=30,
        event_lead_minutes=10,
        event_duration_minutes=30,
    )


@pytest.fixture
def graph_config() -> GraphConfig:
    return GraphConfig(
        tenant_id="tenant-123",
        client_id="client-abc",
        client_secret="s3cret",
        mailbox="watcher@example.com",
        base_url="https://graph.test/v1.0",
        poll_interval_seconds=0.0,
    )


@pytest.fixture
def service_config(graph_config: GraphConfig, forwarder_config: ForwarderConfig) -> ServiceConfig:
    return ServiceConfig(
        name="forwarder-test",
        control_port=18080,
        log_json=False,
        forwarder=forwarder_config,
        graph=graph_config,
    )


@pytest.fixture
def provider() -> FakeMailboxProvider:
    return FakeMailboxProvider()


@pytest.fixture
def target_store() -> FakeTargetStore:
    return FakeTargetStore()


@pytest.fixture
def attachment_factory():
    """Factory for attachments whose ``save_to`` writes *content* or fails."""

    def _make(name: str = "report.pdf", content: bytes = b"%PDF-1.4", *, fail: bool = False) -> Attachment:
        async def save_to(path: Path) -> None:
            if fail:
                raise OSError(f"cannot save {name}")
            path.write_bytes(content)

        return Attachment(display_name=name, file_name=name, save_to=save_to)

    return _make


@pytest.fixture
def message_factory():
    """Factory to create Message items with overrides."""

    def _make(**overrides) -> Message:
        defaults = dict(
            item_id="msg-001",
            sender=Participant("boss@example.com", ParticipantKind.SMTP, "Boss"),
            subject="Q3 plan",
            body="Numbers attached.",
            received_at=FIXED_NOW,
        )
        defaults.update(overrides)
        return Message(**defaults)

    return _make


@pytest.fixture
def meeting_factory():
    """Factory to create MeetingRequest items with overrides."""

    def _make(**overrides) -> MeetingRequest:
        defaults = dict(
            item_id="mtg-001",
            organizer=Participant("organizer@example.com", ParticipantKind.SMTP),
            subject="Planning sync",
            body="Agenda TBD.",
            received_at=FIXED_NOW,
        )
        defaults.update(overrides)
        return MeetingRequest(**defaults)

    return _make
