"""Abstract collaborators of the forwarding pipeline.

The pipeline never talks to a mail system directly.  A concrete
:class:`MailboxProvider` supplies arrivals, folder identity, directory
lookups and calendar events; a :class:`TargetStore` supplies the forward
target.
"""

from __future__ import annotations

import abc
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog

from .models import EventDraft, InboundItem, Participant

logger = structlog.get_logger()


class EventHandle(abc.ABC):
    """A calendar event under construction.

    Handles are obtained through :meth:`MailboxProvider.open_event`, which
    guarantees :meth:`release` runs on every exit path.
    """

    @abc.abstractmethod
    async def add_attachment(self, path: Path, display_name: str) -> None:
        """Attach the file at *path* to the event by value."""
        ...

    @abc.abstractmethod
    async def add_required_attendee(self, address: str) -> bool:
        """Add *address* as a required attendee.

        Returns *True* if the address resolved and the event can be sent.
        """
        ...

    @abc.abstractmethod
    async def send(self) -> None:
        """Dispatch the invitation to the attendees."""
        ...

    @abc.abstractmethod
    async def save(self) -> None:
        """Keep the event as an unsent draft."""
        ...

    async def release(self) -> None:
        """Free provider-side resources held by this handle."""


class MailboxProvider(abc.ABC):
    """Abstract interface to the mailbox and calendar being automated."""

    async def start(self) -> None:
        """Open connections.  The default does nothing."""

    async def stop(self) -> None:
        """Close connections.  The default does nothing."""

    @abc.abstractmethod
    def arrivals(self) -> AsyncIterator[InboundItem]:
        """Yield each newly arrived item in the watched folder.

        This is an async generator that runs until the service shuts down.
        """
        ...

    @abc.abstractmethod
    async def folder_id_of(self, item: InboundItem) -> str:
        """Return the identity of the folder currently containing *item*."""
        ...

    @abc.abstractmethod
    async def discarded_folder_id(self) -> str:
        """Return the identity of the mailbox's deleted-items folder."""
        ...

    @abc.abstractmethod
    async def directory_address(self, participant: Participant) -> str | None:
        """Look up the primary SMTP address of a directory-backed participant.

        Returns *None* when the directory has no matching entry.
        """
        ...

    @abc.abstractmethod
    async def create_event(self, draft: EventDraft) -> EventHandle:
        """Create a new calendar event populated from *draft*."""
        ...

    @asynccontextmanager
    async def open_event(self, draft: EventDraft) -> AsyncIterator[EventHandle]:
        """Create an event and release its handle when the block exits."""
        event = await self.create_event(draft)
        try:
            yield event
        finally:
            try:
                await event.release()
            except Exception as exc:
                logger.warning("event_release_failed", error=str(exc))

    async def health_check(self) -> dict[str, object]:
        """Return provider-specific health details for ``/health``."""
        return {}


class TargetStore(abc.ABC):
    """Source of the forward target address."""

    @abc.abstractmethod
    def get_target_address(self) -> str:
        """Return the current target address, or ``""`` if unset."""
        ...
