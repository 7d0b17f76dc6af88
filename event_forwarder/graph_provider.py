"""Microsoft Graph implementation of :class:`MailboxProvider`.

Arrivals come from a delta query on the inbox, polled every
``poll_interval_seconds``.  Events are created in the mailbox's default
calendar without attendees; the attendee list is only written on
:meth:`GraphEventHandle.send`, which is when Graph dispatches invitations.
"""

from __future__ import annotations

import asyncio
import base64
from collections import OrderedDict
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime
from email.utils import parseaddr
from pathlib import Path
from typing import Any

import httpx
import structlog

from .config import GraphConfig
from .graph_client import GraphAuthError, GraphClient
from .interface import EventHandle, MailboxProvider
from .models import (
    Attachment,
    EventDraft,
    InboundItem,
    MeetingRequest,
    Message,
    Participant,
    ParticipantKind,
)

logger = structlog.get_logger()

MESSAGE_FIELDS = "subject,body,sender,from,receivedDateTime,hasAttachments,parentFolderId"
FILE_ATTACHMENT = "#microsoft.graph.fileAttachment"
MEETING_REQUEST = "#microsoft.graph.eventMessageRequest"
EVENT_MESSAGE = "#microsoft.graph.eventMessage"

# Upper bound on remembered message ids (delta rounds can repeat changed items).
SEEN_IDS_LIMIT = 10_000


class AttachmentUnavailableError(RuntimeError):
    """Raised for attachments that have no file content (item/reference)."""


# ------------------------------------------------------------------
# Payload mapping
# ------------------------------------------------------------------


def participant_from(recipient: dict[str, Any] | None) -> Participant | None:
    """Map a Graph ``recipient`` object to a :class:`Participant`."""
    if not recipient:
        return None
    email_address = recipient.get("emailAddress") or {}
    address = (email_address.get("address") or "").strip()
    if not address:
        return None

    if address.lower().startswith("/o="):
        kind = ParticipantKind.DIRECTORY
    elif "@" in address:
        kind = ParticipantKind.SMTP
    else:
        kind = ParticipantKind.UNKNOWN
    return Participant(address=address, kind=kind, name=email_address.get("name") or "")


def is_meeting_request(payload: dict[str, Any]) -> bool:
    odata_type = payload.get("@odata.type", "")
    if odata_type == MEETING_REQUEST:
        return True
    return odata_type == EVENT_MESSAGE and payload.get("meetingMessageType") == "meetingRequest"


def parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now(UTC)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _looks_like_smtp(address: str) -> bool:
    _, parsed = parseaddr(address)
    local, _, domain = parsed.partition("@")
    return bool(local) and "." in domain and parsed == address.strip()


# ------------------------------------------------------------------
# Event handle
# ------------------------------------------------------------------


class GraphEventHandle(EventHandle):
    """An event already created in the mailbox calendar.

    If the handle is released before :meth:`send` or :meth:`save` ran, the
    half-built event is deleted again.
    """

    def __init__(self, client: GraphClient, event_id: str) -> None:
        self._client = client
        self.event_id = event_id
        self._attendees: list[str] = []
        self._committed = False

    @property
    def _path(self) -> str:
        return f"{self._client.mailbox_path}/events/{self.event_id}"

    async def add_attachment(self, path: Path, display_name: str) -> None:
        content = await asyncio.to_thread(path.read_bytes)
        await self._client.post_json(
            f"{self._path}/attachments",
            {
                "@odata.type": FILE_ATTACHMENT,
                "name": display_name or path.name,
                "contentBytes": base64.b64encode(content).decode("ascii"),
            },
        )

    async def add_required_attendee(self, address: str) -> bool:
        self._attendees.append(address)
        try:
            await self._client.get_json(f"/users/{address}", params={"$select": "id"})
            return True
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code != 404:
                raise
        # External recipients are not in the directory; any well-formed
        # SMTP address is deliverable.
        return _looks_like_smtp(address)

    async def send(self) -> None:
        await self._client.patch(
            self._path,
            {
                "attendees": [
                    {"emailAddress": {"address": address}, "type": "required"}
                    for address in self._attendees
                ],
            },
        )
        self._committed = True

    async def save(self) -> None:
        # The event already exists in the calendar; leaving attendees
        # unwritten keeps it from being dispatched.
        self._committed = True
        logger.info("event_saved_unsent", event_id=self.event_id, attendees=self._attendees)

    async def release(self) -> None:
        if self._committed:
            return
        await self._client.delete(self._path)
        logger.info("abandoned_event_deleted", event_id=self.event_id)


# ------------------------------------------------------------------
# Provider
# ------------------------------------------------------------------


class GraphMailboxProvider(MailboxProvider):
    """Watches a mailbox inbox and writes events through Microsoft Graph."""

    def __init__(self, config: GraphConfig, client: GraphClient | None = None) -> None:
        self._config = config
        self._client = client or GraphClient(config)
        self._discarded_folder_id: str | None = None
        self._delta_link: str | None = None
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._last_poll_time: datetime | None = None
        self._items_observed: int = 0

    async def start(self) -> None:
        await self._client.start()

    async def stop(self) -> None:
        await self._client.stop()

    # ------------------------------------------------------------------
    # Arrivals
    # ------------------------------------------------------------------

    async def arrivals(self) -> AsyncIterator[InboundItem]:
        """Poll the inbox delta indefinitely, yielding each new item once.

        A failed round never ends the iteration; it is logged and the next
        round runs after ``poll_interval_seconds``.  Whenever no delta link
        is held (first round, or after Graph expired the sync state) the
        round re-establishes the baseline instead of reporting items.
        """
        while True:
            try:
                payloads = await self._next_round()
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code == httpx.codes.GONE:
                    logger.warning("inbox_delta_expired", error=str(exc))
                    self._delta_link = None
                else:
                    logger.warning("inbox_delta_poll_failed", error=str(exc))
                payloads = []
            except (httpx.HTTPError, GraphAuthError) as exc:
                logger.warning("inbox_delta_poll_failed", error=str(exc))
                payloads = []
            except Exception:
                logger.exception("inbox_delta_poll_error")
                payloads = []

            for payload in payloads:
                if "@removed" in payload or not self._remember(payload["id"]):
                    continue
                self._items_observed += 1
                yield await self._to_inbound_item(payload)

            await asyncio.sleep(self._config.poll_interval_seconds)

    async def _next_round(self) -> list[dict[str, Any]]:
        if self._delta_link is None:
            await self._establish_baseline()
            payloads: list[dict[str, Any]] = []
        else:
            payloads = await self._poll_delta()
        self._last_poll_time = datetime.now(UTC)
        return payloads

    async def _establish_baseline(self) -> None:
        """Walk the initial delta so only later arrivals are reported."""
        payloads = await self._poll_delta()
        for payload in payloads:
            if "@removed" not in payload:
                self._remember(payload["id"])
        logger.info("inbox_baseline_established", existing_items=len(payloads))

    async def _poll_delta(self) -> list[dict[str, Any]]:
        url = self._delta_link or f"{self._client.mailbox_path}/mailFolders/inbox/messages/delta"
        params = None if self._delta_link else {"$select": MESSAGE_FIELDS}

        payloads: list[dict[str, Any]] = []
        while True:
            page = await self._client.get_json(url, params=params)
            payloads.extend(page.get("value", []))
            if "@odata.nextLink" in page:
                url, params = page["@odata.nextLink"], None
                continue
            self._delta_link = page.get("@odata.deltaLink", self._delta_link)
            return payloads

    def _remember(self, item_id: str) -> bool:
        """Record *item_id*; returns *False* if it was already seen."""
        if item_id in self._seen:
            return False
        self._seen[item_id] = None
        while len(self._seen) > SEEN_IDS_LIMIT:
            self._seen.popitem(last=False)
        return True

    async def _to_inbound_item(self, payload: dict[str, Any]) -> InboundItem:
        item_id = payload["id"]
        subject = payload.get("subject") or ""
        body = (payload.get("body") or {}).get("content") or ""
        received_at = parse_timestamp(payload.get("receivedDateTime"))
        attachments = await self._attachments_of(item_id) if payload.get("hasAttachments") else ()

        if is_meeting_request(payload):
            return MeetingRequest(
                item_id=item_id,
                organizer=participant_from(payload.get("from")),
                subject=subject,
                body=body,
                received_at=received_at,
                attachments=attachments,
            )
        return Message(
            item_id=item_id,
            sender=participant_from(payload.get("sender") or payload.get("from")),
            subject=subject,
            body=body,
            received_at=received_at,
            attachments=attachments,
        )

    async def _attachments_of(self, item_id: str) -> tuple[Attachment, ...]:
        """List attachment metadata; content is only downloaded by ``save_to``."""
        base = f"{self._client.mailbox_path}/messages/{item_id}/attachments"
        url, params = base, {"$select": "id,name,contentType,size"}
        listed: list[dict[str, Any]] = []
        try:
            while url:
                page = await self._client.get_json(url, params=params)
                listed.extend(page.get("value", []))
                url, params = page.get("@odata.nextLink"), None
        except httpx.HTTPError as exc:
            logger.warning("attachment_listing_failed", item_id=item_id, error=str(exc))
            return ()

        return tuple(
            Attachment(
                display_name=meta.get("name") or "attachment",
                file_name=meta.get("name") or "attachment",
                save_to=self._downloader(f"{base}/{meta['id']}", meta.get("@odata.type", "")),
            )
            for meta in listed
        )

    def _downloader(self, url: str, odata_type: str) -> Callable[[Path], Awaitable[None]]:
        async def save_to(path: Path) -> None:
            if odata_type != FILE_ATTACHMENT:
                raise AttachmentUnavailableError(f"{odata_type or 'attachment'} has no file content")
            content = await self._client.get_bytes(f"{url}/$value")
            await asyncio.to_thread(path.write_bytes, content)

        return save_to

    # ------------------------------------------------------------------
    # Folders and directory
    # ------------------------------------------------------------------

    async def folder_id_of(self, item: InboundItem) -> str:
        payload = await self._client.get_json(
            f"{self._client.mailbox_path}/messages/{item.item_id}",
            params={"$select": "parentFolderId"},
        )
        return payload.get("parentFolderId") or ""

    async def discarded_folder_id(self) -> str:
        if self._discarded_folder_id is None:
            payload = await self._client.get_json(
                f"{self._client.mailbox_path}/mailFolders/deleteditems",
                params={"$select": "id"},
            )
            self._discarded_folder_id = payload["id"]
        return self._discarded_folder_id

    async def directory_address(self, participant: Participant) -> str | None:
        escaped = participant.address.replace("'", "''")
        payload = await self._client.get_json(
            "/users",
            params={
                "$filter": f"proxyAddresses/any(p:p eq 'X500:{escaped}')",
                "$select": "mail,userPrincipalName",
                "$count": "true",
            },
            headers={"ConsistencyLevel": "eventual"},
        )
        users = payload.get("value", [])
        if not users:
            return None
        return users[0].get("mail") or users[0].get("userPrincipalName")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def create_event(self, draft: EventDraft) -> GraphEventHandle:
        payload = await self._client.post_json(
            f"{self._client.mailbox_path}/events",
            {
                "subject": draft.subject,
                "body": {"contentType": "text", "content": draft.body},
                "start": _graph_datetime(draft.start),
                "end": _graph_datetime(draft.end),
                "showAs": "busy",
            },
        )
        return GraphEventHandle(self._client, payload["id"])

    async def health_check(self) -> dict[str, object]:
        return {
            "mailbox": self._config.mailbox,
            "delta_established": self._delta_link is not None,
            "last_poll_time": (
                self._last_poll_time.isoformat() if self._last_poll_time else None
            ),
            "items_observed": self._items_observed,
        }


def _graph_datetime(value: datetime) -> dict[str, str]:
    return {
        "dateTime": value.astimezone(UTC).replace(tzinfo=None).isoformat(timespec="seconds"),
        "timeZone": "UTC",
    }
