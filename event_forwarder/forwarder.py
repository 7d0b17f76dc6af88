"""EventForwarder — decide whether to forward an item and build the event."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

import structlog

from .attachments import AttachmentTransferer
from .config import ForwarderConfig
from .interface import MailboxProvider, TargetStore
from .models import (
    Attachment,
    EventDraft,
    EventOutcome,
    Forward,
    ForwardDecision,
    ForwardRequest,
    ManualTestResult,
    Skip,
    utcnow,
)
from .resolver import AddressResolver

logger = structlog.get_logger()

TEST_SUBJECT = "[TEST] Manual Check"
TEST_BODY = "Test body."


def compose_body(received_at: datetime, body: str) -> str:
    """Prefix the original receipt time to the original body."""
    return f"Original Received: {received_at.isoformat(sep=' ', timespec='seconds')}\n\n{body}"


class EventForwarder:
    """Turns forward requests into calendar invitations for the target.

    The target address is read from the :class:`TargetStore` on every
    decision.  :meth:`create_and_send_event` never raises; failures are
    logged and reported as :attr:`EventOutcome.FAILED`.
    """

    def __init__(
        self,
        provider: MailboxProvider,
        target_store: TargetStore,
        config: ForwarderConfig,
        *,
        resolver: AddressResolver | None = None,
        transferer: AttachmentTransferer | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._provider = provider
        self._target_store = target_store
        self._config = config
        self._resolver = resolver or AddressResolver(provider)
        self._transferer = transferer or AttachmentTransferer(config.temp_dir)
        self._clock = clock

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    async def decide(self, request: ForwardRequest) -> ForwardDecision:
        target = self._target_store.get_target_address().strip()
        if not target:
            return Skip("no_target")

        address = await self._resolver.resolve(request.participant)
        if not address:
            return Skip("unknown_sender")

        # The target never receives events for its own messages.
        if address.casefold() == target.casefold():
            return Skip("sender_is_target")

        return Forward(target)

    async def process(self, request: ForwardRequest) -> EventOutcome | None:
        """Forward *request* if the decision allows it.

        Returns the event outcome, or *None* when the item was skipped.
        """
        decision = await self.decide(request)
        match decision:
            case Skip(reason=reason):
                logger.debug("forward_skipped", item_id=request.item_id, reason=reason)
                return None
            case Forward(target=target):
                return await self.create_and_send_event(
                    request.attachments,
                    request.subject,
                    request.body,
                    request.received_at,
                    target,
                )

    # ------------------------------------------------------------------
    # Event construction
    # ------------------------------------------------------------------

    def build_draft(self, subject: str, body: str, received_at: datetime) -> EventDraft:
        start = self._clock() + timedelta(minutes=self._config.event_lead_minutes)
        return EventDraft(
            subject=f"{self._config.subject_prefix}{subject}",
            body=compose_body(received_at, body),
            start=start,
            end=start + timedelta(minutes=self._config.event_duration_minutes),
        )

    async def create_and_send_event(
        self,
        attachments: Sequence[Attachment],
        subject: str,
        body: str,
        received_at: datetime,
        target: str,
    ) -> EventOutcome:
        """Create the forwarded event and send it, or save it as a draft.

        The event is sent when *target* resolves as an attendee and saved
        unsent otherwise.
        """
        draft = self.build_draft(subject, body, received_at)

        try:
            async with self._provider.open_event(draft) as event:
                attached = await self._transferer.transfer(attachments, event)

                if await event.add_required_attendee(target):
                    await event.send()
                    outcome = EventOutcome.SENT
                else:
                    await event.save()
                    outcome = EventOutcome.SAVED
        except Exception:
            logger.exception("event_creation_failed", subject=draft.subject, target=target)
            return EventOutcome.FAILED

        logger.info(
            "event_forwarded",
            subject=draft.subject,
            target=target,
            outcome=outcome.value,
            attachments=attached,
            attachments_total=len(attachments),
        )
        return outcome

    # ------------------------------------------------------------------
    # Manual trigger
    # ------------------------------------------------------------------

    async def run_manual_test(self) -> ManualTestResult:
        """Send a fixed test event straight to the target, bypassing the watcher."""
        target = self._target_store.get_target_address().strip()
        if not target:
            return ManualTestResult(ok=False, message="Please configure a receiver email first.")

        outcome = await self.create_and_send_event((), TEST_SUBJECT, TEST_BODY, self._clock(), target)

        if outcome is EventOutcome.SENT:
            message = f"Test invite sent to: {target}"
        elif outcome is EventOutcome.SAVED:
            message = f"Could not resolve {target}; test invite saved as a draft"
        else:
            message = f"Test invite to {target} failed; see logs"

        return ManualTestResult(
            ok=outcome is not EventOutcome.FAILED,
            message=message,
            target=target,
            outcome=outcome,
        )
