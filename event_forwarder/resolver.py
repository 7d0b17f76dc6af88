"""AddressResolver — turn a participant handle into a comparable address."""

from __future__ import annotations

import structlog

from .interface import MailboxProvider
from .models import Participant, ParticipantKind

logger = structlog.get_logger()


class AddressResolver:
    """Canonicalizes sender/organizer handles via the provider's directory.

    Returns ``""`` whenever the address cannot be determined; callers
    treat that as "unknown, do not forward".
    """

    def __init__(self, provider: MailboxProvider) -> None:
        self._provider = provider

    async def resolve(self, participant: Participant | None) -> str:
        if participant is None:
            return ""

        try:
            if participant.kind is ParticipantKind.SMTP:
                return participant.address
            if participant.kind is ParticipantKind.DIRECTORY:
                canonical = await self._provider.directory_address(participant)
                if canonical:
                    return canonical
            return participant.address
        except Exception as exc:
            logger.warning(
                "address_resolution_failed",
                address=participant.address,
                kind=participant.kind.value,
                error=str(exc),
            )
            return ""
