"""DeletionClassifier — is an item sitting in the deleted-items folder?"""

from __future__ import annotations

import structlog

from .interface import MailboxProvider
from .models import InboundItem

logger = structlog.get_logger()


class DeletionClassifier:
    """Compares an item's parent folder with the well-known discarded folder.

    Lookup failures count as "not discarded"; the watcher's quiescence
    re-check bounds that risk.
    """

    def __init__(self, provider: MailboxProvider) -> None:
        self._provider = provider

    async def is_discarded(self, item: InboundItem) -> bool:
        try:
            folder_id = await self._provider.folder_id_of(item)
            discarded_id = await self._provider.discarded_folder_id()
        except Exception as exc:
            logger.warning(
                "folder_lookup_failed",
                item_id=item.item_id,
                error=str(exc),
            )
            return False

        return bool(folder_id) and folder_id == discarded_id
