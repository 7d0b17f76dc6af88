"""AttachmentTransferer — copy source attachments onto a new event.

Each attachment is materialized to disk, attached by value, and deleted
again.  Transfers are best-effort per attachment.
"""

from __future__ import annotations

import re
import tempfile
from collections.abc import Sequence
from pathlib import Path

import structlog

from .interface import EventHandle
from .models import Attachment

logger = structlog.get_logger()


class AttachmentTransferer:
    """Moves attachments through a private temporary directory.

    Every :meth:`transfer` call gets its own directory, so concurrent
    forwards of identically named attachments never share a path.
    """

    def __init__(self, temp_dir: str | None = None) -> None:
        self._temp_dir = temp_dir

    async def transfer(self, attachments: Sequence[Attachment], event: EventHandle) -> int:
        """Copy *attachments* onto *event*.  Returns how many were attached."""
        if not attachments:
            return 0

        transferred = 0
        with tempfile.TemporaryDirectory(
            prefix="event-forwarder-",
            dir=self._temp_dir,
            ignore_cleanup_errors=True,
        ) as workdir:
            for index, attachment in enumerate(attachments):
                path = Path(workdir) / f"{index:03d}_{_sanitize_filename(attachment.file_name)}"
                try:
                    await attachment.save_to(path)
                    await event.add_attachment(path, attachment.display_name)
                    transferred += 1
                except Exception as exc:
                    logger.warning(
                        "attachment_transfer_failed",
                        attachment=attachment.display_name,
                        error=str(exc),
                    )
                finally:
                    _remove(path)

        logger.debug(
            "attachments_transferred",
            transferred=transferred,
            total=len(attachments),
        )
        return transferred


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _sanitize_filename(name: str) -> str:
    """Remove characters unsafe for local file names."""
    return re.sub(r"[^\w.\-]", "_", name) or "attachment"


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("attachment_cleanup_failed", path=str(path), error=str(exc))
