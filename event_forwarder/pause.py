"""PauseGate — level-triggered suppression window for forwarding."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from .models import EPOCH, PauseStatus, utcnow

logger = structlog.get_logger()


class PauseGate:
    """Holds the single ``resume_at`` timestamp.

    The control API is the only writer; watcher tasks only read.  Each
    read and write is a single attribute access, so no lock is needed.
    A ``resume_at`` in the past simply stops suppressing; it is never
    reset by a read.
    """

    def __init__(
        self,
        default_duration: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._default_duration = default_duration
        self._clock = clock
        self._resume_at: datetime = EPOCH

    @property
    def resume_at(self) -> datetime:
        return self._resume_at

    def pause(self, duration: timedelta | None = None) -> datetime:
        """Suppress forwarding for *duration* from now and return ``resume_at``."""
        duration = self._default_duration if duration is None else duration
        if duration <= timedelta(0):
            raise ValueError("Pause duration must be positive")

        try:
            resume_at = self._clock() + duration
        except OverflowError as exc:
            raise ValueError("Pause duration is too long") from exc

        self._resume_at = resume_at
        logger.info("forwarding_paused", resume_at=self._resume_at.isoformat())
        return self._resume_at

    def resume(self) -> None:
        self._resume_at = EPOCH
        logger.info("forwarding_resumed")

    def is_suppressed(self, now: datetime | None = None) -> bool:
        now = self._clock() if now is None else now
        return now < self._resume_at

    def status(self) -> PauseStatus:
        resume_at = self._resume_at
        return PauseStatus(
            paused=self.is_suppressed(),
            resume_at=None if resume_at == EPOCH else resume_at,
        )
