import asyncio
import contextlib
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from sendo.core.core import Service
from sendo.core.modules.session.models import CloseReason, Session

logger = structlog.get_logger(__name__)


@dataclass
class SweepReport:
    """Outcome of one sweep pass."""

    closed: Counter[CloseReason] = field(default_factory=Counter)
    purged: int = 0
    failed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.closed) or self.purged > 0 or self.failed > 0


class SweeperService(Service):
    """Periodically expires idle sessions and purges tombstones.

    Checks per open session, first match wins:
    TTL deadline passed, sender silent too long, receiver silent too long.
    Closed sessions are purged once the tombstone retention has elapsed.
    """

    def __init__(self) -> None:
        super().__init__()
        self._task: asyncio.Task[None] | None = None

    async def on_start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="session-sweeper")
        logger.debug("sweeper_started", interval=self.core.config.sweep_interval_seconds)

    async def on_stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def sweep(self) -> SweepReport:
        """Run one pass over a snapshot of all sessions."""
        store = self.core.store
        current = store.now()
        report = SweepReport()

        for session in store.all_sessions():
            try:
                if session.is_closed:
                    if self._tombstone_expired(session, current):
                        store.purge(session)
                        report.purged += 1
                    continue
                reason = self._close_reason(session, current)
                if reason is not None:
                    self._expire(session, reason)
                    report.closed[reason] += 1
            except Exception:
                report.failed += 1
                logger.exception("sweep_session_failed", session_id=session.id)

        if report.changed:
            logger.debug(
                "sweep_finished",
                closed=dict(report.closed),
                purged=report.purged,
                failed=report.failed,
                remaining=len(store),
            )
        return report

    def _close_reason(self, session: Session, current: datetime) -> CloseReason | None:
        config = self.core.config
        if session.is_expired(current):
            return CloseReason.TTL
        if _silent_for(session.last_seen_sender, current, config.sender_gone_seconds):
            return CloseReason.SENDER_GONE
        if _silent_for(session.last_seen_receiver, current, config.receiver_gone_seconds):
            return CloseReason.RECEIVER_GONE
        return None

    def _expire(self, session: Session, reason: CloseReason) -> None:
        meta = self.core.store.clear_file(session)
        if meta is not None:
            self.core.services.blob.delete(meta.storage_path)
        self.core.store.close(session, reason)
        logger.info("session_expired", session_id=session.id, reason=reason)

    def _tombstone_expired(self, session: Session, current: datetime) -> bool:
        retention = timedelta(seconds=self.core.config.tombstone_retention_seconds)
        return session.closed_at is not None and current - session.closed_at > retention

    async def _run(self) -> None:
        interval = self.core.config.sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("sweep_failed")


def _silent_for(last_seen: datetime | None, current: datetime, threshold_seconds: float) -> bool:
    return last_seen is not None and current - last_seen > timedelta(seconds=threshold_seconds)
