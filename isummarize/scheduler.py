"""scheduler.py – Recurring digest cycle

Purpose
-------
Fires a fixed-interval tick that runs one full digest cycle for the current
recipient.

States
------
``IDLE → RUNNING → IDLE``.  A tick that fires while a cycle is still running
is dropped (never queued, never run concurrently).  A failed cycle logs and
returns to ``IDLE`` so the next tick tries again.

Recipient hand-off
------------------
The inbound event handler does not write shared state directly; it posts
user IDs into a :class:`RecipientMailbox`, which the loop drains on every
tick, keeping the most recent value.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, Optional
import queue
import threading

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler

from isummarize import cloud_logging as logging

__all__ = [
    "LoopState",
    "RecipientMailbox",
    "SchedulerLoop",
    "TickOutcome",
]

JOB_ID = "digest-cycle"


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class TickOutcome(str, Enum):
    NO_RECIPIENT = "no_recipient"
    SKIPPED = "skipped"
    DELIVERED = "delivered"
    FAILED = "failed"


class RecipientMailbox:
    """Single-writer/single-reader hand-off of the latest recipient ID."""

    def __init__(self, initial: Optional[str] = None) -> None:
        self._queue: "queue.Queue[str]" = queue.Queue()
        self._current = initial or None

    def post(self, user_id: str) -> None:
        if not user_id:
            return
        self._queue.put(user_id)

    def current(self) -> Optional[str]:
        """Drain pending posts and return the most recent recipient."""
        while True:
            try:
                self._current = self._queue.get_nowait()
            except queue.Empty:
                return self._current


class SchedulerLoop:
    """Drive ``run_cycle(recipient_id) -> bool`` on a fixed interval.

    Parameters
    ----------
    run_cycle:
        Callable executing one full cycle; returns ``True`` on delivery.
    mailbox:
        Source of the recipient ID.
    interval_seconds:
        Tick period.
    scheduler:
        APScheduler scheduler to register the job on; a
        :class:`BackgroundScheduler` is created when omitted.
    """

    def __init__(
        self,
        run_cycle: Callable[[str], bool],
        mailbox: RecipientMailbox,
        *,
        interval_seconds: int = 86400,
        scheduler: Optional[BaseScheduler] = None,
    ) -> None:
        self._run_cycle = run_cycle
        self._mailbox = mailbox
        self._interval_seconds = interval_seconds
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._busy = threading.Lock()

    @property
    def state(self) -> LoopState:
        return LoopState.RUNNING if self._busy.locked() else LoopState.IDLE

    def tick(self) -> TickOutcome:
        recipient = self._mailbox.current()
        if not recipient:
            logging.log_text("No recipient user ID yet; skipping digest cycle.", severity="INFO")
            return TickOutcome.NO_RECIPIENT
        return self.run_for(recipient)

    @contextmanager
    def exclusive(self) -> Iterator[bool]:
        """Hold the busy guard for the block; yields ``False`` if a cycle is already running.

        Every pipeline run (timer ticks, manual runs, dry runs) goes through
        this guard so no two collect/summarize passes ever overlap.
        """
        acquired = self._busy.acquire(blocking=False)
        if not acquired:
            logging.log_text(
                "Previous digest cycle still running; dropping this request.", severity="WARNING"
            )
        try:
            yield acquired
        finally:
            if acquired:
                self._busy.release()

    def run_for(self, recipient: str) -> TickOutcome:
        """Run one cycle for *recipient* under the same busy guard as the timer."""
        with self.exclusive() as acquired:
            if not acquired:
                return TickOutcome.SKIPPED
            try:
                logging.log_text(f"Starting digest cycle for {recipient}.", severity="INFO")
                delivered = self._run_cycle(recipient)
            except Exception as exc:  # noqa: BLE001 – a cycle must never kill the timer
                logging.log_text(f"Digest cycle crashed: {exc}", severity="ERROR")
                delivered = False

        if delivered:
            return TickOutcome.DELIVERED
        logging.log_text("Digest cycle finished without delivery.", severity="WARNING")
        return TickOutcome.FAILED

    def start(self) -> None:
        self._scheduler.add_job(
            self.tick,
            trigger="interval",
            seconds=self._interval_seconds,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logging.log_text(
            f"Starting digest scheduler (every {self._interval_seconds}s).", severity="INFO"
        )
        # Blocks here when a BlockingScheduler was supplied.
        self._scheduler.start()

    def shutdown(self, wait: bool = False) -> None:
        self._scheduler.shutdown(wait=wait)
