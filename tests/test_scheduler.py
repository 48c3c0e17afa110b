"""Tests for `isummarize.scheduler`."""

from __future__ import annotations

import threading

from isummarize.scheduler import (
    JOB_ID,
    LoopState,
    RecipientMailbox,
    SchedulerLoop,
    TickOutcome,
)


class _FakeScheduler:
    def __init__(self):
        self.jobs: list[tuple] = []
        self.started = False
        self.stopped = False

    def add_job(self, func, **kwargs):
        self.jobs.append((func, kwargs))

    def start(self):
        self.started = True

    def shutdown(self, wait=True):
        self.stopped = True


def test_mailbox_keeps_latest_recipient():
    mailbox = RecipientMailbox()
    assert mailbox.current() is None
    mailbox.post("U1")
    mailbox.post("")
    mailbox.post("U2")
    assert mailbox.current() == "U2"
    assert mailbox.current() == "U2"


def test_tick_without_recipient_is_noop():
    calls = []
    loop = SchedulerLoop(calls.append, RecipientMailbox(), scheduler=_FakeScheduler())
    assert loop.tick() is TickOutcome.NO_RECIPIENT
    assert calls == []


def test_tick_runs_cycle_for_current_recipient():
    calls = []

    def run_cycle(recipient):
        calls.append(recipient)
        return True

    mailbox = RecipientMailbox("U1")
    loop = SchedulerLoop(run_cycle, mailbox, scheduler=_FakeScheduler())
    assert loop.tick() is TickOutcome.DELIVERED
    mailbox.post("U2")
    assert loop.tick() is TickOutcome.DELIVERED
    assert calls == ["U1", "U2"]
    assert loop.state is LoopState.IDLE


def test_overlapping_tick_is_dropped():
    entered = threading.Event()
    release = threading.Event()
    calls = []

    def slow_cycle(recipient):
        calls.append(recipient)
        entered.set()
        release.wait(timeout=5)
        return True

    loop = SchedulerLoop(slow_cycle, RecipientMailbox("U1"), scheduler=_FakeScheduler())
    results = []
    worker = threading.Thread(target=lambda: results.append(loop.tick()))
    worker.start()
    assert entered.wait(timeout=5)

    assert loop.state is LoopState.RUNNING
    assert loop.tick() is TickOutcome.SKIPPED

    release.set()
    worker.join(timeout=5)
    assert results == [TickOutcome.DELIVERED]
    assert calls == ["U1"]
    assert loop.state is LoopState.IDLE


def test_failed_or_crashing_cycle_returns_to_idle():
    loop = SchedulerLoop(lambda _: False, RecipientMailbox("U1"), scheduler=_FakeScheduler())
    assert loop.tick() is TickOutcome.FAILED

    def crash(_):
        raise RuntimeError("boom")

    loop = SchedulerLoop(crash, RecipientMailbox("U1"), scheduler=_FakeScheduler())
    assert loop.tick() is TickOutcome.FAILED
    assert loop.state is LoopState.IDLE
    assert loop.tick() is TickOutcome.FAILED


def test_start_registers_single_instance_interval_job():
    scheduler = _FakeScheduler()
    loop = SchedulerLoop(lambda _: True, RecipientMailbox(), interval_seconds=120, scheduler=scheduler)

    loop.start()
    loop.shutdown()

    ((func, kwargs),) = scheduler.jobs
    assert func == loop.tick
    assert kwargs["trigger"] == "interval"
    assert kwargs["seconds"] == 120
    assert kwargs["id"] == JOB_ID
    assert kwargs["max_instances"] == 1
    assert scheduler.started and scheduler.stopped


def test_exclusive_blocks_cycles_until_released():
    calls = []
    loop = SchedulerLoop(lambda r: calls.append(r) or True, RecipientMailbox("U1"), scheduler=_FakeScheduler())

    with loop.exclusive() as acquired:
        assert acquired
        assert loop.state is LoopState.RUNNING
        assert loop.tick() is TickOutcome.SKIPPED
        with loop.exclusive() as nested:
            assert not nested

    assert loop.state is LoopState.IDLE
    assert loop.tick() is TickOutcome.DELIVERED
    assert calls == ["U1"]
