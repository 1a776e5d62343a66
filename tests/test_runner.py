"""Tests for the batch run controller.

Engine runs are driven with asyncio.run() against in-memory channels.
"""

from __future__ import annotations

import asyncio
import logging
import time

from callbatch.core.catalog import TargetCatalog
from callbatch.core.channels.base import ChannelUnavailableError
from callbatch.core.engine import (
    NO_TARGET,
    BatchRunner,
    OutcomeResult,
    Pacer,
    RunState,
    RunStatus,
)

from fakes import REVERT, FakeChannel, FakeProvider, RecordingPacer, address


def _runner(channel, targets, pacer=None, **kwargs) -> BatchRunner:
    return BatchRunner(
        FakeProvider(channel),
        TargetCatalog(targets),
        pacer=pacer or Pacer(interval_ms=0),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Uninterrupted runs
# ---------------------------------------------------------------------------


class TestCompletedRun:
    """Runs that go through every target."""

    def test_all_succeed(self) -> None:
        targets = [address(i) for i in range(1, 4)]
        runner = _runner(FakeChannel(), targets)

        snapshot = asyncio.run(runner.start())

        assert snapshot is not None
        assert snapshot.succeeded == 3
        assert snapshot.failed == 0
        assert len(snapshot.ledger) == 3
        assert [o.sequence_index for o in snapshot.ledger] == [3, 2, 1]
        assert all(o.result is OutcomeResult.SUCCESS for o in snapshot.ledger)
        assert all(o.detail is None for o in snapshot.ledger)

    def test_submission_failure_is_recorded_and_run_continues(self, submission_error) -> None:
        targets = [address(i) for i in range(1, 4)]
        channel = FakeChannel({targets[1]: submission_error})
        runner = _runner(channel, targets)

        snapshot = asyncio.run(runner.start())

        assert snapshot.succeeded == 2
        assert snapshot.failed == 1
        third, second, first = snapshot.ledger
        assert (third.sequence_index, third.result) == (3, OutcomeResult.SUCCESS)
        assert (second.sequence_index, second.result) == (2, OutcomeResult.FAILURE)
        assert second.detail == "execution reverted: not allowed"
        assert second.target == targets[1]
        assert (first.sequence_index, first.result) == (1, OutcomeResult.SUCCESS)

    def test_counters_cover_every_target(self, targets) -> None:
        channel = FakeChannel({targets[0]: REVERT, targets[3]: RuntimeError("nonce too low")})
        runner = _runner(channel, targets)

        snapshot = asyncio.run(runner.start())

        assert snapshot.succeeded + snapshot.failed == len(targets)
        assert snapshot.cursor == 0
        assert snapshot.status is RunStatus.IDLE
        assert snapshot.total == len(targets)

    def test_targets_called_in_order_one_at_a_time(self, targets) -> None:
        channel = FakeChannel()
        runner = _runner(channel, targets)

        asyncio.run(runner.start())

        assert channel.submitted == targets
        assert channel.max_in_flight == 1

    def test_channel_closed_after_run(self, targets) -> None:
        channel = FakeChannel()
        asyncio.run(_runner(channel, targets).start())
        assert channel.closed is True

    def test_empty_target_list(self) -> None:
        channel = FakeChannel()
        snapshot = asyncio.run(_runner(channel, []).start())

        assert snapshot.status is RunStatus.IDLE
        assert snapshot.ledger == ()
        assert channel.submitted == []


class TestLedgerBound:
    """Ledger keeps only the most recent outcomes."""

    def test_long_run_keeps_last_twenty(self) -> None:
        targets = [address(i) for i in range(1, 26)]
        snapshot = asyncio.run(_runner(FakeChannel(), targets).start())

        assert len(snapshot.ledger) == 20
        assert [o.sequence_index for o in snapshot.ledger] == list(range(25, 5, -1))
        assert snapshot.succeeded == 25

    def test_custom_capacity(self) -> None:
        targets = [address(i) for i in range(1, 8)]
        runner = _runner(FakeChannel(), targets, state=RunState(ledger_capacity=3))

        snapshot = asyncio.run(runner.start())

        assert [o.sequence_index for o in snapshot.ledger] == [7, 6, 5]


class TestRestart:
    """Consecutive runs start from clean counters."""

    def test_second_run_resets_counters(self, targets) -> None:
        first_channel = FakeChannel({t: REVERT for t in targets})
        runner = _runner(first_channel, targets)
        first = asyncio.run(runner.start())

        runner.provider = FakeProvider(FakeChannel())
        second = asyncio.run(runner.start())

        assert first.failed == 5
        assert second.failed == 0
        assert second.succeeded == 5
        assert len(second.ledger) == 5
        assert all(o.ok for o in second.ledger)

    def test_run_ids_differ(self, targets) -> None:
        runner = _runner(FakeChannel(), targets)
        first = asyncio.run(runner.start())
        runner.provider = FakeProvider(FakeChannel())
        second = asyncio.run(runner.start())

        assert first.run_id and second.run_id
        assert first.run_id != second.run_id


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestStop:
    """Cooperative stop."""

    def test_stop_between_items(self) -> None:
        targets = [address(i) for i in range(1, 6)]
        channel = FakeChannel()
        runner = _runner(channel, targets)

        def stop_after_second(snapshot) -> None:
            if snapshot.processed == 2 and snapshot.status is RunStatus.RUNNING:
                runner.stop()

        runner.subscribe(stop_after_second)
        snapshot = asyncio.run(runner.start())

        assert len(snapshot.ledger) == 2
        assert [o.sequence_index for o in snapshot.ledger] == [2, 1]
        assert snapshot.cursor == 0
        assert snapshot.status is RunStatus.IDLE
        assert channel.submitted == targets[:2]

    def test_in_flight_call_finishes_and_is_recorded(self, targets) -> None:
        channel = FakeChannel()
        runner = _runner(channel, targets)
        channel.on_finalize = lambda target: runner.stop() if target == targets[2] else None

        snapshot = asyncio.run(runner.start())

        assert [o.sequence_index for o in snapshot.ledger] == [3, 2, 1]
        assert snapshot.succeeded == 3
        assert channel.finalized == targets[:3]
        assert channel.submitted == targets[:3]

    def test_stop_skips_pacing(self, targets) -> None:
        channel = FakeChannel()
        runner = _runner(channel, targets)
        pacer = RecordingPacer(runner.state)
        runner.pacer = pacer
        channel.on_finalize = lambda target: runner.stop() if target == targets[1] else None

        asyncio.run(runner.start())

        # Paced after item 1 only; item 2 finished with stop pending
        assert pacer.cursors == [1]

    def test_stop_interrupts_pacing_wait(self) -> None:
        targets = [address(i) for i in range(1, 4)]
        channel = FakeChannel()
        runner = _runner(channel, targets, pacer=Pacer(interval_ms=10_000))

        async def scenario():
            asyncio.get_running_loop().call_later(0.05, runner.stop)
            return await runner.start()

        started = time.monotonic()
        snapshot = asyncio.run(scenario())
        elapsed = time.monotonic() - started

        assert elapsed < 5
        assert len(snapshot.ledger) == 1
        assert runner.pacer.stats.interrupted == 1

    def test_stop_sets_stopping_status(self, targets) -> None:
        channel = FakeChannel()
        runner = _runner(channel, targets)
        seen: list[RunStatus] = []

        def on_finalize(target: str) -> None:
            if target == targets[0]:
                runner.stop()
                seen.append(runner.state.status)

        channel.on_finalize = on_finalize
        asyncio.run(runner.start())

        assert seen == [RunStatus.STOPPING]
        assert runner.state.status is RunStatus.IDLE
        assert runner.cancel_requested is False

    def test_stop_when_idle_is_noop(self, targets) -> None:
        runner = _runner(FakeChannel(), targets)

        runner.stop()

        assert runner.state.status is RunStatus.IDLE
        assert runner.cancel_requested is False

        # A stale stop must not cut the next run short
        snapshot = asyncio.run(runner.start())
        assert snapshot.succeeded == len(targets)

    def test_stop_during_channel_acquisition(self, targets) -> None:
        channel = FakeChannel()

        class SlowProvider(FakeProvider):
            async def connect(self):
                runner.stop()
                return await super().connect()

        runner = BatchRunner(SlowProvider(channel), TargetCatalog(targets), pacer=Pacer(0))
        snapshot = asyncio.run(runner.start())

        assert snapshot.ledger == ()
        assert channel.submitted == []
        assert channel.closed is True


# ---------------------------------------------------------------------------
# Re-entrancy
# ---------------------------------------------------------------------------


class TestNoReentry:
    """Only one run may be active at a time."""

    def test_start_while_running_is_rejected(self, targets) -> None:
        async def scenario():
            gate = asyncio.Event()
            channel = FakeChannel(gate=gate)
            provider = FakeProvider(channel)
            runner = BatchRunner(provider, TargetCatalog(targets), pacer=Pacer(0))

            first = asyncio.create_task(runner.start())
            while not channel.submitted:
                await asyncio.sleep(0)

            rejected_start = await runner.start()
            rejected_run = await runner.run(targets, FakeChannel())
            during = runner.snapshot()

            gate.set()
            final = await first
            return rejected_start, rejected_run, during, final, channel, provider

        rejected_start, rejected_run, during, final, channel, provider = asyncio.run(scenario())

        assert rejected_start is None
        assert rejected_run is None
        assert during.status is RunStatus.RUNNING
        assert during.cursor == 1
        assert during.succeeded == 0
        assert final.succeeded == len(targets)
        assert channel.submitted == targets
        assert channel.max_in_flight == 1
        assert provider.connects == 1


# ---------------------------------------------------------------------------
# Run-level failures
# ---------------------------------------------------------------------------


class TestRunLevelFailures:
    """Failures outside the per-item boundary."""

    def test_channel_acquisition_failure(self, targets) -> None:
        provider = FakeProvider(error=ChannelUnavailableError("wallet locked"))
        runner = BatchRunner(provider, TargetCatalog(targets), pacer=Pacer(0))

        snapshot = asyncio.run(runner.start())

        assert len(snapshot.ledger) == 1
        (entry,) = snapshot.ledger
        assert entry.target == NO_TARGET
        assert entry.result is OutcomeResult.FAILURE
        assert entry.sequence_index == 0
        assert entry.detail == "Initialization failed: wallet locked"
        assert snapshot.succeeded == 0
        assert snapshot.failed == 0
        assert snapshot.status is RunStatus.IDLE

    def test_missing_channel(self, targets) -> None:
        runner = BatchRunner(pacer=Pacer(0))

        snapshot = asyncio.run(runner.run(targets, None))

        assert len(snapshot.ledger) == 1
        assert snapshot.ledger[0].target == NO_TARGET
        assert snapshot.ledger[0].detail.startswith("Initialization failed")
        assert snapshot.succeeded == snapshot.failed == 0

    def test_missing_provider(self, targets) -> None:
        runner = BatchRunner(catalog=TargetCatalog(targets), pacer=Pacer(0))

        snapshot = asyncio.run(runner.start())

        assert snapshot.ledger[0].target == NO_TARGET
        assert "No connection provider" in snapshot.ledger[0].detail

    def test_invalid_catalog(self) -> None:
        channel = FakeChannel()
        runner = _runner(channel, ["not-an-address"])

        snapshot = asyncio.run(runner.start())

        assert snapshot.ledger[0].target == NO_TARGET
        assert "Invalid target" in snapshot.ledger[0].detail
        assert channel.submitted == []

    def test_unexpected_error_in_loop(self, targets) -> None:
        channel = FakeChannel()
        runner = _runner(channel, targets)

        async def broken_invoke(*args, **kwargs):
            raise RuntimeError("boom")

        runner.invoker.invoke = broken_invoke
        snapshot = asyncio.run(runner.start())

        assert snapshot.status is RunStatus.IDLE
        assert snapshot.cursor == 0
        assert snapshot.ledger[0].detail == "Run aborted: boom"
        assert channel.closed is True

    def test_runner_usable_after_failure(self, targets) -> None:
        runner = BatchRunner(
            FakeProvider(error=ChannelUnavailableError("offline")),
            TargetCatalog(targets),
            pacer=Pacer(0),
        )
        asyncio.run(runner.start())

        runner.provider = FakeProvider(FakeChannel())
        snapshot = asyncio.run(runner.start())

        assert snapshot.succeeded == len(targets)
        assert all(o.target != NO_TARGET for o in snapshot.ledger)


# ---------------------------------------------------------------------------
# Pacing and observation
# ---------------------------------------------------------------------------


class TestPacingPolicy:
    """Pacing happens between items only."""

    def test_paced_between_items_not_after_last(self, targets) -> None:
        runner = _runner(FakeChannel(), targets)
        pacer = RecordingPacer(runner.state)
        runner.pacer = pacer

        asyncio.run(runner.start())

        assert pacer.cursors == [1, 2, 3, 4]

    def test_single_target_not_paced(self) -> None:
        runner = _runner(FakeChannel(), [address(1)])
        pacer = RecordingPacer(runner.state)
        runner.pacer = pacer

        asyncio.run(runner.start())

        assert pacer.stats.waits == 0

    def test_pacing_reported_when_run_finishes(self, targets, caplog) -> None:
        runner = _runner(FakeChannel(), targets)
        runner.pacer = RecordingPacer(runner.state)

        with caplog.at_level(logging.INFO, logger="callbatch"):
            asyncio.run(runner.start())

        (finished,) = [r for r in caplog.records if r.getMessage().startswith("Run finished")]
        assert "paced 4 time(s)" in finished.getMessage()
        assert "0 cut short by stop" in finished.getMessage()


class TestObservation:
    """Subscribers see every state change."""

    def test_status_transitions(self, targets) -> None:
        runner = _runner(FakeChannel(), targets[:2])
        statuses: list[RunStatus] = []
        runner.subscribe(lambda s: statuses.append(s.status))

        asyncio.run(runner.start())

        assert statuses[0] is RunStatus.RUNNING
        assert statuses[-2:] == [RunStatus.COMPLETED, RunStatus.IDLE]
        assert RunStatus.STOPPING not in statuses

    def test_cursor_progression(self, targets) -> None:
        runner = _runner(FakeChannel(), targets[:3])
        cursors: list[int] = []
        runner.subscribe(lambda s: cursors.append(s.cursor))

        asyncio.run(runner.start())

        assert max(cursors) == 3
        assert cursors[-1] == 0
        assert all(0 <= c <= 3 for c in cursors)

    def test_counters_never_exceed_cursor(self, targets) -> None:
        runner = _runner(FakeChannel({targets[2]: REVERT}), targets)
        violations: list[int] = []

        def check(snapshot) -> None:
            if snapshot.status is RunStatus.RUNNING and snapshot.processed > snapshot.cursor:
                violations.append(snapshot.cursor)

        runner.subscribe(check)
        asyncio.run(runner.start())

        assert violations == []
