"""
Batch run controller.

Coordinates the sequential workflow: acquire channel → call each target
→ record outcome → pace → repeat, with cooperative stop.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

from callbatch.core.channels.base import ChannelUnavailableError
from callbatch.core.logging import get_contextual_logger
from .invoker import Invoker
from .models import NO_TARGET, Outcome, RunSnapshot
from .pacing import Pacer
from .state import RunState, StateListener

if TYPE_CHECKING:
    from pathlib import Path

    from callbatch.core.catalog import TargetCatalog
    from callbatch.core.channels.base import ConnectionProvider, ExecutionChannel
    from callbatch.core.config.models import AppConfig

    Acquire = Callable[[], Awaitable[tuple[list[str], ExecutionChannel | None]]]


logger = logging.getLogger(__name__)


class BatchRunner:
    """Runs the same call against every target, one at a time.

    Coordinates:
    - Target resolution and channel acquisition
    - Strict sequential invocation, at most one call in flight
    - Pacing between calls
    - Cooperative stop, checked before each item
    - Finalization back to IDLE however the run ends

    The runner owns its RunState; presentation code reads it through
    snapshot() or subscribe() and controls the run with start()/stop().
    """

    def __init__(
        self,
        provider: ConnectionProvider | None = None,
        catalog: TargetCatalog | None = None,
        *,
        state: RunState | None = None,
        pacer: Pacer | None = None,
    ) -> None:
        """Initialize the batch runner.

        Args:
            provider: Supplies the execution channel for each run
            catalog: Supplies the ordered targets for each run
            state: Run state to own (created if not provided)
            pacer: Inter-call pacing (default: 1000 ms)
        """
        self.provider = provider
        self.catalog = catalog
        self.state = state or RunState()
        self.pacer = pacer or Pacer()
        self.invoker = Invoker(self.state)

        self._cancel_requested = False
        self._wake: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        return self.state.status.active

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def snapshot(self) -> RunSnapshot:
        return self.state.snapshot()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self.state.subscribe(listener)

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    async def start(self) -> RunSnapshot | None:
        """Run the batch over the catalog's targets.

        Targets and channel are resolved when the run starts.

        Returns:
            Final snapshot, or None if a run was already active
        """
        return await self._run(self._acquire)

    async def run(
        self,
        targets: Sequence[str],
        channel: ExecutionChannel | None,
    ) -> RunSnapshot | None:
        """Run the batch over given targets with an acquired channel.

        Args:
            targets: Ordered call targets
            channel: Ready execution channel; None fails the run softly

        Returns:
            Final snapshot, or None if a run was already active
        """
        async def given() -> tuple[list[str], ExecutionChannel | None]:
            return list(targets), channel

        return await self._run(given)

    def stop(self) -> None:
        """Request a cooperative stop.

        The call in flight is allowed to finish and is recorded; the
        next item is not started and any pacing wait ends early.
        No-op when no run is active.
        """
        if not self.state.status.active:
            logger.debug("Stop requested with no active run")
            return

        if not self._cancel_requested:
            logger.info("Stop requested; finishing current call")

        self._cancel_requested = True
        if self._wake is not None:
            self._wake.set()
        self.state.mark_stopping()

    # -------------------------------------------------------------------------
    # Run loop
    # -------------------------------------------------------------------------

    async def _acquire(self) -> tuple[list[str], ExecutionChannel | None]:
        """Resolve targets, then connect."""
        targets = self.catalog.resolve() if self.catalog else []

        if self.provider is None:
            raise ChannelUnavailableError("No connection provider configured")

        channel = await self.provider.connect()
        return targets, channel

    async def _run(self, acquire: Acquire) -> RunSnapshot | None:
        if self.state.status.active:
            logger.warning("Run already in progress; start ignored")
            return None

        run_id = uuid.uuid4().hex[:8]
        log = get_contextual_logger("engine", run_id=run_id)

        # Enter RUNNING before the first await so a second start is rejected
        self.state.begin(total=0, run_id=run_id)
        self._cancel_requested = False
        self._wake = asyncio.Event()
        self.pacer.reset()

        channel: ExecutionChannel | None = None
        started_loop = False

        try:
            targets, channel = await acquire()
            if channel is None:
                raise ChannelUnavailableError("Execution channel is not ready")

            self.state.set_total(len(targets))
            log.info(f"Starting run over {len(targets)} target(s)")

            started_loop = True
            await self._process(targets, channel, log)

        except Exception as e:
            stage = "Run aborted" if started_loop else "Initialization failed"
            log.exception(f"{stage}: {e}")
            self.state.record_notice(
                Outcome.failure(0, NO_TARGET, f"{stage}: {e}")
            )

        finally:
            if channel is not None:
                try:
                    await channel.close()
                except Exception:
                    log.warning("Failed to close execution channel", exc_info=True)

            self._cancel_requested = False
            self._wake = None
            self.state.finish()

        snapshot = self.state.snapshot()
        pacing = self.pacer.stats
        log.info(
            f"Run finished: {snapshot.succeeded} succeeded, {snapshot.failed} failed "
            f"of {snapshot.total}; paced {pacing.waits} time(s) for "
            f"{pacing.total_seconds:.1f}s, {pacing.interrupted} cut short by stop"
        )
        return snapshot

    async def _process(
        self,
        targets: list[str],
        channel: ExecutionChannel,
        log: logging.LoggerAdapter,
    ) -> None:
        """Execute the main sequential loop."""
        last_index = len(targets) - 1

        for index, target in enumerate(targets):
            if self._cancel_requested:
                log.info(f"Stopped before item {index + 1}; {len(targets) - index} skipped")
                break

            self.state.advance(index + 1)

            # Per-item faults are recorded by the invoker, never raised
            await self.invoker.invoke(channel, target, index + 1)

            if index < last_index and not self._cancel_requested:
                await self.pacer.wait(self._wake)


def create_runner(
    config: AppConfig,
    *,
    targets_file: Path | str | None = None,
) -> BatchRunner:
    """Build a runner wired to the JSON-RPC provider and config catalog.

    Args:
        config: Application configuration
        targets_file: Targets file overriding config.targets_file

    Returns:
        BatchRunner ready to start()
    """
    from callbatch.core.catalog import TargetCatalog
    from callbatch.core.channels.jsonrpc import JsonRpcProvider

    return BatchRunner(
        JsonRpcProvider(config.network, config.call),
        TargetCatalog.from_config(config, targets_file=targets_file),
        state=RunState(ledger_capacity=config.ledger.capacity),
        pacer=Pacer(config.pacing.interval_ms),
    )
