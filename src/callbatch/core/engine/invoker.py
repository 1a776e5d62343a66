"""
Single-target invocation.

Performs one call-and-confirm round trip through the execution channel
and turns every result, including errors, into a recorded Outcome.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from callbatch.core.logging import get_contextual_logger
from .models import Outcome

if TYPE_CHECKING:
    from callbatch.core.channels.base import ExecutionChannel, Finalization, PendingCall
    from .state import RunState


logger = logging.getLogger(__name__)

FINALIZATION_FAILED_DETAIL = "Operation failed"


def _error_message(error: Exception) -> str:
    return str(error) or error.__class__.__name__


def describe_confirmation(pending: PendingCall, final: Finalization) -> str:
    """Block, gas and latency of a finalized call, e.g. ``block 16, gas 21000, 2.4s``."""
    parts = []
    if final.block_number is not None:
        parts.append(f"block {final.block_number}")
    if final.gas_used is not None:
        parts.append(f"gas {final.gas_used}")
    elapsed = (final.finalized_at - pending.submitted_at).total_seconds()
    parts.append(f"{max(elapsed, 0.0):.1f}s")
    return ", ".join(parts)


class Invoker:
    """Calls one target and records the classified outcome.

    Submission errors, failed finalization and errors while waiting
    for finalization are all recorded as failures; nothing raised by
    the channel escapes invoke().
    """

    def __init__(self, state: RunState):
        self.state = state

    async def invoke(
        self,
        channel: ExecutionChannel,
        target: str,
        sequence_index: int,
    ) -> bool:
        """Call a target and record the outcome.

        Args:
            channel: Execution channel owned by the current run
            target: Call destination
            sequence_index: 1-based position in the batch

        Returns:
            True if the call finalized successfully
        """
        outcome, confirmation = await self._attempt(channel, target, sequence_index)
        self.state.record_attempt(outcome)

        log = get_contextual_logger(
            "engine",
            run_id=self.state.run_id,
            target=target,
            index=sequence_index,
            tx_hash=outcome.reference,
        )
        position = f"[{sequence_index}/{self.state.total}] {target}"
        suffix = f" ({confirmation})" if confirmation else ""
        if outcome.ok:
            log.info(f"{position}: success{suffix}")
        else:
            log.warning(f"{position}: failed - {outcome.detail}{suffix}")

        return outcome.ok

    async def _attempt(
        self,
        channel: ExecutionChannel,
        target: str,
        sequence_index: int,
    ) -> tuple[Outcome, str | None]:
        try:
            pending = await channel.submit(target)
        except Exception as e:
            logger.debug(f"Submission to {target} failed", exc_info=True)
            return Outcome.failure(sequence_index, target, _error_message(e)), None

        try:
            final = await channel.wait_for_finalization(pending)
        except Exception as e:
            logger.debug(f"Waiting for {pending.reference} failed", exc_info=True)
            outcome = Outcome.failure(
                sequence_index,
                target,
                _error_message(e),
                reference=pending.reference,
            )
            return outcome, None

        if final.success:
            outcome = Outcome.success(sequence_index, target, reference=pending.reference)
        else:
            outcome = Outcome.failure(
                sequence_index,
                target,
                final.detail or FINALIZATION_FAILED_DETAIL,
                reference=pending.reference,
            )
        return outcome, describe_confirmation(pending, final)
