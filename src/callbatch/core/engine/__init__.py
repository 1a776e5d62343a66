"""Engine - sequential run control, invocation, ledger and pacing."""

from .invoker import FINALIZATION_FAILED_DETAIL, Invoker
from .ledger import DEFAULT_LEDGER_CAPACITY, ResultLedger
from .models import NO_TARGET, Outcome, OutcomeResult, RunSnapshot, RunStatus
from .pacing import Pacer
from .runner import BatchRunner, create_runner
from .state import RunState

__all__ = [
    "BatchRunner",
    "create_runner",
    "Invoker",
    "FINALIZATION_FAILED_DETAIL",
    "ResultLedger",
    "DEFAULT_LEDGER_CAPACITY",
    "RunState",
    "RunStatus",
    "RunSnapshot",
    "Outcome",
    "OutcomeResult",
    "NO_TARGET",
    "Pacer",
]
