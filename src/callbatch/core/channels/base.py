"""
Execution channel base classes and data structures.

Defines the interface contract between the batch engine and whatever
submits calls on its behalf.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PendingCall:
    """A call accepted by the channel and awaiting finalization."""

    target: str
    reference: str  # Channel-specific handle, e.g. transaction hash
    submitted_at: datetime = field(default_factory=_utcnow)


@dataclass
class Finalization:
    """Final status of a submitted call."""

    success: bool
    reference: str | None = None
    detail: str | None = None

    # Chain metadata when available
    block_number: int | None = None
    gas_used: int | None = None
    finalized_at: datetime = field(default_factory=_utcnow)


class ExecutionChannel(ABC):
    """Abstract base class for execution channels.

    A channel submits one call at a time and waits for its outcome.
    It is owned exclusively by the run that acquired it.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel identifier."""
        pass

    @abstractmethod
    async def submit(self, target: str) -> PendingCall:
        """Submit the configured call to a target.

        Args:
            target: Call destination

        Returns:
            PendingCall handle for wait_for_finalization

        Raises:
            SubmissionError: If the remote endpoint rejects the call
        """
        pass

    @abstractmethod
    async def wait_for_finalization(self, pending: PendingCall) -> Finalization:
        """Wait until a submitted call is finalized.

        There is no deadline; a call that never finalizes blocks
        the caller.

        Args:
            pending: Handle returned by submit()

        Returns:
            Finalization with success flag
        """
        pass

    async def close(self) -> None:
        """Release channel resources."""
        pass

    async def __aenter__(self) -> "ExecutionChannel":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class ConnectionProvider(ABC):
    """Supplies a ready execution channel for a run."""

    @abstractmethod
    async def connect(self) -> ExecutionChannel:
        """Acquire an execution channel.

        Raises:
            ChannelUnavailableError: If no channel can be obtained
        """
        pass


class ChannelError(Exception):
    """Base exception for channel errors."""

    def __init__(
        self,
        message: str,
        target: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.target = target
        self.cause = cause


class ChannelUnavailableError(ChannelError):
    """Execution channel could not be acquired."""
    pass


class SubmissionError(ChannelError):
    """Remote endpoint rejected a call."""

    def __init__(
        self,
        message: str,
        target: str | None = None,
        code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, target, cause)
        self.code = code
