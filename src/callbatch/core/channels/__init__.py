"""Execution channels for submitting calls and awaiting their outcome."""

from .base import (
    ChannelError,
    ChannelUnavailableError,
    ConnectionProvider,
    ExecutionChannel,
    Finalization,
    PendingCall,
    SubmissionError,
)
from .jsonrpc import JsonRpcChannel, JsonRpcProvider, RpcError, RpcTransportError

__all__ = [
    # Base classes
    "ConnectionProvider",
    "ExecutionChannel",
    "Finalization",
    "PendingCall",
    # Errors
    "ChannelError",
    "ChannelUnavailableError",
    "SubmissionError",
    "RpcError",
    "RpcTransportError",
    # JSON-RPC
    "JsonRpcChannel",
    "JsonRpcProvider",
]
