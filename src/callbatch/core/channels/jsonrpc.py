"""
JSON-RPC execution channel using httpx.

Submits contract calls through an Ethereum-compatible node that holds
the sending account (eth_sendTransaction) and polls for receipts:
- Chain id check on connect
- Sender resolution from config or eth_accounts
- Receipt polling with tenacity until the call is mined
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    wait_fixed,
)

from .base import (
    ChannelError,
    ChannelUnavailableError,
    ConnectionProvider,
    ExecutionChannel,
    Finalization,
    PendingCall,
    SubmissionError,
)

if TYPE_CHECKING:
    from callbatch.core.config.models import CallConfig, NetworkConfig


logger = logging.getLogger(__name__)

RECEIPT_STATUS_SUCCESS = "0x1"


class RpcError(ChannelError):
    """JSON-RPC error response or malformed reply."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause=cause)
        self.code = code


class RpcTransportError(RpcError):
    """Node unreachable or connection dropped."""
    pass


def _hex_to_int(value: Any) -> int | None:
    if isinstance(value, str) and value.startswith("0x"):
        try:
            return int(value, 16)
        except ValueError:
            return None
    return None


class JsonRpcChannel(ExecutionChannel):
    """Execution channel backed by a JSON-RPC node.

    One call at a time: submit() sends the transaction, then
    wait_for_finalization() polls eth_getTransactionReceipt with no
    deadline until the node reports a receipt.
    """

    def __init__(
        self,
        rpc_url: str,
        call_data: str,
        *,
        sender: str | None = None,
        gas: int | None = None,
        timeout: float = 30.0,
        poll_interval: float = 1.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize JSON-RPC channel.

        Args:
            rpc_url: JSON-RPC endpoint
            call_data: ABI-encoded call data sent to every target
            sender: Sending account (must be managed by the node)
            gas: Optional gas limit
            timeout: HTTP request timeout in seconds
            poll_interval: Seconds between receipt polls
            headers: Extra HTTP headers
            transport: Custom httpx transport (testing)
        """
        self.rpc_url = rpc_url
        self.call_data = call_data
        self.sender = sender
        self.gas = gas
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.headers = {"Content-Type": "application/json", **(headers or {})}

        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_id = 0

        # Set by JsonRpcProvider.connect()
        self.connected_chain_id: int | None = None

    @property
    def name(self) -> str:
        return "jsonrpc"

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self.headers,
                transport=self._transport,
            )
        return self._client

    async def rpc(self, method: str, params: list[Any] | None = None) -> Any:
        """Perform one JSON-RPC request and return its result.

        Raises:
            RpcTransportError: On connection failures and timeouts
            RpcError: On HTTP errors, malformed replies or error objects
        """
        client = await self._ensure_client()
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TransportError as e:
            raise RpcTransportError(f"{method}: transport error: {e}", cause=e) from e
        except httpx.HTTPStatusError as e:
            raise RpcError(
                f"{method}: HTTP {e.response.status_code} from node",
                cause=e,
            ) from e
        except ValueError as e:
            raise RpcError(f"{method}: invalid JSON in response", cause=e) from e

        if not isinstance(body, dict):
            raise RpcError(f"{method}: unexpected response shape")

        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcError(
                    str(error.get("message") or f"{method} failed"),
                    code=error.get("code"),
                )
            raise RpcError(str(error))

        return body.get("result")

    async def chain_id(self) -> int:
        value = await self.rpc("eth_chainId")
        chain_id = _hex_to_int(value)
        if chain_id is None:
            raise RpcError(f"eth_chainId returned {value!r}")
        return chain_id

    async def accounts(self) -> list[str]:
        value = await self.rpc("eth_accounts")
        return [str(a) for a in value or []]

    async def submit(self, target: str) -> PendingCall:
        """Send the configured call to a target contract."""
        if not self.sender:
            raise SubmissionError("No sending account configured", target=target)

        tx: dict[str, str] = {
            "from": self.sender,
            "to": target,
            "data": self.call_data,
        }
        if self.gas is not None:
            tx["gas"] = hex(self.gas)

        try:
            tx_hash = await self.rpc("eth_sendTransaction", [tx])
        except RpcError as e:
            raise SubmissionError(str(e), target=target, code=e.code, cause=e) from e

        if not isinstance(tx_hash, str) or not tx_hash:
            raise SubmissionError(
                f"eth_sendTransaction returned {tx_hash!r}",
                target=target,
            )

        logger.debug(f"Submitted call to {target}: {tx_hash}")
        return PendingCall(target=target, reference=tx_hash)

    async def wait_for_finalization(self, pending: PendingCall) -> Finalization:
        """Poll for the transaction receipt until it appears.

        Missing receipts and transport errors are retried without limit;
        RPC error replies end the wait.
        """
        receipt: dict[str, Any] | None = None

        async for attempt in AsyncRetrying(
            wait=wait_fixed(self.poll_interval),
            retry=(
                retry_if_result(lambda r: r is None)
                | retry_if_exception_type(RpcTransportError)
            ),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        ):
            with attempt:
                receipt = await self.rpc("eth_getTransactionReceipt", [pending.reference])
            if not attempt.retry_state.outcome.failed:
                attempt.retry_state.set_result(receipt)

        if not isinstance(receipt, dict):
            raise RpcError(f"Malformed receipt for {pending.reference}")

        status = receipt.get("status")
        return Finalization(
            success=status == RECEIPT_STATUS_SUCCESS,
            reference=pending.reference,
            detail=None if status == RECEIPT_STATUS_SUCCESS else "Transaction reverted",
            block_number=_hex_to_int(receipt.get("blockNumber")),
            gas_used=_hex_to_int(receipt.get("gasUsed")),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


class JsonRpcProvider(ConnectionProvider):
    """Connection provider for a JSON-RPC node."""

    def __init__(
        self,
        network: NetworkConfig,
        call: CallConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.network = network
        self.call = call
        self._transport = transport

    async def connect(self) -> JsonRpcChannel:
        """Open a channel, verify the chain and resolve the sender.

        Raises:
            ChannelUnavailableError: If the node cannot be used
        """
        try:
            call_data = self.call.resolved_data()
        except ValueError as e:
            raise ChannelUnavailableError(str(e), cause=e) from e

        channel = JsonRpcChannel(
            self.network.rpc_url,
            call_data,
            sender=self.network.from_address,
            gas=self.call.gas,
            timeout=self.network.timeout_seconds,
            poll_interval=self.network.receipt_poll_interval_seconds,
            headers=self.network.headers,
            transport=self._transport,
        )

        try:
            chain_id = await channel.chain_id()
            expected = self.network.chain_id
            if expected is not None and chain_id != expected:
                raise ChannelUnavailableError(
                    f"Connected to chain {chain_id}, expected {expected} ({self.network.name})"
                )
            channel.connected_chain_id = chain_id

            if channel.sender is None:
                accounts = await channel.accounts()
                if not accounts:
                    raise ChannelUnavailableError(
                        "Node exposes no accounts; set network.from_address"
                    )
                channel.sender = accounts[0]

        except ChannelUnavailableError:
            await channel.close()
            raise
        except ChannelError as e:
            await channel.close()
            raise ChannelUnavailableError(
                f"Cannot connect to {self.network.rpc_url}: {e}",
                cause=e,
            ) from e

        logger.info(
            f"Connected to {self.network.name} (chain {chain_id}) as {channel.sender}"
        )
        return channel
