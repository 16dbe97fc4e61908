"""Capabilities the client consumes from a ledger node.

The resolver and the transaction pipeline only see the protocols below. The
``Node*`` classes implement them on top of :class:`DVitaRPCClient`; tests
substitute scripted stubs.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Protocol, Sequence

from .model import (
    Account,
    InvocationOutcome,
    Signer,
    SignedTransaction,
    TransactionDraft,
    VMState,
)
from .rpc_client import DVitaRPCClient, RPCError

logger = logging.getLogger(__name__)


class InvocationService(Protocol):
    def invoke_script(
        self, script: bytes, signers: Sequence[Signer] | None = None
    ) -> InvocationOutcome:
        """Execute ``script`` read-only against the current snapshot."""


class RelayService(Protocol):
    def relay(self, transaction: SignedTransaction) -> str:
        """Submit a signed transaction and return its hash."""


class WalletService(Protocol):
    def default_account(self) -> Account:
        """Return the account used when the operator names no sender."""

    def make_transaction(
        self,
        script: bytes,
        signers: Sequence[Signer],
        *,
        system_fee: int,
        max_gas: int,
    ) -> TransactionDraft:
        """Build the draft paying ``system_fee`` plus the network fee."""

    def sign(self, draft: TransactionDraft) -> SignedTransaction:
        """Return the witnessed transaction for a confirmed ``draft``."""


def decode_stack_item(item: Dict[str, Any]) -> Any:
    """Convert a JSON stack item into a plain Python value."""

    if not isinstance(item, dict):
        raise ValueError(f"Malformed stack item: {item!r}")
    item_type = item.get("type")
    value = item.get("value")
    if item_type in {"Any", "Pointer"} or (item_type != "Boolean" and value is None):
        return None
    if item_type == "Boolean":
        return bool(value)
    if item_type == "Integer":
        return int(value)
    if item_type in {"ByteString", "Buffer"}:
        return base64.b64decode(value)
    if item_type in {"Array", "Struct"}:
        if not isinstance(value, list):
            raise ValueError(f"Malformed {item_type} stack item: {value!r}")
        return [decode_stack_item(entry) for entry in value]
    if item_type == "Map":
        if not isinstance(value, list) or not all(
            isinstance(entry, dict) and "key" in entry and "value" in entry for entry in value
        ):
            raise ValueError(f"Malformed Map stack item: {value!r}")
        return {
            _hashable(decode_stack_item(entry["key"])): decode_stack_item(entry["value"])
            for entry in value
        }
    if item_type == "InteropInterface":
        return value
    raise ValueError(f"Unsupported stack item type: {item_type}")


def _hashable(value: Any) -> Any:
    return tuple(value) if isinstance(value, list) else value


def parse_invocation(result: Dict[str, Any]) -> InvocationOutcome:
    """Build an :class:`InvocationOutcome` from an ``invokescript`` response.

    Raises ``ValueError`` when the response does not have the documented shape,
    e.g. when the node replaced an unserializable stack with an error string.
    """

    if not isinstance(result, dict):
        raise ValueError(f"Malformed invocation result: {result!r}")
    raw_stack = result.get("stack") or []
    if not isinstance(raw_stack, list):
        raise ValueError(f"Node could not return the result stack: {raw_stack!r}")
    try:
        state = VMState(str(result.get("state", "NONE")).split(",")[0].strip())
    except ValueError:
        state = VMState.FAULT
    try:
        stack = tuple(decode_stack_item(item) for item in raw_stack)
    except TypeError as exc:
        raise ValueError(f"Malformed result stack: {raw_stack!r}") from exc
    try:
        gas_consumed = int(result.get("gasconsumed", 0))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Malformed gasconsumed: {result.get('gasconsumed')!r}") from exc
    return InvocationOutcome(
        state=state,
        gas_consumed=gas_consumed,
        stack=stack,
        exception=result.get("exception"),
    )


def stack_integer(value: Any) -> int:
    """Interpret a primitive stack value as an integer, as the VM does."""

    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, bytes):
        return int.from_bytes(value, "little", signed=True) if value else 0
    raise TypeError(f"Stack value {value!r} is not an integer")


def stack_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, str):
        return value
    raise TypeError(f"Stack value {value!r} is not a string")


class NodeInvoker:
    """Read-only invocations through the node's ``invokescript``."""

    def __init__(self, rpc: DVitaRPCClient) -> None:
        self.rpc = rpc

    def invoke_script(
        self, script: bytes, signers: Sequence[Signer] | None = None
    ) -> InvocationOutcome:
        signer_payload = [signer.to_rpc() for signer in signers] if signers else None
        result = self.rpc.invokescript(script, signer_payload)
        outcome = parse_invocation(result or {})
        logger.debug(
            "Test invocation state=%s gas=%s exception=%s",
            outcome.state.value,
            outcome.gas_consumed,
            outcome.exception,
        )
        return outcome


class NodeRelay:
    """Relay signed transactions through ``sendrawtransaction``."""

    def __init__(self, rpc: DVitaRPCClient) -> None:
        self.rpc = rpc

    def relay(self, transaction: SignedTransaction) -> str:
        result = self.rpc.sendrawtransaction(transaction.raw)
        if not isinstance(result, dict) or "hash" not in result:
            raise RPCError(-500, f"Node returned an unexpected relay result: {result!r}")
        txid = str(result["hash"])
        logger.info("Relayed transaction %s", txid)
        return txid
