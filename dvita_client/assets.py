"""Token metadata lookups."""

from __future__ import annotations

import logging

from .model import Account, AssetDescriptor
from .node import InvocationService, stack_integer, stack_text
from .rpc_client import DVitaRPCClient, RPCError, RPCTransportError
from .script import build_contract_call

logger = logging.getLogger(__name__)


class AssetLookupError(RuntimeError):
    """Raised when a token contract does not expose the expected metadata."""


class AssetLookup:
    """Reads decimals, symbol and display name of token contracts.

    Nothing is cached: every call reflects the node's current snapshot.
    """

    def __init__(self, rpc: DVitaRPCClient, invoker: InvocationService) -> None:
        self.rpc = rpc
        self.invoker = invoker

    def call_read_only(self, token: Account, method: str):
        try:
            outcome = self.invoker.invoke_script(build_contract_call(token, method))
        except (RPCError, RPCTransportError, ValueError) as exc:
            raise AssetLookupError(f"{method}() on {token} failed: {exc}") from exc
        if not outcome.success:
            raise AssetLookupError(
                f"{method}() on {token} ended in {outcome.state.value}: "
                f"{outcome.exception or 'no exception reported'}"
            )
        if outcome.result is None:
            raise AssetLookupError(f"{method}() on {token} returned no value")
        return outcome.result

    def decimals(self, token: Account) -> int:
        raw = self.call_read_only(token, "decimals")
        try:
            decimals = stack_integer(raw)
        except TypeError as exc:
            raise AssetLookupError(f"decimals() on {token} is not an integer: {raw!r}") from exc
        if decimals < 0:
            raise AssetLookupError(f"decimals() on {token} is negative: {decimals}")
        return decimals

    def symbol(self, token: Account) -> str:
        raw = self.call_read_only(token, "symbol")
        try:
            return stack_text(raw)
        except (TypeError, UnicodeDecodeError) as exc:
            raise AssetLookupError(f"symbol() on {token} is not text: {raw!r}") from exc

    def total_supply(self, token: Account) -> int:
        raw = self.call_read_only(token, "totalSupply")
        try:
            return stack_integer(raw)
        except TypeError as exc:
            raise AssetLookupError(f"totalSupply() on {token} is not an integer: {raw!r}") from exc

    def contract_name(self, token: Account) -> str:
        try:
            state = self.rpc.getcontractstate(str(token))
        except RPCError as exc:
            raise AssetLookupError(f"Contract hash not exist: {token}") from exc
        except RPCTransportError as exc:
            raise AssetLookupError(f"Could not read contract state of {token}: {exc}") from exc
        name = ((state or {}).get("manifest") or {}).get("name")
        if not name:
            raise AssetLookupError(f"Contract {token} has no manifest name")
        return str(name)

    def describe(self, token: Account) -> AssetDescriptor:
        descriptor = AssetDescriptor(
            contract=token,
            decimals=self.decimals(token),
            display_name=self.contract_name(token),
            symbol=self.symbol(token),
        )
        logger.debug(
            "Asset %s: name=%s symbol=%s decimals=%s",
            token,
            descriptor.display_name,
            descriptor.symbol,
            descriptor.decimals,
        )
        return descriptor
