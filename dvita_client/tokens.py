"""Fungible-token operations: balances, transfers and metadata."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .amounts import AmountLike, ScaleConversionError, format_amount, scale_amount
from .assets import AssetLookup
from .config import ContractConfig
from .model import Account, AssetDescriptor, parse_account
from .node import InvocationService, WalletService, stack_integer
from .pipeline import Aborted, Approver, ContractCall, Relayed, TransactionPipeline
from .resolver import AccountTarget, HandleTarget, NameResolver
from .script import build_contract_call
from .signers import build_signer_set

logger = logging.getLogger(__name__)


class TokenOperationError(RuntimeError):
    """Raised when a read-only token query cannot be answered."""


@dataclass(frozen=True)
class Balance:
    asset: AssetDescriptor
    value: int

    @property
    def formatted(self) -> str:
        return format_amount(self.value, self.asset.decimals)

    def __str__(self) -> str:
        return f"{self.asset.display_name} balance: {self.formatted}"


class TokenService:
    """Composes resolution, metadata and the pipeline into token commands."""

    def __init__(
        self,
        invoker: InvocationService,
        wallet: WalletService,
        pipeline: TransactionPipeline,
        resolver: NameResolver,
        assets: AssetLookup,
        contracts: ContractConfig,
    ) -> None:
        self.invoker = invoker
        self.wallet = wallet
        self.pipeline = pipeline
        self.resolver = resolver
        self.assets = assets
        self.contracts = contracts
        self.social_ledger = parse_account(
            contracts.social_ledger_contract, contracts.address_version
        )

    def _read_integer(self, contract: Account, method: str, args: Sequence[object]) -> int:
        try:
            outcome = self.invoker.invoke_script(build_contract_call(contract, method, args))
        except ValueError as exc:
            raise TokenOperationError(f"{method} on {contract} failed: {exc}") from exc
        if not outcome.success:
            raise TokenOperationError(
                f"{method} on {contract} ended in {outcome.state.value}: {outcome.exception}"
            )
        if outcome.result is None:
            raise TokenOperationError(f"{method} on {contract} returned no value")
        try:
            return stack_integer(outcome.result)
        except TypeError as exc:
            raise TokenOperationError(f"{method} on {contract} is not an integer") from exc

    def balance_of(self, token: Account, identifier: str) -> Balance:
        target = self.resolver.resolve_balance_target(identifier)
        asset = self.assets.describe(token)
        if isinstance(target, HandleTarget):
            logger.debug("Reading balance of handle %s from the social ledger", target.handle)
            value = self._read_integer(
                self.social_ledger, "balanceOf", [target.handle_bytes, token]
            )
        else:
            value = self._read_integer(token, "balanceOf", [target.account])
        return Balance(asset=asset, value=value)

    def transfer(
        self,
        token: Account,
        to: str,
        amount: AmountLike,
        approve: Approver,
        from_account: Account | None = None,
        data: str | None = None,
        signers: Sequence[Account] | None = None,
    ) -> Relayed | Aborted:
        """Transfer ``amount`` of ``token`` to an address, a name or a handle.

        The amount is scaled with the token's current decimals before anything
        is sent to the node for execution.
        """

        asset = self.assets.describe(token)
        value = scale_amount(amount, asset.decimals)
        if value <= 0:
            raise ScaleConversionError(f"Transfer amount must be positive: {amount}")

        target = self.resolver.resolve_balance_target(to)
        sender = from_account or self.wallet.default_account()
        signer_set = build_signer_set(
            sender, signers, [token, self.resolver.gas_contract]
        )

        if isinstance(target, HandleTarget):
            call = ContractCall(
                self.social_ledger,
                "transferFromAddressToHandle",
                (sender, target.handle_bytes, token, value),
            )
            max_gas = self.contracts.proxy_transfer_max_gas
        else:
            call = ContractCall(token, "transfer", (sender, target.account, value, data))
            max_gas = self.contracts.test_mode_gas

        logger.info(
            "Transferring %s %s from %s to %s",
            format_amount(value, asset.decimals),
            asset.symbol or asset.display_name,
            sender,
            _describe_target(target),
        )
        return self.pipeline.run(call, signer_set, max_gas, approve)

    def name(self, token: Account) -> str:
        return self.assets.contract_name(token)

    def decimals(self, token: Account) -> int:
        return self.assets.decimals(token)

    def total_supply(self, token: Account) -> str:
        decimals = self.assets.decimals(token)
        return format_amount(self.assets.total_supply(token), decimals)


def _describe_target(target: AccountTarget | HandleTarget) -> str:
    if isinstance(target, HandleTarget):
        return target.handle
    return str(target.account)

