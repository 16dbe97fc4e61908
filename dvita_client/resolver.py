"""Resolution of names, social handles and raw addresses.

Names of the form ``alice.id.dvita.com`` (and e-mail style or ``@`` names) are
resolved by a fixed naming contract. Social handles never resolve to an
account; balances for them are read from a proxy ledger contract keyed by the
handle itself. Anything else must parse as an address or script hash.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from .config import ContractConfig
from .identifiers import (
    ClassificationMismatch,
    IdentifierKind,
    RESOLUTION_PRECEDENCE,
    is_domain_name,
    is_social_handle,
)
from .model import ACCOUNT_SIZE, Account, parse_account
from .node import InvocationService
from .pipeline import Approver, ContractCall, Relayed, TransactionPipeline
from .rpc_client import RPCError, RPCTransportError
from .script import build_contract_call
from .signers import build_signer_set

logger = logging.getLogger(__name__)


class ResolutionFailure(RuntimeError):
    """Raised when a name has no registration and no other form applies."""


@dataclass(frozen=True)
class AccountTarget:
    account: Account
    kind: IdentifierKind


@dataclass(frozen=True)
class HandleTarget:
    handle: str

    @property
    def handle_bytes(self) -> bytes:
        return self.handle.encode("utf-8")


BalanceTarget = Union[AccountTarget, HandleTarget]


class NameResolver:
    """Resolves identifiers through the naming contract and the social ledger."""

    def __init__(
        self,
        invoker: InvocationService,
        pipeline: TransactionPipeline,
        contracts: ContractConfig,
    ) -> None:
        self.invoker = invoker
        self.pipeline = pipeline
        self.contracts = contracts
        self.address_version = contracts.address_version
        self.naming_contract = parse_account(contracts.naming_contract, self.address_version)
        self.gas_contract = parse_account(contracts.gas_contract, self.address_version)

    def resolve_by_name(self, name: str) -> Account | None:
        """Return the account registered for ``name`` or ``None``.

        Failures of any kind are logged and reported as "not found"; they never
        propagate to the caller.
        """

        try:
            script = build_contract_call(self.naming_contract, "resolve", [name])
            outcome = self.invoker.invoke_script(script)
        except (RPCError, RPCTransportError, ValueError) as exc:
            logger.error("Name resolution for %s failed: %s", name, exc)
            return None

        if not outcome.success:
            logger.error(
                "Name resolution for %s ended in %s: %s",
                name,
                outcome.state.value,
                outcome.exception,
            )
            return None
        if outcome.gas_consumed > self.contracts.test_mode_gas:
            logger.error(
                "Name resolution for %s needs %s gas, above the test-mode ceiling",
                name,
                outcome.gas_consumed,
            )
            return None
        result = outcome.result
        if result is None:
            logger.warning("Name %s is not registered", name)
            return None
        if not isinstance(result, bytes) or len(result) != ACCOUNT_SIZE:
            logger.error("Name resolution for %s returned a malformed result: %r", name, result)
            return None

        account = Account(result)
        logger.info("Name %s resolves to %s", name, account)
        return account

    def resolve_balance_target(self, identifier: str) -> BalanceTarget:
        """Resolve ``identifier`` following :data:`RESOLUTION_PRECEDENCE`.

        The naming contract is asked first, even for ``@handles`` (which also
        count as names); the social-handle path is only taken when it has no
        answer, and the raw address parse comes last. A name that is not a
        handle and has no registration raises :class:`ResolutionFailure`.
        """

        for kind in RESOLUTION_PRECEDENCE:
            if kind is IdentifierKind.DOMAIN_NAME and is_domain_name(identifier):
                account = self.resolve_by_name(identifier)
                if account is not None:
                    return AccountTarget(account=account, kind=kind)
            elif kind is IdentifierKind.SOCIAL_HANDLE and is_social_handle(identifier):
                return HandleTarget(handle=identifier)
            elif kind is IdentifierKind.RAW_ADDRESS:
                if is_domain_name(identifier):
                    # Names never parse as addresses; report the failed lookup instead.
                    raise ResolutionFailure(f"Name {identifier} could not be resolved")
                return AccountTarget(account=self._parse_raw(identifier), kind=kind)
        raise ClassificationMismatch(f"Unsupported identifier: {identifier!r}")

    def _parse_raw(self, identifier: str) -> Account:
        try:
            account = parse_account(identifier, self.address_version)
        except ValueError as exc:
            raise ClassificationMismatch(
                f"{identifier!r} is neither a registered name, a social handle nor an address"
            ) from exc
        if account.is_zero():
            raise ClassificationMismatch("The zero account cannot be used")
        return account

    def _submit(
        self, call: ContractCall, signer: Account, approve: Approver, label: str
    ) -> bool:
        try:
            signers = build_signer_set(signer, None, [self.naming_contract, self.gas_contract])
            state = self.pipeline.run(call, signers, self.contracts.test_mode_gas, approve)
        except Exception:
            logger.exception("%s failed", label)
            return False
        if isinstance(state, Relayed):
            logger.info("%s relayed in transaction %s", label, state.txid)
            return True
        if state.declined:
            logger.info("%s cancelled by operator", label)
        else:
            logger.error("%s failed: %s", label, state.reason)
        return False

    def register_by_name(
        self, name: str, account: Account, signer: Account, approve: Approver
    ) -> bool:
        if not is_domain_name(name):
            logger.error("Cannot register %r: not a valid name", name)
            return False
        logger.info("Name registration for %s -> %s", name, account)
        call = ContractCall(
            self.naming_contract, "register", (name, account), expects_result=False
        )
        return self._submit(call, signer, approve, f"Name registration for {name}")

    def unregister_by_name(self, name: str, signer: Account, approve: Approver) -> bool:
        if not is_domain_name(name):
            logger.error("Cannot unregister %r: not a valid name", name)
            return False
        logger.info("Name unregistration for %s", name)
        call = ContractCall(self.naming_contract, "unregister", (name,), expects_result=False)
        return self._submit(call, signer, approve, f"Name unregistration for {name}")
