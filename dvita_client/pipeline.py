"""Two-phase transaction pipeline: estimate, draft, confirm, relay.

Every step is a method that accepts exactly the state produced by the step
before it and returns the next state, so a transaction can only be relayed
from a :class:`Confirmed` state and can only be drafted once its test
invocation succeeded::

    Idle -> ScriptBuilt -> FeeEstimated -> Drafted -> Confirmed -> Relayed

Any step may end in :class:`Aborted` instead.
:meth:`TransactionPipeline.run` drives the whole flow and turns every failure
into an :class:`Aborted` state; nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence, Tuple, Union

from .amounts import format_gas
from .model import Account, InvocationOutcome, Signer, TransactionDraft
from .node import InvocationService, RelayService, WalletService
from .rpc_client import RPCError, RPCTransportError, format_rpc_hint
from .script import ScriptBuildError, build_contract_call

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """Base class for failures that abort the pipeline."""


class InvocationFault(PipelineError):
    """Raised when the test invocation faults or rejects the call."""


class DraftBuildFailure(PipelineError):
    """Raised when the wallet cannot build the real transaction."""


class SigningFailure(PipelineError):
    """Raised when the wallet cannot sign a confirmed draft."""


class RelayFailure(PipelineError):
    """Raised when the node rejects or never receives the transaction."""


@dataclass(frozen=True)
class ContractCall:
    """A single contract method invocation with typed arguments."""

    contract: Account
    operation: str
    args: Tuple[Any, ...] = ()
    # Methods returning nothing leave a null result; only require one when
    # the method reports success through its return value.
    expects_result: bool = True

    def describe(self) -> str:
        return f"{self.contract}.{self.operation}"


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class ScriptBuilt:
    call: ContractCall
    script: bytes
    max_gas: int


@dataclass(frozen=True)
class FeeEstimated:
    built: ScriptBuilt
    signers: Tuple[Signer, ...]
    outcome: InvocationOutcome

    @property
    def system_fee(self) -> int:
        return self.outcome.gas_consumed


@dataclass(frozen=True)
class Drafted:
    estimated: FeeEstimated
    draft: TransactionDraft


@dataclass(frozen=True)
class Confirmed:
    drafted: Drafted


@dataclass(frozen=True)
class Relayed:
    confirmed: Confirmed
    txid: str

    @property
    def draft(self) -> TransactionDraft:
        return self.confirmed.drafted.draft


@dataclass(frozen=True)
class Aborted:
    stage: str
    reason: str
    error: Exception | None = field(default=None, compare=False)
    declined: bool = False


PipelineState = Union[Idle, ScriptBuilt, FeeEstimated, Drafted, Confirmed, Relayed, Aborted]

Approver = Callable[[TransactionDraft], bool]


def _expect(state: object, expected: type) -> None:
    if not isinstance(state, expected):
        raise TypeError(
            f"Illegal pipeline transition: expected {expected.__name__}, got {type(state).__name__}"
        )


def fee_summary(draft: TransactionDraft) -> str:
    return (
        f"Network fee: {format_gas(draft.network_fee)}\t"
        f"Total fee: {format_gas(draft.total_fee)} GAS"
    )


def _with_hint(message: str, exc: Exception) -> str:
    hint = format_rpc_hint(exc) if isinstance(exc, RPCError) else None
    return f"{message}\nHint: {hint}" if hint else message


class TransactionPipeline:
    """Builds, prices, confirms and relays contract invocations."""

    def __init__(
        self,
        invoker: InvocationService,
        wallet: WalletService,
        relay: RelayService,
    ) -> None:
        self.invoker = invoker
        self.wallet = wallet
        self.relayer = relay

    def build_script(self, state: Idle, call: ContractCall, max_gas: int) -> ScriptBuilt:
        _expect(state, Idle)
        if max_gas <= 0:
            raise InvocationFault(f"Gas ceiling must be positive, got {max_gas}")
        try:
            script = build_contract_call(call.contract, call.operation, call.args)
        except ScriptBuildError as exc:
            raise InvocationFault(f"Cannot build script for {call.describe()}: {exc}") from exc
        logger.debug("Built %d-byte script for %s", len(script), call.describe())
        return ScriptBuilt(call=call, script=script, max_gas=max_gas)

    def estimate_fee(self, state: ScriptBuilt, signers: Sequence[Signer]) -> FeeEstimated:
        _expect(state, ScriptBuilt)
        if not signers:
            raise InvocationFault("At least one signer is required")
        try:
            outcome = self.invoker.invoke_script(state.script, signers)
        except (RPCError, RPCTransportError) as exc:
            raise InvocationFault(
                _with_hint(f"Test invocation of {state.call.describe()} failed: {exc}", exc)
            ) from exc
        except ValueError as exc:
            raise InvocationFault(
                f"Test invocation of {state.call.describe()} returned a malformed result: {exc}"
            ) from exc

        if not outcome.success:
            raise InvocationFault(
                f"Test invocation of {state.call.describe()} ended in {outcome.state.value}: "
                f"{outcome.exception or 'no exception reported'}"
            )
        if outcome.result is False:
            raise InvocationFault(f"{state.call.describe()} returned false; the call would fail on-chain")
        if state.call.expects_result and outcome.result is None:
            raise InvocationFault(f"{state.call.describe()} returned no result")
        if outcome.gas_consumed > state.max_gas:
            raise InvocationFault(
                f"{state.call.describe()} needs {format_gas(outcome.gas_consumed)} GAS, "
                f"above the ceiling of {format_gas(state.max_gas)} GAS"
            )
        logger.info(
            "Test invocation of %s consumed %s GAS", state.call.describe(), format_gas(outcome.gas_consumed)
        )
        return FeeEstimated(built=state, signers=tuple(signers), outcome=outcome)

    def draft(self, state: FeeEstimated) -> Drafted:
        _expect(state, FeeEstimated)
        try:
            draft = self.wallet.make_transaction(
                state.built.script,
                list(state.signers),
                system_fee=state.system_fee,
                max_gas=state.built.max_gas,
            )
        except (RPCError, RPCTransportError) as exc:
            raise DraftBuildFailure(_with_hint(f"Could not build transaction: {exc}", exc)) from exc
        except (RuntimeError, ValueError) as exc:
            raise DraftBuildFailure(f"Could not build transaction: {exc}") from exc
        return Drafted(estimated=state, draft=draft)

    def confirm(self, state: Drafted, approve: Approver) -> Confirmed | Aborted:
        _expect(state, Drafted)
        if not approve(state.draft):
            logger.info("Operator declined to relay %s", state.estimated.built.call.describe())
            return Aborted(stage="confirm", reason="declined by operator", declined=True)
        return Confirmed(drafted=state)

    def relay(self, state: Confirmed) -> Relayed:
        _expect(state, Confirmed)
        draft = state.drafted.draft
        try:
            signed = self.wallet.sign(draft)
        except (RPCError, RPCTransportError) as exc:
            raise SigningFailure(_with_hint(f"Signing failed: {exc}", exc)) from exc
        except (RuntimeError, ValueError) as exc:
            raise SigningFailure(f"Signing failed: {exc}") from exc
        try:
            txid = self.relayer.relay(signed)
        except (RPCError, RPCTransportError) as exc:
            raise RelayFailure(_with_hint(f"Relay failed: {exc}", exc)) from exc
        except ValueError as exc:
            raise RelayFailure(f"Relay failed: {exc}") from exc
        return Relayed(confirmed=state, txid=txid)

    def run(
        self,
        call: ContractCall,
        signers: Sequence[Signer],
        max_gas: int,
        approve: Approver,
    ) -> Relayed | Aborted:
        """Drive ``call`` through every stage, stopping at the first failure."""

        stage = "script"
        try:
            built = self.build_script(Idle(), call, max_gas)
            stage = "estimate"
            estimated = self.estimate_fee(built, signers)
            stage = "draft"
            drafted = self.draft(estimated)
            stage = "confirm"
            confirmed = self.confirm(drafted, approve)
            if isinstance(confirmed, Aborted):
                return confirmed
            stage = "relay"
            return self.relay(confirmed)
        except PipelineError as exc:
            logger.error("%s aborted at %s: %s", call.describe(), stage, exc)
            return Aborted(stage=stage, reason=str(exc), error=exc)
