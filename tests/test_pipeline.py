from __future__ import annotations

import pytest

from dvita_client.identifiers import is_yes
from dvita_client.model import (
    Account,
    InvocationOutcome,
    SignedTransaction,
    TransactionDraft,
    VMState,
)
from dvita_client.node import NodeInvoker
from dvita_client.pipeline import (
    Aborted,
    ContractCall,
    DraftBuildFailure,
    Drafted,
    FeeEstimated,
    Idle,
    InvocationFault,
    RelayFailure,
    Relayed,
    SigningFailure,
    TransactionPipeline,
    fee_summary,
)
from dvita_client.rpc_client import RPCError, RPCTransportError
from dvita_client.signers import build_signer_set

TOKEN = Account(bytes(range(20)))
SENDER = Account(b"\x01" * 20)
RECEIVER = Account(b"\x02" * 20)
MAX_GAS = 20 * 10**8


class StubInvoker:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.calls = []

    def invoke_script(self, script, signers=None):
        self.calls.append((script, signers))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class StubWallet:
    def __init__(self, error: Exception | None = None, sign_error: Exception | None = None) -> None:
        self.error = error
        self.sign_error = sign_error
        self.drafts = []
        self.signed = []

    def default_account(self):
        return SENDER

    def make_transaction(self, script, signers, *, system_fee, max_gas):
        if self.error is not None:
            raise self.error
        draft = TransactionDraft(
            script=script,
            signers=list(signers),
            system_fee=system_fee,
            network_fee=1_234_560,
            payload=b"signed-tx",
        )
        self.drafts.append(draft)
        return draft

    def sign(self, draft):
        if self.sign_error is not None:
            raise self.sign_error
        self.signed.append(draft)
        return SignedTransaction(raw=draft.payload, signers=tuple(draft.signers))


class StubRelay:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.relayed = []

    def relay(self, transaction):
        if self.error is not None:
            raise self.error
        self.relayed.append(transaction)
        return "0xfeed"


def _halt(*stack, gas: int = 9_977_780) -> InvocationOutcome:
    return InvocationOutcome(VMState.HALT, gas, tuple(stack))


def _call(expects_result: bool = True) -> ContractCall:
    return ContractCall(TOKEN, "transfer", (SENDER, RECEIVER, 500, None), expects_result)


def _signers():
    return build_signer_set(SENDER, None, [TOKEN])


def _pipeline(outcome, wallet=None, relay=None):
    invoker = StubInvoker(outcome)
    wallet = wallet or StubWallet()
    relay = relay or StubRelay()
    return TransactionPipeline(invoker, wallet, relay), invoker, wallet, relay


def test_confirmed_transfer_is_relayed_once() -> None:
    pipeline, invoker, wallet, relay = _pipeline(_halt(True))
    seen = []

    state = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: seen.append(draft) or True)

    assert isinstance(state, Relayed)
    assert state.txid == "0xfeed"
    assert state.draft.system_fee == 9_977_780
    assert state.draft.sender == SENDER
    assert seen == [state.draft]
    assert len(invoker.calls) == 1
    assert invoker.calls[0][1][0].account == SENDER
    assert [tx.raw for tx in relay.relayed] == [b"signed-tx"]


@pytest.mark.parametrize(
    "outcome",
    [
        InvocationOutcome(VMState.FAULT, 100, (), "ASSERT is executed with false result."),
        _halt(False),
        _halt(gas=MAX_GAS + 1),
        RPCTransportError("node down", retryable=True),
        RPCError(-32602, "Invalid params"),
        ValueError("Node could not return the result stack: 'error: invalid operation'"),
    ],
)
def test_failed_estimate_never_drafts_or_relays(outcome) -> None:
    pipeline, _, wallet, relay = _pipeline(outcome)
    asked = []

    state = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: asked.append(draft) or True)

    assert isinstance(state, Aborted)
    assert state.stage == "estimate"
    assert isinstance(state.error, InvocationFault)
    assert not state.declined
    assert wallet.drafts == []
    assert asked == []
    assert relay.relayed == []


class UnserializableStackRPC:
    def invokescript(self, script, signers=None):
        return {"state": "HALT", "gasconsumed": "1000", "stack": "error: invalid operation"}


def test_unserializable_stack_from_node_aborts_at_estimate() -> None:
    wallet, relay = StubWallet(), StubRelay()
    pipeline = TransactionPipeline(NodeInvoker(UnserializableStackRPC()), wallet, relay)  # type: ignore[arg-type]

    state = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: True)

    assert isinstance(state, Aborted)
    assert state.stage == "estimate"
    assert isinstance(state.error, InvocationFault)
    assert "malformed result" in state.reason
    assert wallet.drafts == []
    assert relay.relayed == []


def test_missing_result_depends_on_call() -> None:
    pipeline, _, _, relay = _pipeline(_halt())
    aborted = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: True)
    assert isinstance(aborted, Aborted)
    assert relay.relayed == []

    pipeline, _, _, relay = _pipeline(_halt())
    relayed = pipeline.run(_call(expects_result=False), _signers(), MAX_GAS, lambda draft: True)
    assert isinstance(relayed, Relayed)
    assert len(relay.relayed) == 1


@pytest.mark.parametrize("answer", ["", "no", "n", "NO", "yess", "ok", "y es"])
def test_anything_but_yes_cancels(answer: str) -> None:
    pipeline, _, wallet, relay = _pipeline(_halt(True))

    state = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: is_yes(answer))

    assert isinstance(state, Aborted)
    assert state.declined
    assert state.stage == "confirm"
    assert len(wallet.drafts) == 1
    assert wallet.signed == []
    assert relay.relayed == []


@pytest.mark.parametrize("answer", ["yes", "y", "YES", "Y"])
def test_yes_relays(answer: str) -> None:
    pipeline, _, _, relay = _pipeline(_halt(True))
    state = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: is_yes(answer))
    assert isinstance(state, Relayed)
    assert len(relay.relayed) == 1


def test_draft_failure_aborts_before_confirmation() -> None:
    wallet = StubWallet(error=RuntimeError("insufficient GAS for network fee"))
    pipeline, _, _, relay = _pipeline(_halt(True), wallet=wallet)
    asked = []

    state = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: asked.append(draft) or True)

    assert isinstance(state, Aborted)
    assert state.stage == "draft"
    assert isinstance(state.error, DraftBuildFailure)
    assert asked == []
    assert relay.relayed == []


def test_signing_failure_aborts_without_relay() -> None:
    wallet = StubWallet(sign_error=RuntimeError("locked"))
    pipeline, _, _, relay = _pipeline(_halt(True), wallet=wallet)

    state = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: True)

    assert isinstance(state, Aborted)
    assert state.stage == "relay"
    assert isinstance(state.error, SigningFailure)
    assert relay.relayed == []


def test_relay_rejection_is_reported_with_hint() -> None:
    relay = StubRelay(error=RPCError(-500, "InsufficientFunds"))
    pipeline, _, _, _ = _pipeline(_halt(True), relay=relay)

    state = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: True)

    assert isinstance(state, Aborted)
    assert state.stage == "relay"
    assert isinstance(state.error, RelayFailure)
    assert "Hint:" in state.reason


def test_malformed_relay_response_is_a_relay_failure() -> None:
    relay = StubRelay(error=ValueError("Relay returned no transaction hash"))
    pipeline, _, wallet, _ = _pipeline(_halt(True), relay=relay)

    state = pipeline.run(_call(), _signers(), MAX_GAS, lambda draft: True)

    assert isinstance(state, Aborted)
    assert state.stage == "relay"
    assert isinstance(state.error, RelayFailure)
    assert len(wallet.signed) == 1


def test_illegal_transitions_raise_type_error() -> None:
    pipeline, _, _, relay = _pipeline(_halt(True))
    built = pipeline.build_script(Idle(), _call(), MAX_GAS)
    estimated = pipeline.estimate_fee(built, _signers())
    drafted = pipeline.draft(estimated)

    assert isinstance(estimated, FeeEstimated)
    assert isinstance(drafted, Drafted)
    with pytest.raises(TypeError):
        pipeline.relay(drafted)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        pipeline.draft(built)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        pipeline.confirm(estimated, lambda draft: True)  # type: ignore[arg-type]
    assert relay.relayed == []


def test_estimate_requires_signers() -> None:
    pipeline, invoker, _, _ = _pipeline(_halt(True))
    built = pipeline.build_script(Idle(), _call(), MAX_GAS)
    with pytest.raises(InvocationFault):
        pipeline.estimate_fee(built, [])
    assert invoker.calls == []


def test_fee_summary_formats_gas() -> None:
    draft = TransactionDraft(script=b"", signers=_signers(), system_fee=100_000_000, network_fee=1_234_560)
    assert fee_summary(draft) == "Network fee: 0.01234560\tTotal fee: 1.01234560 GAS"
