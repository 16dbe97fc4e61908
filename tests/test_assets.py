import pytest

from dvita_client.assets import AssetLookup, AssetLookupError
from dvita_client.model import Account, InvocationOutcome, VMState
from dvita_client.rpc_client import RPCError

TOKEN = Account(b"\x07" * 20)


class StubRPC:
    def __init__(self, state=None, error: Exception | None = None) -> None:
        self.state = state
        self.error = error

    def getcontractstate(self, contract):
        if self.error is not None:
            raise self.error
        return self.state


class StubInvoker:
    def __init__(self, outcome: InvocationOutcome) -> None:
        self.outcome = outcome

    def invoke_script(self, script, signers=None):
        return self.outcome


def _lookup(value=None, state: VMState = VMState.HALT, rpc: StubRPC | None = None) -> AssetLookup:
    stack = () if value is None else (value,)
    invoker = StubInvoker(InvocationOutcome(state, 1_000, stack, "boom" if state is VMState.FAULT else None))
    return AssetLookup(rpc or StubRPC({"manifest": {"name": "Token"}}), invoker)  # type: ignore[arg-type]


def test_describe_collects_metadata() -> None:
    lookup = _lookup(2)
    lookup.symbol = lambda token: "TOK"  # type: ignore[method-assign]

    descriptor = lookup.describe(TOKEN)

    assert descriptor.contract == TOKEN
    assert descriptor.decimals == 2
    assert descriptor.display_name == "Token"
    assert descriptor.symbol == "TOK"


def test_decimals_must_be_a_non_negative_integer() -> None:
    with pytest.raises(AssetLookupError):
        _lookup(-1).decimals(TOKEN)
    with pytest.raises(AssetLookupError):
        _lookup(["x"]).decimals(TOKEN)
    assert _lookup(b"\x08").decimals(TOKEN) == 8


def test_faulted_or_empty_reads_are_errors() -> None:
    with pytest.raises(AssetLookupError):
        _lookup(8, state=VMState.FAULT).decimals(TOKEN)
    with pytest.raises(AssetLookupError):
        _lookup(None).total_supply(TOKEN)


def test_malformed_invocation_result_is_a_lookup_error() -> None:
    class MalformedInvoker:
        def invoke_script(self, script, signers=None):
            raise ValueError("Node could not return the result stack: 'error: invalid operation'")

    lookup = AssetLookup(StubRPC(), MalformedInvoker())  # type: ignore[arg-type]
    with pytest.raises(AssetLookupError, match="decimals"):
        lookup.decimals(TOKEN)


def test_symbol_must_be_text() -> None:
    assert _lookup(b"GAS").symbol(TOKEN) == "GAS"
    with pytest.raises(AssetLookupError):
        _lookup(b"\xff\xfe").symbol(TOKEN)


def test_unknown_contract_name() -> None:
    lookup = _lookup(2, rpc=StubRPC(error=RPCError(-100, "Unknown contract")))
    with pytest.raises(AssetLookupError, match="Contract hash not exist"):
        lookup.contract_name(TOKEN)

    with pytest.raises(AssetLookupError):
        _lookup(2, rpc=StubRPC({"manifest": {}})).contract_name(TOKEN)
