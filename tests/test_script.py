import hashlib

import pytest

from dvita_client.model import Account
from dvita_client.script import (
    SYSTEM_CONTRACT_CALL,
    ScriptBuildError,
    ScriptBuilder,
    build_contract_call,
)


def _push(value) -> bytes:
    return ScriptBuilder().emit_push(value).to_bytes()


def test_system_contract_call_interop_hash() -> None:
    assert SYSTEM_CONTRACT_CALL == bytes.fromhex("627d5b52")
    assert SYSTEM_CONTRACT_CALL == hashlib.sha256(b"System.Contract.Call").digest()[:4]


@pytest.mark.parametrize(
    "value, expected",
    [
        (-1, "0f"),
        (0, "10"),
        (16, "20"),
        (17, "0011"),
        (-2, "00fe"),
        (127, "007f"),
        (128, "018000"),
        (255, "01ff00"),
        (123456789, "0215cd5b07"),
        (2**40, "030000000000010000"),
    ],
)
def test_integer_pushes_use_smallest_encoding(value: int, expected: str) -> None:
    assert _push(value).hex() == expected


def test_primitive_pushes() -> None:
    assert _push(True) == b"\x08"
    assert _push(False) == b"\x09"
    assert _push(None) == b"\x0b"
    assert _push("abc") == b"\x0c\x03abc"
    assert _push(b"\x01\x02") == b"\x0c\x02\x01\x02"


def test_large_data_push_uses_pushdata2() -> None:
    data = b"\xaa" * 300
    assert _push(data) == b"\x0d" + (300).to_bytes(2, "little") + data


def test_unsupported_argument_is_rejected() -> None:
    with pytest.raises(ScriptBuildError):
        _push(1.5)
    with pytest.raises(ScriptBuildError):
        _push(2**256)


def test_contract_call_layout() -> None:
    contract = Account(bytes(range(20)))
    holder = Account(b"\x11" * 20)

    script = build_contract_call(contract, "balanceOf", [holder])

    expected = (
        b"\x0c\x14" + holder.data  # argument
        + b"\x11\xc0"  # 1 item, PACK
        + b"\x1f"  # CallFlags.All
        + b"\x0c\x09balanceOf"
        + b"\x0c\x14" + contract.data
        + b"\x41" + bytes.fromhex("627d5b52")
    )
    assert script == expected


def test_arguments_are_pushed_in_reverse() -> None:
    contract = Account(bytes(20))
    script = build_contract_call(contract, "transfer", [1, 2])
    assert script.startswith(b"\x12\x11\x12\xc0")


def test_call_without_arguments_uses_empty_array() -> None:
    script = build_contract_call(Account(bytes(20)), "decimals")
    assert script.startswith(b"\xc2\x1f\x0c\x08decimals")


def test_empty_method_is_rejected() -> None:
    with pytest.raises(ScriptBuildError):
        build_contract_call(Account(bytes(20)), "")
