import pytest

from dvita_client.address import AddressError, base58_check_decode, base58_check_encode
from dvita_client.model import (
    Account,
    InvocationOutcome,
    Signer,
    TransactionDraft,
    VMState,
    WitnessScope,
    parse_account,
)

NAMING_ADDRESS = "NVhCWHzmB4pRKsLzaBSyU4uxddgsvUsX9V"
NAMING_HASH = "0x297801f069dd9fa340f8abb7274b2ae40ff8466b"
VERSION = 0x35


def test_address_and_script_hash_describe_the_same_account() -> None:
    from_address = Account.from_address(NAMING_ADDRESS, VERSION)
    from_hash = Account.from_hex(NAMING_HASH)

    assert from_address == from_hash
    assert str(from_address) == NAMING_HASH
    assert from_hash.to_address(VERSION) == NAMING_ADDRESS


def test_account_stores_little_endian_bytes() -> None:
    account = Account.from_hex("0x" + "00" * 19 + "ff")
    assert account.data[0] == 0xFF
    assert str(account).endswith("ff")


def test_base58_round_trip_preserves_leading_zero_bytes() -> None:
    payload = b"\x00\x00" + bytes(range(1, 19))
    encoded = base58_check_encode(payload, VERSION)
    assert base58_check_decode(encoded, VERSION) == payload


def test_base58_checksum_mismatch_is_rejected() -> None:
    tampered = NAMING_ADDRESS[:-1] + ("W" if NAMING_ADDRESS[-1] != "W" else "X")
    with pytest.raises(AddressError):
        base58_check_decode(tampered, VERSION)


def test_base58_version_mismatch_is_rejected() -> None:
    with pytest.raises(AddressError):
        base58_check_decode(NAMING_ADDRESS, 0x17)


def test_base58_rejects_foreign_characters() -> None:
    with pytest.raises(AddressError):
        base58_check_decode("N0OIl", VERSION)


@pytest.mark.parametrize(
    "value",
    [NAMING_ADDRESS, NAMING_HASH, NAMING_HASH[2:], f"  {NAMING_HASH.upper().replace('0X', '0x')}  "],
)
def test_parse_account_accepts_address_and_hash_forms(value: str) -> None:
    assert parse_account(value, VERSION) == Account.from_hex(NAMING_HASH)


@pytest.mark.parametrize("value", ["", "alice", "0x1234", "@bob", "zz" * 20])
def test_parse_account_rejects_garbage(value: str) -> None:
    with pytest.raises(ValueError):
        parse_account(value, VERSION)


def test_account_requires_twenty_bytes() -> None:
    with pytest.raises(ValueError):
        Account(b"\x01" * 19)
    assert Account.zero().is_zero()
    assert not Account(b"\x01" * 20).is_zero()


def test_witness_scope_rpc_names() -> None:
    assert WitnessScope.NONE.to_rpc() == "None"
    assert WitnessScope.GLOBAL.to_rpc() == "Global"
    combined = WitnessScope.CALLED_BY_ENTRY | WitnessScope.CUSTOM_CONTRACTS
    assert combined.to_rpc() == "CalledByEntry, CustomContracts"


def test_signer_payload_lists_allowed_contracts_only_for_custom_scope() -> None:
    account = Account(b"\x01" * 20)
    contract = Account(b"\x02" * 20)

    custom = Signer(
        account,
        WitnessScope.CALLED_BY_ENTRY | WitnessScope.CUSTOM_CONTRACTS,
        (contract,),
    )
    assert custom.to_rpc() == {
        "account": "0x" + "01" * 20,
        "scopes": "CalledByEntry, CustomContracts",
        "allowedcontracts": ["0x" + "02" * 20],
    }
    assert "allowedcontracts" not in Signer(account).to_rpc()


def test_invocation_outcome_result_is_top_of_stack() -> None:
    outcome = InvocationOutcome(VMState.HALT, 10, (1, b"\x02"))
    assert outcome.success
    assert outcome.result == b"\x02"
    assert InvocationOutcome(VMState.FAULT, 10).result is None
    assert not InvocationOutcome(VMState.FAULT, 10).success


def test_draft_sender_and_total_fee() -> None:
    sender = Account(b"\x03" * 20)
    draft = TransactionDraft(
        script=b"\x40",
        signers=[Signer(sender), Signer(Account(b"\x04" * 20))],
        system_fee=1_000,
        network_fee=234,
        payload=b"secret",
    )
    assert draft.sender == sender
    assert draft.total_fee == 1_234
    assert "secret" not in repr(draft)
