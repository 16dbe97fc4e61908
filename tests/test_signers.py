import pytest

from dvita_client.model import Account, WitnessScope
from dvita_client.signers import build_signer_set, order_signer_accounts

SENDER = Account(b"\x01" * 20)
ALICE = Account(b"\x02" * 20)
BOB = Account(b"\x03" * 20)
TOKEN = Account(b"\x0a" * 20)
GAS = Account(b"\x0b" * 20)


def test_sender_alone() -> None:
    assert order_signer_accounts(SENDER) == [SENDER]
    assert order_signer_accounts(SENDER, []) == [SENDER]


def test_sender_moves_to_front_without_duplicates() -> None:
    assert order_signer_accounts(SENDER, [ALICE, SENDER, BOB]) == [SENDER, ALICE, BOB]


def test_relative_order_of_extra_signers_is_kept() -> None:
    assert order_signer_accounts(SENDER, [BOB, ALICE, BOB]) == [SENDER, BOB, ALICE]


def test_signer_set_scopes_and_allow_list() -> None:
    signers = build_signer_set(SENDER, [ALICE], [TOKEN, GAS, TOKEN])

    assert [signer.account for signer in signers] == [SENDER, ALICE]
    for signer in signers:
        assert signer.scopes == WitnessScope.CALLED_BY_ENTRY | WitnessScope.CUSTOM_CONTRACTS
        assert signer.allowed_contracts == (TOKEN, GAS)


def test_signer_set_needs_allowed_contracts() -> None:
    with pytest.raises(ValueError):
        build_signer_set(SENDER, None, [])
