"""Domain models for the DVITA client.

Accounts are stored the way the ledger serializes them (little-endian script
hash bytes) and rendered the way operators read them (``0x`` + big-endian hex
or a Base58Check address).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, List, Sequence

from .address import AddressError, base58_check_decode, base58_check_encode

ACCOUNT_SIZE = 20


@dataclass(frozen=True)
class Account:
    """20-byte ledger participant identifier (script hash)."""

    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.data, (bytes, bytearray)) or len(self.data) != ACCOUNT_SIZE:
            raise ValueError(f"Accounts are exactly {ACCOUNT_SIZE} bytes")
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def zero(cls) -> "Account":
        return cls(b"\x00" * ACCOUNT_SIZE)

    @classmethod
    def from_hex(cls, value: str) -> "Account":
        """Parse the big-endian ``0x``-prefixed (or bare) hex form."""

        text = value.strip()
        if text.lower().startswith("0x"):
            text = text[2:]
        if len(text) != ACCOUNT_SIZE * 2:
            raise ValueError(f"Script hash must be {ACCOUNT_SIZE * 2} hex characters: {value}")
        return cls(bytes.fromhex(text)[::-1])

    @classmethod
    def from_address(cls, address: str, version: int) -> "Account":
        payload = base58_check_decode(address.strip(), version)
        if len(payload) != ACCOUNT_SIZE:
            raise AddressError(f"Address does not carry a {ACCOUNT_SIZE}-byte account: {address}")
        return cls(payload)

    def to_address(self, version: int) -> str:
        return base58_check_encode(self.data, version)

    def is_zero(self) -> bool:
        return not any(self.data)

    def __str__(self) -> str:
        return "0x" + self.data[::-1].hex()


def parse_account(value: str, address_version: int) -> Account:
    """Parse an operator-supplied address or script hash.

    The Base58Check address form is tried first, then the hex script hash.
    """

    text = value.strip()
    try:
        return Account.from_address(text, address_version)
    except AddressError:
        pass
    try:
        return Account.from_hex(text)
    except ValueError as exc:
        raise ValueError(f"Not a valid address or script hash: {value}") from exc


class WitnessScope(enum.IntFlag):
    """Which contracts may consume a signer's witness."""

    NONE = 0x00
    CALLED_BY_ENTRY = 0x01
    CUSTOM_CONTRACTS = 0x10
    CUSTOM_GROUPS = 0x20
    WITNESS_RULES = 0x40
    GLOBAL = 0x80

    def to_rpc(self) -> str:
        """Render the flag the way the node's JSON parser expects it."""

        if self == WitnessScope.NONE:
            return "None"
        names = {
            WitnessScope.CALLED_BY_ENTRY: "CalledByEntry",
            WitnessScope.CUSTOM_CONTRACTS: "CustomContracts",
            WitnessScope.CUSTOM_GROUPS: "CustomGroups",
            WitnessScope.WITNESS_RULES: "WitnessRules",
            WitnessScope.GLOBAL: "Global",
        }
        return ", ".join(label for flag, label in names.items() if flag in self)


@dataclass(frozen=True)
class Signer:
    account: Account
    scopes: WitnessScope = WitnessScope.CALLED_BY_ENTRY
    allowed_contracts: tuple[Account, ...] = ()

    def to_rpc(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "account": str(self.account),
            "scopes": self.scopes.to_rpc(),
        }
        if WitnessScope.CUSTOM_CONTRACTS in self.scopes:
            payload["allowedcontracts"] = [str(contract) for contract in self.allowed_contracts]
        return payload


class VMState(str, enum.Enum):
    NONE = "NONE"
    HALT = "HALT"
    FAULT = "FAULT"
    BREAK = "BREAK"


@dataclass(frozen=True)
class InvocationOutcome:
    """Result of a read-only (test) invocation."""

    state: VMState
    gas_consumed: int
    stack: tuple[Any, ...] = ()
    exception: str | None = None

    @property
    def success(self) -> bool:
        return self.state is VMState.HALT

    @property
    def result(self) -> Any:
        """Top of the result stack, ``None`` when absent or null."""

        if not self.stack:
            return None
        return self.stack[-1]


@dataclass(frozen=True)
class AssetDescriptor:
    contract: Account
    decimals: int
    display_name: str
    symbol: str | None = None


@dataclass
class TransactionDraft:
    """A built transaction awaiting operator confirmation.

    ``payload`` is the serialized transaction as the node wallet built it,
    witnesses included. It is opaque to the pipeline and only leaves the draft
    through the wallet's ``sign``, which the pipeline calls after confirmation.
    """

    script: bytes
    signers: List[Signer]
    system_fee: int
    network_fee: int
    valid_until_block: int | None = None
    payload: bytes | None = field(default=None, repr=False)

    @property
    def sender(self) -> Account:
        return self.signers[0].account

    @property
    def total_fee(self) -> int:
        return self.system_fee + self.network_fee


@dataclass(frozen=True)
class SignedTransaction:
    raw: bytes
    signers: Sequence[Signer]
