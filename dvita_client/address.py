"""Base58Check address helpers for 20-byte ledger accounts.

An address is ``version byte + account bytes + checksum`` encoded with the
Bitcoin Base58 alphabet, the checksum being the first four bytes of a double
SHA-256 over the versioned payload.
"""

from __future__ import annotations

import hashlib
from typing import List

b58_digits = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


class AddressError(ValueError):
    """Raised when an address string cannot be decoded."""


def _double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def base58_check_encode(payload: bytes, version: int) -> str:
    """Encode bytes into a Base58Check string with the provided version byte."""

    data = bytes([version]) + payload
    address_bytes = data + _double_sha256(data)[:4]

    value = int.from_bytes(address_bytes, "big")
    output: List[str] = []
    while value > 0:
        value, remainder = divmod(value, 58)
        output.append(b58_digits[remainder])
    encoded = "".join(output[::-1])

    leading_zero_count = 0
    for byte in address_bytes:
        if byte == 0:
            leading_zero_count += 1
        else:
            break

    return b58_digits[0] * leading_zero_count + encoded


def base58_check_decode(value: str, version: int) -> bytes:
    """Decode a Base58Check string and return the payload without version."""

    if not value:
        raise AddressError("Address must not be empty")

    number = 0
    for character in value:
        index = b58_digits.find(character)
        if index == -1:
            raise AddressError(f"Invalid Base58 character: {character}")
        number = number * 58 + index

    padding = len(value) - len(value.lstrip(b58_digits[0]))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    decoded = b"\x00" * padding + body
    if len(decoded) < 5:
        raise AddressError(f"Address is too short: {value}")

    data, checksum = decoded[:-4], decoded[-4:]
    if _double_sha256(data)[:4] != checksum:
        raise AddressError(f"Address checksum mismatch: {value}")
    if data[0] != version:
        raise AddressError(
            f"Address version {data[0]:#04x} does not match expected {version:#04x}"
        )
    return data[1:]
