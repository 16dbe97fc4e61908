"""Invocation script emission for dynamic contract calls.

Only the subset of the VM instruction set needed to call a contract method
with primitive arguments is covered: integer and data pushes, booleans, null,
array packing and the ``System.Contract.Call`` syscall.
"""

from __future__ import annotations

import hashlib
from typing import Any, Sequence

from .model import Account

PUSHINT8 = 0x00
PUSHINT16 = 0x01
PUSHINT32 = 0x02
PUSHINT64 = 0x03
PUSHINT128 = 0x04
PUSHINT256 = 0x05
PUSHT = 0x08
PUSHF = 0x09
PUSHNULL = 0x0B
PUSHDATA1 = 0x0C
PUSHDATA2 = 0x0D
PUSHDATA4 = 0x0E
PUSHM1 = 0x0F
PUSH0 = 0x10
SYSCALL = 0x41
PACK = 0xC0
NEWARRAY0 = 0xC2

CALL_FLAGS_ALL = 0x0F

_INT_WIDTHS = (
    (1, PUSHINT8),
    (2, PUSHINT16),
    (4, PUSHINT32),
    (8, PUSHINT64),
    (16, PUSHINT128),
    (32, PUSHINT256),
)


class ScriptBuildError(ValueError):
    """Raised when an argument cannot be emitted into a script."""


def interop_hash(name: str) -> bytes:
    """Return the 4-byte syscall identifier for an interop service name."""

    return hashlib.sha256(name.encode("ascii")).digest()[:4]


SYSTEM_CONTRACT_CALL = interop_hash("System.Contract.Call")


class ScriptBuilder:
    """Accumulates VM instructions into a script."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def emit(self, opcode: int, operand: bytes = b"") -> "ScriptBuilder":
        self._buffer.append(opcode)
        self._buffer.extend(operand)
        return self

    def emit_push_int(self, value: int) -> "ScriptBuilder":
        if -1 <= value <= 16:
            return self.emit(PUSH0 + value if value >= 0 else PUSHM1)
        for width, opcode in _INT_WIDTHS:
            try:
                encoded = value.to_bytes(width, "little", signed=True)
            except OverflowError:
                continue
            return self.emit(opcode, encoded)
        raise ScriptBuildError(f"Integer {value} does not fit in 256 bits")

    def emit_push_bytes(self, data: bytes) -> "ScriptBuilder":
        length = len(data)
        if length < 0x100:
            return self.emit(PUSHDATA1, bytes([length]) + data)
        if length < 0x10000:
            return self.emit(PUSHDATA2, length.to_bytes(2, "little") + data)
        return self.emit(PUSHDATA4, length.to_bytes(4, "little") + data)

    def emit_push(self, value: Any) -> "ScriptBuilder":
        # bool first: it is also an int.
        if value is None:
            return self.emit(PUSHNULL)
        if isinstance(value, bool):
            return self.emit(PUSHT if value else PUSHF)
        if isinstance(value, int):
            return self.emit_push_int(value)
        if isinstance(value, Account):
            return self.emit_push_bytes(value.data)
        if isinstance(value, str):
            return self.emit_push_bytes(value.encode("utf-8"))
        if isinstance(value, (bytes, bytearray)):
            return self.emit_push_bytes(bytes(value))
        if isinstance(value, (list, tuple)):
            return self.emit_array(value)
        raise ScriptBuildError(f"Unsupported script argument type: {type(value).__name__}")

    def emit_array(self, items: Sequence[Any]) -> "ScriptBuilder":
        if not items:
            return self.emit(NEWARRAY0)
        for item in reversed(items):
            self.emit_push(item)
        self.emit_push_int(len(items))
        return self.emit(PACK)

    def emit_syscall(self, service: bytes) -> "ScriptBuilder":
        return self.emit(SYSCALL, service)

    def emit_dynamic_call(
        self,
        contract: Account,
        method: str,
        args: Sequence[Any] = (),
        call_flags: int = CALL_FLAGS_ALL,
    ) -> "ScriptBuilder":
        self.emit_array(list(args))
        self.emit_push_int(call_flags)
        self.emit_push(method)
        self.emit_push(contract)
        return self.emit_syscall(SYSTEM_CONTRACT_CALL)

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)


def build_contract_call(contract: Account, method: str, args: Sequence[Any] = ()) -> bytes:
    """Return the script invoking ``contract.method(*args)``."""

    if not method:
        raise ScriptBuildError("Contract method name must not be empty")
    return ScriptBuilder().emit_dynamic_call(contract, method, args).to_bytes()
