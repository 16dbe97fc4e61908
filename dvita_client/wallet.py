"""Wallet capability backed by a wallet opened on the node.

Key material never leaves the node. When ``invokescript`` is called with
signers while a wallet is open, the node builds the transaction, computes its
network fee and signs it, returning the serialized result in ``tx`` (or a
``pendingsignature`` context when it lacks a key). The client keeps that
payload sealed inside the draft and only hands it out from :meth:`sign`, which
the pipeline calls after the operator confirmed.
"""

from __future__ import annotations

import base64
import binascii
import logging
import struct
from typing import Any, Dict, Sequence

from .config import WalletConfig
from .model import Account, Signer, SignedTransaction, TransactionDraft, VMState, parse_account
from .rpc_client import DVitaRPCClient

logger = logging.getLogger(__name__)

# version, nonce, system fee, network fee, valid-until-block
_TX_HEADER = struct.Struct("<BIqqI")


class WalletError(RuntimeError):
    """Raised when the node wallet cannot build or sign a transaction."""


def read_transaction_header(raw_tx: bytes) -> Dict[str, int]:
    if len(raw_tx) < _TX_HEADER.size:
        raise WalletError("Serialized transaction is shorter than its header")
    version, nonce, system_fee, network_fee, valid_until = _TX_HEADER.unpack_from(raw_tx, 0)
    return {
        "version": version,
        "nonce": nonce,
        "system_fee": system_fee,
        "network_fee": network_fee,
        "valid_until_block": valid_until,
    }


class NodeWallet:
    """Wallet/signing capability served by the node's open wallet."""

    def __init__(
        self,
        rpc: DVitaRPCClient,
        address_version: int,
        config: WalletConfig | None = None,
    ) -> None:
        self.rpc = rpc
        self.address_version = address_version
        self.config = config or WalletConfig()
        self._opened = False

    def _ensure_open(self) -> None:
        if self._opened or not self.config.path:
            return
        if not self.rpc.openwallet(self.config.path, self.config.password or ""):
            raise WalletError(f"Node refused to open wallet {self.config.path}")
        logger.info("Opened wallet %s on the node", self.config.path)
        self._opened = True

    def default_account(self) -> Account:
        self._ensure_open()
        entries = self.rpc.listaddress() or []
        for entry in entries:
            if entry.get("haskey") and not entry.get("watchonly"):
                return parse_account(entry["address"], self.address_version)
        raise WalletError("The open wallet holds no account with a private key")

    def make_transaction(
        self,
        script: bytes,
        signers: Sequence[Signer],
        *,
        system_fee: int,
        max_gas: int,
    ) -> TransactionDraft:
        if not signers:
            raise WalletError("A transaction needs at least one signer")
        self._ensure_open()
        result: Dict[str, Any] = self.rpc.invokescript(
            script, [signer.to_rpc() for signer in signers]
        ) or {}
        if not isinstance(result, dict):
            raise WalletError(f"Node returned a malformed invocation result: {result!r}")

        if str(result.get("state", "")).startswith(VMState.FAULT.value):
            raise WalletError(
                f"Invocation faulted while building the transaction: {result.get('exception')}"
            )
        if "pendingsignature" in result:
            raise WalletError("The open wallet cannot sign for every signer of this transaction")
        encoded = result.get("tx")
        if not encoded:
            reason = result.get("exception") or "no wallet is open on the node"
            raise WalletError(f"Node did not build a transaction: {reason}")
        try:
            raw_tx = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise WalletError("Node returned a transaction that is not valid base64") from exc

        header = read_transaction_header(raw_tx)
        if header["system_fee"] > max_gas:
            raise WalletError(
                f"System fee {header['system_fee']} exceeds the gas ceiling {max_gas}"
            )
        if header["system_fee"] < system_fee:
            logger.warning(
                "Node priced the system fee at %s, below the estimate of %s",
                header["system_fee"],
                system_fee,
            )
        return TransactionDraft(
            script=script,
            signers=list(signers),
            system_fee=header["system_fee"],
            network_fee=header["network_fee"],
            valid_until_block=header["valid_until_block"],
            payload=raw_tx,
        )

    def sign(self, draft: TransactionDraft) -> SignedTransaction:
        if draft.payload is None:
            raise WalletError("Draft was not built by the node wallet; nothing to sign")
        return SignedTransaction(raw=draft.payload, signers=tuple(draft.signers))
