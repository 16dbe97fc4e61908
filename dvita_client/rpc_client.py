"""Typed JSON-RPC client for DVITA ledger nodes.

The client backs the resolver, the asset lookups and the transaction pipeline.
It is built from the ``rpc`` section returned by ``load_client_config``.
No ledger logic is implemented here; the client simply forwards well-typed
requests and surfaces errors clearly.
"""

from __future__ import annotations

import base64
import json
import logging
import uuid
from typing import Any, Dict, Optional, Sequence

import requests
from requests import RequestException, Response

from .config import ConfigurationError, RPCConfig

logger = logging.getLogger(__name__)

__all__ = [
    "ConfigurationError",
    "DVitaRPCClient",
    "RPCError",
    "RPCTransportError",
    "format_rpc_hint",
]


class RPCError(RuntimeError):
    """Raised when the node responds with a JSON-RPC error object."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a human-friendly hint for common node JSON-RPC errors.

    Only a handful of well-known failure modes are recognised; callers should
    still log the structured error body.
    """

    if error_obj is None:
        return None

    code = None
    message = ""
    if isinstance(error_obj, RPCError):
        code = error_obj.code
        message = error_obj.message
    elif isinstance(error_obj, dict):
        code = error_obj.get("code")
        message = str(error_obj.get("message", ""))

    lowered = message.lower()
    if "insufficientfunds" in lowered or "insufficient funds" in lowered:
        return (
            "The sender cannot cover the transfer plus fees. Check the balance of the first signer "
            "and retry; the snapshot may have changed since the fee was estimated."
        )
    if "alreadyexists" in lowered:
        return "The node already knows this transaction; it was relayed earlier."
    if "policyfail" in lowered:
        return "The node's policy rejected the transaction (blocked account or fee below policy)."
    if "expired" in lowered:
        return "The transaction expired before relay; reissue the command to build a fresh one."
    if code == -400 or "access denied" in lowered:
        return (
            "No wallet is open on the node. Configure wallet.path/wallet.password "
            "(or DVITA_WALLET_PATH/DVITA_WALLET_PASSWORD) so the client can open it."
        )
    if code == -100 or "unknown contract" in lowered:
        return "The node does not know this contract hash; check the token or contract id."
    return None


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(
        self, message: str, status_code: int | None = None, retryable: bool = False
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class DVitaRPCClient:
    """Typed JSON-RPC client for DVITA (Neo N3 family) nodes.

    The client is intentionally thin: each helper maps directly to an RPC
    method exposed by the node's RpcServer plugin and returns the parsed JSON
    response. Scripts and transactions travel base64-encoded, as the node
    expects.
    """

    def __init__(self, config: RPCConfig) -> None:
        self.config = config
        self._session = requests.Session()
        self._url = config.base_url

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        auth = None
        if self.config.user and self.config.password:
            auth = (self.config.user, self.config.password)
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self._url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                auth=auth,
                timeout=self.config.timeout,
            )
        except requests.Timeout as exc:
            logger.error(
                "RPC call %s timed out after %ss",
                method,
                self.config.timeout,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"RPC call {method} timed out after {self.config.timeout}s; "
                "the node may be busy.",
                retryable=True,
            ) from exc
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure your node is reachable and DVITA_RPC_* variables "
                "(or ~/.dvita.yaml) point to the right host and port.",
                retryable=True,
            ) from exc
        try:
            self._raise_for_status(response)
        except requests.HTTPError as exc:
            raise RPCTransportError(
                "RPC server returned an HTTP error; check the URL, authentication, and DVITA_RPC_* settings.",
                status_code=response.status_code,
            ) from exc
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if result.get("error"):
            error = result["error"]
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if not response.ok:
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            logger.error("RPC error body: %s", response.text)
            if response.status_code == 401:
                raise RPCTransportError(
                    "Unauthorized (401). Ensure DVITA_RPC_USER/DVITA_RPC_PASSWORD (or your .dvita.yaml) contain valid credentials.",
                    status_code=response.status_code,
                )
        response.raise_for_status()

    # Convenience wrappers -------------------------------------------------

    def getcontractstate(self, contract: str) -> Dict[str, Any]:
        return self.call("getcontractstate", [contract])

    def invokescript(
        self, script: bytes, signers: Sequence[Dict[str, Any]] | None = None
    ) -> Dict[str, Any]:
        """Run ``script`` read-only against the node's current snapshot."""

        params: list[Any] = [base64.b64encode(script).decode("ascii")]
        if signers:
            params.append(list(signers))
        return self.call("invokescript", params)

    def sendrawtransaction(self, raw_tx: bytes) -> Dict[str, Any]:
        return self.call("sendrawtransaction", [base64.b64encode(raw_tx).decode("ascii")])

    def openwallet(self, path: str, password: str) -> bool:
        return bool(self.call("openwallet", [path, password]))

    def listaddress(self) -> list[Dict[str, Any]]:
        return self.call("listaddress")
