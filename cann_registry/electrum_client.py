"""Typed JSON-RPC client for Electrum-protocol indexers.

The client speaks the Electrum Cash protocol method set (``blockchain.*``)
as JSON-RPC over HTTP, the transport exposed by HTTP bridges in front of
Fulcrum-style servers. Each helper maps directly to one protocol method; the
``get_*`` methods adapt the results to :class:`~cann_registry.ledger.LedgerProvider`.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, List, Optional

import requests
from requests import RequestException, Response

from .address import address_to_locking_bytecode, script_to_scripthash
from .config import ElectrumConfig, RegistryConfig, load_registry_config
from .model import UTXO, HistoryEntry

logger = logging.getLogger(__name__)

TOKEN_FILTER = "include_tokens"


class RPCError(RuntimeError):
    """Raised when the Electrum server responds with a protocol error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a short remediation hint for common Electrum errors."""

    if error_obj is None:
        return None

    message = ""
    if isinstance(error_obj, RPCError):
        message = error_obj.message
    elif isinstance(error_obj, dict):
        message = str(error_obj.get("message", ""))
    lowered = message.lower()

    if "unknown method" in lowered or ("not found" in lowered and "method" in lowered):
        return (
            "The server does not implement this method. Token-aware listunspent and "
            "blockchain.transaction.get_height require a CashTokens-capable Fulcrum server."
        )
    if "no such mempool or blockchain transaction" in lowered:
        return "The transaction is unknown to the server; it may have been dropped from the mempool."
    if "invalid scripthash" in lowered:
        return "The queried address could not be converted to a script hash; check the network prefix."
    return None


class ElectrumClient:
    """Typed JSON-RPC client for Electrum-protocol servers.

    The client is intentionally thin: helpers forward requests and surface
    errors without retrying. The endpoint URL and timeout come from
    :class:`~cann_registry.config.ElectrumConfig`; ``CANN_ELECTRUM_URL``
    overrides the config file.
    """

    def __init__(self, config: ElectrumConfig) -> None:
        self.config = config
        self._session = requests.Session()
        self._url = config.url

    @classmethod
    def from_env(cls) -> "ElectrumClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_registry_config().electrum)

    @classmethod
    def from_registry_config(cls, config: RegistryConfig) -> "ElectrumClient":
        return cls(config.electrum)

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self._url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self.config.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "Electrum connection failed. Ensure the server is reachable and CANN_ELECTRUM_URL "
                "(or the 'electrum' section of ~/.cann_registry.yaml) points to it."
            ) from exc
        try:
            self._raise_for_status(response)
        except requests.HTTPError as exc:
            raise RPCTransportError(
                "Electrum endpoint returned an HTTP error; check the URL and CANN_ELECTRUM_URL.",
                status_code=response.status_code,
            ) from exc
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("Electrum endpoint returned malformed JSON") from exc
        if result.get("error"):
            error = result["error"]
            if not isinstance(error, dict):
                error = {"code": -1, "message": str(error)}
            rpc_error = RPCError(error.get("code", -1), error.get("message", "unknown"))
            hint = format_rpc_hint(rpc_error)
            if hint:
                logger.info("%s", hint)
            raise rpc_error
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if not response.ok:
            try:
                err_body = response.json()
            except ValueError:
                err_body = response.text
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            logger.error("RPC error body: %s", err_body)
        response.raise_for_status()

    # Protocol wrappers ----------------------------------------------------

    def scripthash_listunspent(self, scripthash: str) -> list[dict[str, Any]]:
        return self.call("blockchain.scripthash.listunspent", [scripthash, TOKEN_FILTER]) or []

    def scripthash_get_history(self, scripthash: str) -> list[dict[str, Any]]:
        return self.call("blockchain.scripthash.get_history", [scripthash]) or []

    def transaction_get(self, txid: str) -> str:
        return self.call("blockchain.transaction.get", [txid, False])

    def transaction_get_height(self, txid: str) -> int:
        return int(self.call("blockchain.transaction.get_height", [txid]))

    # LedgerProvider -------------------------------------------------------

    def get_unspent_outputs(self, address: str) -> List[UTXO]:
        locking_bytecode = address_to_locking_bytecode(address)
        entries = self.scripthash_listunspent(script_to_scripthash(locking_bytecode))
        return [UTXO.from_electrum(entry, locking_bytecode) for entry in entries]

    def get_transaction(self, txid: str) -> str:
        return self.transaction_get(txid)

    def get_address_history(self, address: str) -> List[HistoryEntry]:
        scripthash = script_to_scripthash(address_to_locking_bytecode(address))
        return self.get_scripthash_history(scripthash)

    def get_transaction_height(self, txid: str) -> int:
        return self.transaction_get_height(txid)

    def get_scripthash_history(self, scripthash: str) -> List[HistoryEntry]:
        return [HistoryEntry.from_electrum(entry) for entry in self.scripthash_get_history(scripthash)]
