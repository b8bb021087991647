"""Typed JSON-RPC client for Bitcoin Core nodes.

The node is only a source of raw transactions and blocks; no rune logic runs
here. Configuration is shared via ``load_rpc_config`` so CLI commands and
library callers reuse a consistent connection surface.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response

from .config import RPCConfig, load_rpc_config
from .transaction import Transaction

logger = logging.getLogger(__name__)


class RPCError(RuntimeError):
    """Raised when the node responds with an RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BitcoinRPCClient:
    """Thin JSON-RPC client for Bitcoin Core compatible nodes.

    Each helper maps directly to an RPC method exposed by the node and returns
    the parsed JSON response. Connection details come from ``BTC_RPC_*``
    environment variables or the ``rpc`` section of ``~/.runic.yaml``.
    """

    def __init__(self, config: RPCConfig, timeout: float = 30.0) -> None:
        self.config = config
        self.timeout = timeout
        self._session = requests.Session()
        self._url = config.base_url

    @classmethod
    def from_env(cls) -> "BitcoinRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_rpc_config())

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "1.0",
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
                auth=(self.config.user, self.config.password),
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure your Bitcoin node is reachable, authentication is valid, "
                "and BTC_RPC_* variables (or ~/.runic.yaml) point to the right host and port."
            ) from exc

        result = self._parse_response(response)
        if result.get("error"):
            error = result["error"]
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        return result.get("result")

    def _parse_response(self, response: Response) -> Dict[str, Any]:
        # Bitcoin Core reports JSON-RPC errors with HTTP 500 and a JSON body;
        # only fail on status when the body carries no structured error.
        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok and not (isinstance(body, dict) and body.get("error")):
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            if response.status_code == 401:
                raise RPCTransportError(
                    "Unauthorized (401). Ensure BTC_RPC_USER/BTC_RPC_PASSWORD (or your .runic.yaml) contain valid credentials.",
                    status_code=response.status_code,
                )
            raise RPCTransportError(
                "RPC server returned an HTTP error; check the URL, authentication, and BTC_RPC_* settings.",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            logger.debug("RPC JSON parse error: %s", response.text)
            raise RPCTransportError("RPC server returned malformed JSON")
        return body

    # Convenience wrappers -------------------------------------------------

    def getblockcount(self) -> int:
        return int(self.call("getblockcount"))

    def getblockhash(self, height: int) -> str:
        return self.call("getblockhash", [height])

    def getblock(self, block_hash: str, verbosity: int = 1) -> Dict[str, Any]:
        return self.call("getblock", [block_hash, verbosity])

    def getrawtransaction(self, txid: str, verbose: bool = False) -> Any:
        return self.call("getrawtransaction", [txid, int(verbose)])

    def getblock_by_height(self, height: int) -> Dict[str, Any]:
        """Retrieve a block JSON payload by height using verbosity=2."""

        block_hash = self.getblockhash(height)
        return self.getblock(block_hash, verbosity=2)

    def get_best_height(self) -> int:
        """Return the current best chain height."""

        return self.getblockcount()

    def fetch_transaction(self, txid: str) -> Transaction:
        """Fetch ``txid`` from the node and deserialize it."""

        raw_hex = self.getrawtransaction(txid)
        if not isinstance(raw_hex, str):
            raise RPCTransportError(f"getrawtransaction returned no hex for {txid}")
        return Transaction.from_hex(raw_hex)
