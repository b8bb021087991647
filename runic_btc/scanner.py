"""Block scanner reporting rune activity.

The scanner walks blocks fetched through the node client and runs every
transaction through :class:`~runic_btc.runes.RuneTransactionDecoder`. Each
transaction decodes independently, so results never depend on scan order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .rpc_client import BitcoinRPCClient
from .runes.classifier import RuneTransactionDecoder, RuneTxDetails
from .transaction import Transaction, TransactionDecodeError

logger = logging.getLogger(__name__)


@dataclass
class RuneScanConfig:
    """Block range and filters for a scan."""

    start_height: Optional[int]
    end_height: Optional[int]
    limit: Optional[int] = None
    include_cenotaphs: bool = True


@dataclass
class ScannedRuneTx:
    """Rune activity found at a given block position."""

    height: Optional[int]
    position: int
    details: RuneTxDetails

    def to_dict(self) -> Dict[str, Any]:
        data = self.details.to_dict()
        data["height"] = self.height
        data["position"] = self.position
        return data


class RuneScanner:
    """Scan blocks or single transactions for runestones."""

    def __init__(self, rpc_client: BitcoinRPCClient) -> None:
        self.rpc_client = rpc_client
        self.decoder = RuneTransactionDecoder()

    def _iter_block_range(self, config: RuneScanConfig) -> Iterable[Dict[str, Any]]:
        best_height = self.rpc_client.get_best_height()
        start_height = config.start_height if config.start_height is not None else best_height
        end_height = config.end_height if config.end_height is not None else best_height
        if start_height > end_height:
            raise ValueError(f"start height {start_height} is above end height {end_height}")

        for height in range(start_height, end_height + 1):
            yield self.rpc_client.getblock_by_height(height)

    def scan_block(self, block_json: Dict[str, Any], config: RuneScanConfig) -> List[ScannedRuneTx]:
        """Decode every transaction in a verbosity=2 block payload."""

        found: List[ScannedRuneTx] = []
        height = block_json.get("height")

        for position, tx_json in enumerate(block_json.get("tx", [])):
            if config.limit is not None and len(found) >= config.limit:
                break
            try:
                transaction = Transaction.from_verbose_json(tx_json)
            except TransactionDecodeError:
                logger.exception(
                    "Skipping undecodable transaction %s at height %s", tx_json.get("txid"), height
                )
                continue

            details = self.decoder.decode_tx(transaction)
            if details is None:
                continue
            if details.rune_tx.kind == "cenotaph" and not config.include_cenotaphs:
                continue
            found.append(ScannedRuneTx(height=height, position=position, details=details))

        logger.debug("Block %s: %d rune transaction(s)", height, len(found))
        return found

    def scan_range(self, config: RuneScanConfig) -> List[ScannedRuneTx]:
        """Scan a block range, stopping once ``config.limit`` results are found."""

        results: List[ScannedRuneTx] = []
        for block_json in self._iter_block_range(config):
            results.extend(self.scan_block(block_json, config))
            if config.limit is not None and len(results) >= config.limit:
                return results[: config.limit]
        return results

    def scan_tx(self, txid: str) -> Optional[RuneTxDetails]:
        """Fetch and decode a single transaction."""

        return self.decoder.decode_tx(self.rpc_client.fetch_transaction(txid))
