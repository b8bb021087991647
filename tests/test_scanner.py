from typing import Any, Dict, List

import pytest

from runic_btc.runes.classifier import CenotaphDetails, MintDetails
from runic_btc.runes.model import RuneId
from runic_btc.scanner import RuneScanConfig, RuneScanner
from runic_btc.transaction import Transaction

MINT_TX_HEX = (
    "02000000000101e1abe66835908ec28bab86af8914ea85458993da13822e326a3bb1c159dfd009"
    "0200000000fdffffff0300000000000000000a6a5d0714c0a23314a3022202000000000000225120"
    "6bda50e97f9e9107d24774e12099e6ef6fb11047f52949e0cae98ae4aa0c8f8676b9000000000000"
    "225120528996bda1de76858fdecd34168c331e12a64f415427ec060ae1df72b4aaaafb0140f4def7"
    "a7945dbfdeecc285163a794bd624c603261a02a6a87e9ccc6d56ee1c6b9fe8e48c0bd30e540ca173"
    "27d6b0be3b215f5b8edee32b824aa42add2a283b7c00000000"
)


def _script_tx(txid: str, script_hex: str) -> Dict[str, Any]:
    return {"txid": txid, "vout": [{"n": 0, "value": 0, "scriptPubKey": {"hex": script_hex}}]}


class StubRPC:
    def __init__(self, blocks: Dict[int, Dict[str, Any]]) -> None:
        self.blocks = blocks
        self.requested: List[int] = []

    def get_best_height(self) -> int:
        return max(self.blocks)

    def getblock_by_height(self, height: int) -> Dict[str, Any]:
        self.requested.append(height)
        return self.blocks[height]

    def fetch_transaction(self, txid: str) -> Transaction:
        return Transaction.from_hex(MINT_TX_HEX)


def _blocks() -> Dict[int, Dict[str, Any]]:
    return {
        840000: {
            "height": 840000,
            "tx": [
                _script_tx("00" * 32, "51"),
                {"txid": "mint", "hex": MINT_TX_HEX},
                _script_tx("11" * 32, "6a5d0180"),
            ],
        },
        840001: {
            "height": 840001,
            "tx": [
                {"txid": "broken", "hex": "00"},
                _script_tx("22" * 32, "6a5d021601"),
            ],
        },
    }


def test_scan_range_reports_rune_activity() -> None:
    rpc = StubRPC(_blocks())
    scanner = RuneScanner(rpc)

    results = scanner.scan_range(RuneScanConfig(start_height=840000, end_height=840001))

    assert rpc.requested == [840000, 840001]
    assert [(result.height, result.position) for result in results] == [
        (840000, 1),
        (840000, 2),
        (840001, 1),
    ]
    assert results[0].details.rune_tx == MintDetails(RuneId(840000, 291))
    assert isinstance(results[1].details.rune_tx, CenotaphDetails)
    assert results[2].details.tx_id == "22" * 32


def test_scan_can_hide_cenotaphs() -> None:
    scanner = RuneScanner(StubRPC(_blocks()))

    results = scanner.scan_range(
        RuneScanConfig(start_height=840000, end_height=840000, include_cenotaphs=False)
    )

    assert len(results) == 1
    assert results[0].to_dict()["kind"] == "mint"
    assert results[0].to_dict()["height"] == 840000


def test_scan_stops_at_limit() -> None:
    rpc = StubRPC(_blocks())

    results = RuneScanner(rpc).scan_range(RuneScanConfig(start_height=840000, end_height=840001, limit=1))

    assert len(results) == 1
    assert rpc.requested == [840000]


def test_scan_defaults_to_best_block() -> None:
    rpc = StubRPC(_blocks())

    RuneScanner(rpc).scan_range(RuneScanConfig(start_height=None, end_height=None))

    assert rpc.requested == [840001]


def test_scan_rejects_inverted_range() -> None:
    with pytest.raises(ValueError):
        RuneScanner(StubRPC(_blocks())).scan_range(RuneScanConfig(start_height=5, end_height=4))


def test_scan_tx() -> None:
    details = RuneScanner(StubRPC(_blocks())).scan_tx("anything")

    assert details is not None
    assert details.rune_tx == MintDetails(RuneId(840000, 291))
