"""Command-line interface for decoding runestones and inspecting runes.

The CLI is a thin façade over the decoder, the ord indexer client and the
node client so operators can inspect rune activity without writing Python.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence

from .config import ConfigurationError, load_ord_config, load_rpc_config, set_default_config_path
from .models import ResponseFormatError
from .ord_client import OrdAPIError, OrdClient, OrdTransportError
from .rpc_client import BitcoinRPCClient, RPCError, RPCTransportError
from .runes.classifier import (
    CenotaphDetails,
    EtchingDetails,
    MintDetails,
    RuneTransactionDecoder,
    RuneTxDetails,
)
from .runes.entry import DataIntegrityError, RuneArithmeticError
from .runes.model import RuneId
from .scanner import RuneScanConfig, RuneScanner
from .transaction import TransactionDecodeError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Runestone decoder and rune analytics CLI")
    parser.add_argument("--config", default=None, help="Path to a YAML config file (default: ~/.runic.yaml)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--ord-url", default=None, help="Override the ord indexer base URL")
    parser.add_argument("--rpc-endpoint", default=None, help="Override the Bitcoin Core RPC endpoint URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode_parser = subparsers.add_parser("decode", help="decode the runestone of a transaction")
    source = decode_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--hex", dest="raw_hex", help="Raw transaction hex")
    source.add_argument("--txid", help="Fetch the transaction from the node by txid")
    decode_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON")

    scan_parser = subparsers.add_parser("scan", help="scan a block range for rune transactions")
    scan_parser.add_argument("--start-height", type=int, default=None, help="First block (default: best)")
    scan_parser.add_argument("--end-height", type=int, default=None, help="Last block (default: best)")
    scan_parser.add_argument("--limit", type=int, default=None, help="Stop after N results")
    scan_parser.add_argument(
        "--no-cenotaphs",
        dest="include_cenotaphs",
        action="store_false",
        help="Hide malformed runestones",
    )
    scan_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON")

    rune_parser = subparsers.add_parser("rune", help="show a rune entry with supply analytics")
    rune_parser.add_argument("rune_id", help="Rune id as BLOCK:TX")
    rune_parser.add_argument("--json", dest="as_json", action="store_true", help="Emit JSON")

    output_parser = subparsers.add_parser("output", help="show an output as seen by the indexer")
    output_parser.add_argument("outpoint", help="Outpoint as TXID:VOUT")

    address_parser = subparsers.add_parser("address", help="show balances held by an address")
    address_parser.add_argument("address", help="Bitcoin address")

    inscription_parser = subparsers.add_parser("inscription", help="show inscription details")
    inscription_parser.add_argument("inscription_id", help="Inscription id")

    subparsers.add_parser("blockheight", help="print the indexer's latest block height")

    return parser


def _ord_client(args: argparse.Namespace) -> OrdClient:
    overrides = {"base_url": args.ord_url} if args.ord_url else None
    return OrdClient(load_ord_config(overrides=overrides))


def _rpc_client(args: argparse.Namespace) -> BitcoinRPCClient:
    overrides = {"endpoint": args.rpc_endpoint} if args.rpc_endpoint else None
    return BitcoinRPCClient(load_rpc_config(overrides=overrides))


def _parse_outpoint(raw: str) -> tuple[str, int]:
    txid, separator, vout = raw.rpartition(":")
    if not separator or not txid:
        raise CLIError(f"outpoint must look like TXID:VOUT, got {raw!r}")
    try:
        return txid, int(vout)
    except ValueError as exc:
        raise CLIError(f"invalid vout in outpoint {raw!r}") from exc


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _describe(details: RuneTxDetails) -> str:
    rune_tx = details.rune_tx
    if isinstance(rune_tx, EtchingDetails):
        supply = rune_tx.supply if rune_tx.supply is not None else "unbounded"
        name = rune_tx.rune_name or "(reserved name)"
        return f"etching {name} | supply {supply} | mintable {'yes' if rune_tx.mintable else 'no'}"
    if isinstance(rune_tx, MintDetails):
        return f"mint {rune_tx.rune_id}"
    if isinstance(rune_tx, CenotaphDetails):
        return f"cenotaph ({rune_tx.reason})"
    edicts = ", ".join(
        f"{edict.id} x{edict.amount} -> #{edict.output}" for edict in rune_tx.edicts
    )
    return f"transfer [{edicts}]" if edicts else "transfer (no edicts)"


def cmd_decode(args: argparse.Namespace) -> None:
    decoder = RuneTransactionDecoder()
    if args.raw_hex:
        details = decoder.decode_hex(args.raw_hex)
    else:
        details = decoder.decode_tx(_rpc_client(args).fetch_transaction(args.txid))

    if details is None:
        if args.as_json:
            _print_json(None)
        else:
            print("No runestone found.")
        return

    if args.as_json:
        _print_json(details.to_dict())
        return
    print(f"txid {details.tx_id}")
    print(f"  {_describe(details)}")


def cmd_scan(args: argparse.Namespace) -> None:
    config = RuneScanConfig(
        start_height=args.start_height,
        end_height=args.end_height,
        limit=args.limit,
        include_cenotaphs=args.include_cenotaphs,
    )
    results = RuneScanner(_rpc_client(args)).scan_range(config)

    if args.as_json:
        _print_json([result.to_dict() for result in results])
        return
    if not results:
        print("No rune transactions found.")
        return
    print(" height | pos  | txid                                                             | activity")
    for result in results:
        height = result.height if result.height is not None else "-"
        print(f"{height:>7} | {result.position:>4} | {result.details.tx_id} | {_describe(result.details)}")


def cmd_rune(args: argparse.Namespace) -> None:
    try:
        rune_id = RuneId.parse(args.rune_id)
    except ValueError as exc:
        raise CLIError(str(exc)) from exc
    client = _ord_client(args)
    response = client.fetch_rune_details(rune_id)
    entry = response.entry
    remaining = entry.remaining_mints()
    percentage = entry.premine_percentage()

    if args.as_json:
        _print_json(
            {
                "id": str(rune_id),
                "spaced_rune": entry.spaced_rune,
                "number": entry.number,
                "divisibility": entry.divisibility,
                "mints": str(entry.mints),
                "premine": str(entry.premine),
                "remaining_mints": str(remaining),
                "premine_percentage": str(percentage),
                "parent": response.parent,
                "url": client.public_url_for("rune", entry.spaced_rune),
            }
        )
        return
    print(f"{entry.spaced_rune} ({rune_id}) #{entry.number}")
    print(f"  divisibility: {entry.divisibility}")
    print(f"  mints: {entry.mints}; remaining: {remaining}")
    print(f"  premine: {entry.premine} ({percentage}% of circulating)")
    print(f"  {client.public_url_for('rune', entry.spaced_rune)}")


def cmd_output(args: argparse.Namespace) -> None:
    txid, vout = _parse_outpoint(args.outpoint)
    output = _ord_client(args).fetch_output(txid, vout)
    print(f"{txid}:{vout} | value {output.value} sat | address {output.address or '-'}")
    for inscription in output.inscriptions:
        print(f"  inscription {inscription}")
    for name, balance in output.runes.items():
        print(f"  rune {name}: {balance}")


def cmd_address(args: argparse.Namespace) -> None:
    response = _ord_client(args).fetch_address(args.address)
    print(f"{args.address} | {response.sat_balance} sat | {len(response.outputs)} output(s)")
    for balance in response.runes_balances:
        symbol = f" {balance.rune_symbol}" if balance.rune_symbol else ""
        print(f"  {balance.rune_name}: {balance.balance}{symbol}")
    for inscription in response.inscriptions:
        print(f"  inscription {inscription}")


def cmd_inscription(args: argparse.Namespace) -> None:
    inscription = _ord_client(args).fetch_inscription(args.inscription_id)
    print(f"inscription #{inscription.number} {inscription.id}")
    print(f"  content_type: {inscription.content_type or 'unknown'}")
    print(f"  address: {inscription.address or '-'}")


def cmd_blockheight(args: argparse.Namespace) -> None:
    print(_ord_client(args).fetch_latest_block_height())


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    if args.config:
        set_default_config_path(args.config)
    try:
        if args.command == "decode":
            cmd_decode(args)
        elif args.command == "scan":
            cmd_scan(args)
        elif args.command == "rune":
            cmd_rune(args)
        elif args.command == "output":
            cmd_output(args)
        elif args.command == "address":
            cmd_address(args)
        elif args.command == "inscription":
            cmd_inscription(args)
        elif args.command == "blockheight":
            cmd_blockheight(args)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (
        CLIError,
        ConfigurationError,
        DataIntegrityError,
        OrdAPIError,
        OrdTransportError,
        ResponseFormatError,
        RPCError,
        RPCTransportError,
        RuneArithmeticError,
        TransactionDecodeError,
        ValueError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
