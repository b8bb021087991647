"""Minimal Bitcoin transaction and script parsing.

Only what runestone decoding needs is implemented here: consensus
deserialization of legacy and segwit transactions, txid computation and a
lazy walk over script instructions. No script is ever evaluated.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_RETURN = 0x6A
OP_13 = 0x5D

SATS_PER_BTC = Decimal(100_000_000)


class TransactionDecodeError(ValueError):
    """Raised when bytes do not form a valid serialized transaction."""


class ScriptDecodeError(ValueError):
    """Raised when a script push runs past the end of the script."""


def double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def ser_compact_size(n: int) -> bytes:
    """Serialize an integer as a Bitcoin compact size."""

    if n < 253:
        return bytes([n])
    elif n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    elif n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    else:
        return b"\xff" + n.to_bytes(8, "little")


def push_data(data: bytes) -> bytes:
    """Return the minimal push operation for ``data``."""

    length = len(data)
    if length == 0:
        return bytes([OP_0])
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + length.to_bytes(4, "little") + data


@dataclass(frozen=True)
class Instruction:
    """A single script instruction: a bare opcode or a data push."""

    opcode: int
    data: Optional[bytes] = None

    @property
    def is_push(self) -> bool:
        return self.data is not None


def iter_instructions(script: bytes) -> Iterator[Instruction]:
    """Yield the instructions of ``script`` in order.

    Iteration is lazy so callers can keep everything decoded before a
    malformed push; :class:`ScriptDecodeError` is raised at the point where a
    push length exceeds the remaining bytes.
    """

    position = 0
    end = len(script)
    while position < end:
        opcode = script[position]
        position += 1

        if opcode == OP_0:
            yield Instruction(opcode, b"")
            continue
        if opcode < OP_PUSHDATA1:
            length = opcode
        elif opcode in (OP_PUSHDATA1, OP_PUSHDATA2, OP_PUSHDATA4):
            width = {OP_PUSHDATA1: 1, OP_PUSHDATA2: 2, OP_PUSHDATA4: 4}[opcode]
            if position + width > end:
                raise ScriptDecodeError(f"truncated push length at offset {position - 1}")
            length = int.from_bytes(script[position : position + width], "little")
            position += width
        else:
            yield Instruction(opcode)
            continue

        if position + length > end:
            raise ScriptDecodeError(
                f"push of {length} bytes at offset {position} exceeds script length {end}"
            )
        yield Instruction(opcode, bytes(script[position : position + length]))
        position += length


class _ByteReader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.position = 0

    def read(self, count: int) -> bytes:
        if self.position + count > len(self.data):
            raise TransactionDecodeError(
                f"unexpected end of transaction data at offset {self.position} (wanted {count} bytes)"
            )
        chunk = self.data[self.position : self.position + count]
        self.position += count
        return chunk

    def read_int(self, width: int) -> int:
        return int.from_bytes(self.read(width), "little")

    def read_compact_size(self) -> int:
        prefix = self.read(1)[0]
        if prefix < 253:
            return prefix
        width = {253: 2, 254: 4, 255: 8}[prefix]
        return self.read_int(width)

    def read_var_bytes(self) -> bytes:
        return self.read(self.read_compact_size())

    @property
    def remaining(self) -> int:
        return len(self.data) - self.position


@dataclass
class TxIn:
    prev_txid: str
    prev_vout: int
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF
    witness: List[bytes] = field(default_factory=list)


@dataclass
class TxOut:
    value: int
    script_pubkey: bytes

    def instructions(self) -> Iterator[Instruction]:
        return iter_instructions(self.script_pubkey)


@dataclass
class Transaction:
    """A deserialized Bitcoin transaction."""

    version: int
    inputs: List[TxIn]
    outputs: List[TxOut]
    lock_time: int = 0
    declared_txid: Optional[str] = field(default=None, compare=False)

    @property
    def has_witness(self) -> bool:
        return any(txin.witness for txin in self.inputs)

    @property
    def txid(self) -> str:
        if self.declared_txid is not None:
            return self.declared_txid
        return double_sha256(self.serialize(include_witness=False))[::-1].hex()

    @classmethod
    def from_hex(cls, raw_hex: str) -> "Transaction":
        try:
            raw = bytes.fromhex(raw_hex.strip())
        except ValueError as exc:
            raise TransactionDecodeError("transaction hex is not valid hexadecimal") from exc
        return cls.from_bytes(raw)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Transaction":
        reader = _ByteReader(raw)
        version = reader.read_int(4)

        segwit = False
        if reader.remaining >= 2 and raw[reader.position] == 0x00 and raw[reader.position + 1] == 0x01:
            segwit = True
            reader.read(2)

        inputs: List[TxIn] = []
        for _ in range(reader.read_compact_size()):
            prev_txid = reader.read(32)[::-1].hex()
            prev_vout = reader.read_int(4)
            script_sig = reader.read_var_bytes()
            sequence = reader.read_int(4)
            inputs.append(TxIn(prev_txid, prev_vout, script_sig, sequence))

        outputs: List[TxOut] = []
        for _ in range(reader.read_compact_size()):
            value = reader.read_int(8)
            outputs.append(TxOut(value, reader.read_var_bytes()))

        if segwit:
            for txin in inputs:
                txin.witness = [reader.read_var_bytes() for _ in range(reader.read_compact_size())]

        lock_time = reader.read_int(4)
        if reader.remaining:
            raise TransactionDecodeError(f"{reader.remaining} trailing bytes after transaction")

        logger.debug(
            "Parsed transaction with %d inputs and %d outputs (segwit=%s)",
            len(inputs),
            len(outputs),
            segwit,
        )
        return cls(version=version, inputs=inputs, outputs=outputs, lock_time=lock_time)

    @classmethod
    def from_verbose_json(cls, tx_json: Dict[str, Any]) -> "Transaction":
        """Build a transaction from ``getrawtransaction``/``getblock`` JSON.

        The raw ``hex`` field is preferred. Without it, outputs are rebuilt
        from each ``scriptPubKey.hex`` and the reported txid is kept, which is
        enough for runestone decoding.
        """

        raw_hex = tx_json.get("hex")
        if isinstance(raw_hex, str) and raw_hex:
            return cls.from_hex(raw_hex)

        outputs: List[TxOut] = []
        for vout in sorted(tx_json.get("vout", []), key=lambda item: item.get("n", 0)):
            script_hex = (vout.get("scriptPubKey") or {}).get("hex", "")
            try:
                script = bytes.fromhex(script_hex)
            except ValueError as exc:
                raise TransactionDecodeError(f"invalid scriptPubKey hex in vout {vout.get('n')}") from exc
            value = int(Decimal(str(vout.get("value", 0))) * SATS_PER_BTC)
            outputs.append(TxOut(value, script))

        return cls(
            version=int(tx_json.get("version", 2)),
            inputs=[],
            outputs=outputs,
            lock_time=int(tx_json.get("locktime", 0)),
            declared_txid=tx_json.get("txid"),
        )

    def serialize(self, include_witness: bool = True) -> bytes:
        segwit = include_witness and self.has_witness
        parts = [self.version.to_bytes(4, "little")]
        if segwit:
            parts.append(b"\x00\x01")
        parts.append(ser_compact_size(len(self.inputs)))
        for txin in self.inputs:
            parts.append(bytes.fromhex(txin.prev_txid)[::-1])
            parts.append(txin.prev_vout.to_bytes(4, "little"))
            parts.append(ser_compact_size(len(txin.script_sig)) + txin.script_sig)
            parts.append(txin.sequence.to_bytes(4, "little"))
        parts.append(ser_compact_size(len(self.outputs)))
        for txout in self.outputs:
            parts.append(txout.value.to_bytes(8, "little"))
            parts.append(ser_compact_size(len(txout.script_pubkey)) + txout.script_pubkey)
        if segwit:
            for txin in self.inputs:
                parts.append(ser_compact_size(len(txin.witness)))
                for item in txin.witness:
                    parts.append(ser_compact_size(len(item)) + item)
        parts.append(self.lock_time.to_bytes(4, "little"))
        return b"".join(parts)

    def to_hex(self) -> str:
        return self.serialize().hex()
