"""Runestone artifacts: deciphering transactions and enciphering scripts.

:func:`decipher` is the protocol entry point. It returns ``None`` when the
transaction carries no runestone output, a :class:`Cenotaph` when the output
is present but malformed, and a :class:`Runestone` otherwise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Union

from ..transaction import OP_RETURN, Transaction, push_data
from .message import Flag, Message, Tag
from .model import (
    MAX_DIVISIBILITY,
    MAX_SPACERS,
    U64_MAX,
    Edict,
    Etching,
    Flaw,
    Rune,
    RuneId,
    Terms,
)
from .payload import MAGIC_NUMBER, extract_payload
from .varint import encode_varint

logger = logging.getLogger(__name__)

MAX_SCRIPT_ELEMENT_SIZE = 520


@dataclass(frozen=True)
class Cenotaph:
    """A runestone that is present but malformed; its contents are void."""

    flaw: Flaw


@dataclass
class Runestone:
    """A well-formed runestone message."""

    edicts: List[Edict] = field(default_factory=list)
    etching: Optional[Etching] = None
    mint: Optional[RuneId] = None
    pointer: Optional[int] = None

    def encipher(self) -> bytes:
        """Serialize this runestone into an ``OP_RETURN OP_13`` script."""

        payload = bytearray()

        def put(tag: Tag, value: int) -> None:
            payload.extend(encode_varint(int(tag)))
            payload.extend(encode_varint(value))

        etching = self.etching
        if etching is not None:
            flags = Flag.ETCHING.mask
            if etching.terms is not None:
                flags |= Flag.TERMS.mask
            if etching.turbo:
                flags |= Flag.TURBO.mask
            put(Tag.FLAGS, flags)

            if etching.rune is not None:
                put(Tag.RUNE, etching.rune.value)
            if etching.divisibility is not None:
                put(Tag.DIVISIBILITY, etching.divisibility)
            if etching.spacers is not None:
                put(Tag.SPACERS, etching.spacers)
            if etching.symbol is not None:
                put(Tag.SYMBOL, ord(etching.symbol))
            if etching.premine is not None:
                put(Tag.PREMINE, etching.premine)

            terms = etching.terms
            if terms is not None:
                if terms.amount is not None:
                    put(Tag.AMOUNT, terms.amount)
                if terms.cap is not None:
                    put(Tag.CAP, terms.cap)
                for tag, value in (
                    (Tag.HEIGHT_START, terms.height[0]),
                    (Tag.HEIGHT_END, terms.height[1]),
                    (Tag.OFFSET_START, terms.offset[0]),
                    (Tag.OFFSET_END, terms.offset[1]),
                ):
                    if value is not None:
                        put(tag, value)

        if self.mint is not None:
            put(Tag.MINT, self.mint.block)
            put(Tag.MINT, self.mint.tx)

        if self.pointer is not None:
            put(Tag.POINTER, self.pointer)

        if self.edicts:
            payload.extend(encode_varint(int(Tag.BODY)))
            previous = RuneId(0, 0)
            for edict in sorted(self.edicts, key=lambda item: item.id):
                block_delta = edict.id.block - previous.block
                tx_delta = edict.id.tx if block_delta else edict.id.tx - previous.tx
                for value in (block_delta, tx_delta, edict.amount, edict.output):
                    payload.extend(encode_varint(value))
                previous = edict.id

        script = bytearray([OP_RETURN, MAGIC_NUMBER])
        data = bytes(payload)
        for start in range(0, len(data), MAX_SCRIPT_ELEMENT_SIZE):
            script.extend(push_data(data[start : start + MAX_SCRIPT_ELEMENT_SIZE]))
        return bytes(script)


Artifact = Union[Runestone, Cenotaph]


def _u64(value: int) -> Optional[int]:
    return value if value <= U64_MAX else None


def _symbol(value: int) -> Optional[str]:
    # Surrogates are not valid scalar values.
    if value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
        return None
    return chr(value)


def _take_etching(fields: Dict[int, Deque[int]], flags: int) -> tuple[Optional[Etching], int]:
    is_etching, flags = Flag.ETCHING.take(flags)
    if not is_etching:
        return None, flags

    has_terms, flags = Flag.TERMS.take(flags)
    terms = None
    if has_terms:
        terms = Terms(
            cap=Tag.CAP.take(fields, 1, lambda v: v[0]),
            height=(
                Tag.HEIGHT_START.take(fields, 1, lambda v: _u64(v[0])),
                Tag.HEIGHT_END.take(fields, 1, lambda v: _u64(v[0])),
            ),
            amount=Tag.AMOUNT.take(fields, 1, lambda v: v[0]),
            offset=(
                Tag.OFFSET_START.take(fields, 1, lambda v: _u64(v[0])),
                Tag.OFFSET_END.take(fields, 1, lambda v: _u64(v[0])),
            ),
        )
    turbo, flags = Flag.TURBO.take(flags)

    etching = Etching(
        divisibility=Tag.DIVISIBILITY.take(
            fields, 1, lambda v: v[0] if v[0] <= MAX_DIVISIBILITY else None
        ),
        premine=Tag.PREMINE.take(fields, 1, lambda v: v[0]),
        rune=Tag.RUNE.take(fields, 1, lambda v: Rune(v[0])),
        spacers=Tag.SPACERS.take(fields, 1, lambda v: v[0] if v[0] <= MAX_SPACERS else None),
        symbol=Tag.SYMBOL.take(fields, 1, lambda v: _symbol(v[0])),
        terms=terms,
        turbo=turbo,
    )
    return etching, flags


def _take_mint(fields: Dict[int, Deque[int]]) -> Optional[RuneId]:
    def convert(values: List[int]) -> Optional[RuneId]:
        block, tx = values
        try:
            return RuneId(block, tx)
        except ValueError:
            return None

    return Tag.MINT.take(fields, 2, convert)


def decipher(transaction: Transaction) -> Optional[Artifact]:
    """Decode the runestone carried by ``transaction``, if any."""

    payload = extract_payload(transaction)
    if payload is None:
        return None
    if not payload.is_valid:
        return Cenotaph(flaw=payload.flaw)

    message = Message.from_payload(transaction, payload.data)
    if message.flaw is Flaw.VARINT:
        return Cenotaph(flaw=Flaw.VARINT)
    fields = message.fields

    flags = Tag.FLAGS.take(fields, 1, lambda v: v[0]) or 0
    etching, flags = _take_etching(fields, flags)
    mint = _take_mint(fields)
    output_count = len(transaction.outputs)
    pointer = Tag.POINTER.take(
        fields, 1, lambda v: v[0] if v[0] < output_count else None
    )

    if etching is not None:
        try:
            etching.supply()
        except OverflowError:
            message.flag(Flaw.SUPPLY_OVERFLOW)
    if flags:
        message.flag(Flaw.UNRECOGNIZED_FLAG)
    if any(tag % 2 == 0 for tag in fields):
        message.flag(Flaw.UNRECOGNIZED_EVEN_TAG)

    if message.flaw is not None:
        logger.debug("Runestone in vout %d is a cenotaph: %s", payload.vout, message.flaw.describe())
        return Cenotaph(flaw=message.flaw)

    return Runestone(edicts=message.edicts, etching=etching, mint=mint, pointer=pointer)
