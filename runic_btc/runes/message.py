"""Turn a runestone payload into tagged fields and edicts."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Deque, Dict, List, Optional, TypeVar

from ..transaction import Transaction
from .model import U32_MAX, Edict, Flaw, RuneId
from .varint import VarintError, decode_varint

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Tag(IntEnum):
    """Field tags. Even tags must be understood; odd tags may be ignored."""

    BODY = 0
    FLAGS = 2
    RUNE = 4
    PREMINE = 6
    CAP = 8
    AMOUNT = 10
    HEIGHT_START = 12
    HEIGHT_END = 14
    OFFSET_START = 16
    OFFSET_END = 18
    MINT = 20
    POINTER = 22
    CENOTAPH = 126

    DIVISIBILITY = 1
    SPACERS = 3
    SYMBOL = 5
    NOP = 127

    def take(
        self,
        fields: Dict[int, Deque[int]],
        count: int,
        convert: Callable[[List[int]], Optional[T]],
    ) -> Optional[T]:
        """Consume ``count`` values for this tag when ``convert`` accepts them.

        Values that ``convert`` rejects are left in ``fields`` so an even tag
        with an out-of-range value still marks the runestone as a cenotaph.
        """

        values = fields.get(int(self))
        if values is None or len(values) < count:
            return None
        result = convert([values[index] for index in range(count)])
        if result is None:
            return None
        for _ in range(count):
            values.popleft()
        if not values:
            del fields[int(self)]
        return result


class Flag(IntEnum):
    ETCHING = 0
    TERMS = 1
    TURBO = 2
    CENOTAPH = 127

    @property
    def mask(self) -> int:
        return 1 << int(self)

    def take(self, flags: int) -> tuple[bool, int]:
        """Return whether the flag is set and ``flags`` with it cleared."""

        return bool(flags & self.mask), flags & ~self.mask


def decode_integers(payload: bytes) -> List[int]:
    """Decode ``payload`` as a back-to-back sequence of varints."""

    integers: List[int] = []
    position = 0
    while position < len(payload):
        value, consumed = decode_varint(payload, position)
        integers.append(value)
        position += consumed
    return integers


@dataclass
class Message:
    """Fields and edicts sequenced from a runestone's integers."""

    flaw: Optional[Flaw] = None
    edicts: List[Edict] = field(default_factory=list)
    fields: Dict[int, Deque[int]] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, transaction: Transaction, payload: bytes) -> "Message":
        try:
            integers = decode_integers(payload)
        except VarintError as exc:
            logger.debug("Runestone payload has an invalid varint: %s", exc)
            return cls(flaw=Flaw.VARINT)
        return cls.from_integers(transaction, integers)

    @classmethod
    def from_integers(cls, transaction: Transaction, integers: List[int]) -> "Message":
        message = cls()
        for index in range(0, len(integers), 2):
            tag = integers[index]
            if tag == Tag.BODY:
                message._read_edicts(transaction, integers[index + 1 :])
                break
            if index + 1 >= len(integers):
                message.flag(Flaw.TRUNCATED_FIELD)
                break
            message.fields.setdefault(tag, deque()).append(integers[index + 1])
        return message

    def flag(self, flaw: Flaw) -> None:
        """Record ``flaw`` unless an earlier flaw was already recorded."""

        if self.flaw is None:
            self.flaw = flaw

    def _read_edicts(self, transaction: Transaction, body: List[int]) -> None:
        rune_id = RuneId(0, 0)
        output_count = len(transaction.outputs)
        for start in range(0, len(body), 4):
            chunk = body[start : start + 4]
            if len(chunk) != 4:
                self.flag(Flaw.TRAILING_INTEGERS)
                return
            block_delta, tx_delta, amount, output = chunk
            next_id = rune_id.next(block_delta, tx_delta)
            if next_id is None:
                self.flag(Flaw.EDICT_RUNE_ID)
                return
            # output == output_count targets every non-OP_RETURN output.
            if output > U32_MAX or output > output_count:
                self.flag(Flaw.EDICT_OUTPUT)
                return
            rune_id = next_id
            self.edicts.append(Edict(id=rune_id, amount=amount, output=output))
