"""Value types shared by the runestone decoder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .varint import U128_MAX

U32_MAX = (1 << 32) - 1
U64_MAX = (1 << 64) - 1

MAX_DIVISIBILITY = 38
MAX_SPACERS = (1 << 27) - 1
SPACER = "•"


class Flaw(str, Enum):
    """Reasons a present runestone is downgraded to a cenotaph."""

    EDICT_OUTPUT = "edict_output"
    EDICT_RUNE_ID = "edict_rune_id"
    INVALID_SCRIPT = "invalid_script"
    SUPPLY_OVERFLOW = "supply_overflow"
    TRAILING_INTEGERS = "trailing_integers"
    TRUNCATED_FIELD = "truncated_field"
    UNRECOGNIZED_EVEN_TAG = "unrecognized_even_tag"
    UNRECOGNIZED_FLAG = "unrecognized_flag"
    VARINT = "varint"

    def describe(self) -> str:
        return _FLAW_DESCRIPTIONS[self]


_FLAW_DESCRIPTIONS = {
    Flaw.EDICT_OUTPUT: "edict output greater than transaction output count",
    Flaw.EDICT_RUNE_ID: "invalid rune ID in edict",
    Flaw.INVALID_SCRIPT: "invalid script in OP_RETURN",
    Flaw.SUPPLY_OVERFLOW: "supply overflows u128",
    Flaw.TRAILING_INTEGERS: "trailing integers in body",
    Flaw.TRUNCATED_FIELD: "field with missing value",
    Flaw.UNRECOGNIZED_EVEN_TAG: "unrecognized even tag",
    Flaw.UNRECOGNIZED_FLAG: "unrecognized flag",
    Flaw.VARINT: "invalid varint",
}


@dataclass(frozen=True, order=True)
class RuneId:
    """Location of a rune's etching: block height and index in that block."""

    block: int
    tx: int

    def __post_init__(self) -> None:
        if not 0 <= self.block <= U64_MAX:
            raise ValueError(f"rune id block out of range: {self.block}")
        if not 0 <= self.tx <= U32_MAX:
            raise ValueError(f"rune id tx out of range: {self.tx}")
        if self.block == 0 and self.tx > 0:
            raise ValueError("rune id with block 0 must have tx 0")

    def __str__(self) -> str:
        return f"{self.block}:{self.tx}"

    @classmethod
    def parse(cls, text: str) -> "RuneId":
        block, separator, tx = text.partition(":")
        if not separator:
            raise ValueError(f"rune id must look like BLOCK:TX, got {text!r}")
        try:
            return cls(int(block), int(tx))
        except ValueError as exc:
            raise ValueError(f"invalid rune id {text!r}: {exc}") from exc

    def next(self, block_delta: int, tx_delta: int) -> Optional["RuneId"]:
        """Apply an edict delta, returning ``None`` when the result is invalid.

        A zero block delta means the tx delta is relative to this id's tx;
        otherwise the tx value is absolute within the new block.
        """

        if block_delta > U64_MAX or tx_delta > U32_MAX:
            return None
        block = self.block + block_delta
        tx = self.tx + tx_delta if block_delta == 0 else tx_delta
        if block > U64_MAX or tx > U32_MAX or (block == 0 and tx > 0):
            return None
        return RuneId(block, tx)


@dataclass(frozen=True)
class Rune:
    """A rune name stored as its bijective base-26 integer."""

    value: int

    def __str__(self) -> str:
        n = self.value + 1
        letters = []
        while n > 0:
            letters.append(chr(ord("A") + (n - 1) % 26))
            n = (n - 1) // 26
        return "".join(reversed(letters))

    @classmethod
    def parse(cls, text: str) -> "Rune":
        if not text:
            raise ValueError("rune name must not be empty")
        value = 0
        for index, character in enumerate(text):
            if not "A" <= character <= "Z":
                raise ValueError(f"invalid character in rune name: {character!r}")
            if index > 0:
                value += 1
            value = value * 26 + (ord(character) - ord("A"))
            if value > U128_MAX:
                raise ValueError(f"rune name {text!r} does not fit in 128 bits")
        return cls(value)


@dataclass(frozen=True)
class SpacedRune:
    """A rune name together with the bitmask of display spacers."""

    rune: Rune
    spacers: int = 0

    def __str__(self) -> str:
        name = str(self.rune)
        rendered = []
        for index, letter in enumerate(name):
            rendered.append(letter)
            if index < len(name) - 1 and self.spacers & (1 << index):
                rendered.append(SPACER)
        return "".join(rendered)

    @classmethod
    def parse(cls, text: str) -> "SpacedRune":
        letters = []
        spacers = 0
        for character in text:
            if "A" <= character <= "Z":
                letters.append(character)
                continue
            if character not in (".", SPACER):
                raise ValueError(f"invalid character in spaced rune: {character!r}")
            if not letters:
                raise ValueError("spaced rune must not start with a spacer")
            bit = 1 << (len(letters) - 1)
            if spacers & bit:
                raise ValueError("spaced rune has a double spacer")
            spacers |= bit
        if letters and spacers >> (len(letters) - 1):
            raise ValueError("spaced rune must not end with a spacer")
        return cls(Rune.parse("".join(letters)), spacers)


@dataclass(frozen=True)
class Edict:
    """Move ``amount`` of rune ``id`` to transaction output ``output``."""

    id: RuneId
    amount: int
    output: int


@dataclass(frozen=True)
class Terms:
    """Open-mint rules attached to an etching. ``None`` means unbounded."""

    amount: Optional[int] = None
    cap: Optional[int] = None
    height: Tuple[Optional[int], Optional[int]] = (None, None)
    offset: Tuple[Optional[int], Optional[int]] = (None, None)


@dataclass(frozen=True)
class Etching:
    """Definition of a new rune as declared by a runestone."""

    divisibility: Optional[int] = None
    premine: Optional[int] = None
    rune: Optional[Rune] = None
    spacers: Optional[int] = None
    symbol: Optional[str] = None
    terms: Optional[Terms] = None
    turbo: bool = False

    @property
    def spaced_rune(self) -> Optional[SpacedRune]:
        if self.rune is None:
            return None
        return SpacedRune(self.rune, self.spacers or 0)

    def supply(self) -> Optional[int]:
        """Return the maximum supply, or ``None`` when it is unbounded.

        Raises :class:`OverflowError` when the supply exceeds 128 bits.
        """

        premine = self.premine or 0
        if self.terms is None:
            return premine
        if self.terms.cap is None:
            return None
        supply = premine + self.terms.cap * (self.terms.amount or 0)
        if supply > U128_MAX:
            raise OverflowError("etching supply exceeds 128 bits")
        return supply
