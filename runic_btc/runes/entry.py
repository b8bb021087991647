"""Rune ledger entries and supply analytics.

Entries come from an indexer and are trusted, but every invariant the
analytics depend on is still checked so that bad upstream data surfaces as a
:class:`DataIntegrityError` rather than as a silently wrong number.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from .model import MAX_DIVISIBILITY
from .varint import U128_MAX

logger = logging.getLogger(__name__)

ZERO_PERCENT = Decimal("0.00")
_TWO_PLACES = Decimal("0.01")


class DataIntegrityError(ValueError):
    """Raised when a ledger entry violates an invariant it is trusted to hold."""


class RuneArithmeticError(ArithmeticError):
    """Raised when an analytics result cannot be represented."""


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def _coerce_u128(value: Any, name: str) -> int:
    """Accept integers or decimal strings, as indexers send u128 values."""

    if isinstance(value, bool):
        raise DataIntegrityError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        try:
            number = int(value.strip())
        except ValueError as exc:
            raise DataIntegrityError(f"{name} must be a decimal integer, got {value!r}") from exc
    else:
        raise DataIntegrityError(f"{name} must be an integer, got {value!r}")
    if not 0 <= number <= U128_MAX:
        raise DataIntegrityError(f"{name} out of u128 range: {number}")
    return number


def _optional_u128(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    return _coerce_u128(value, name)


@dataclass(frozen=True)
class EntryTerms:
    amount: Optional[int] = None
    cap: Optional[int] = None
    height_start: Optional[int] = None
    height_end: Optional[int] = None
    offset_start: Optional[int] = None
    offset_end: Optional[int] = None
    turbo: bool = False

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, turbo: bool = False) -> "EntryTerms":
        """Parse terms in either flat or ``height: [start, end]`` form."""

        height = payload.get("height") or (None, None)
        offset = payload.get("offset") or (None, None)
        if not all(isinstance(pair, (list, tuple)) and len(pair) == 2 for pair in (height, offset)):
            raise DataIntegrityError("terms height/offset must be [start, end] pairs")
        return cls(
            amount=_optional_u128(payload.get("amount"), "terms.amount"),
            cap=_optional_u128(payload.get("cap"), "terms.cap"),
            height_start=_optional_u128(payload.get("height_start", height[0]), "terms.height_start"),
            height_end=_optional_u128(payload.get("height_end", height[1]), "terms.height_end"),
            offset_start=_optional_u128(payload.get("offset_start", offset[0]), "terms.offset_start"),
            offset_end=_optional_u128(payload.get("offset_end", offset[1]), "terms.offset_end"),
            turbo=bool(payload.get("turbo", turbo)),
        )


@dataclass(frozen=True)
class RuneEntry:
    """Snapshot of a rune's ledger state as reported by the indexer."""

    spaced_rune: str
    mints: int
    premine: int
    divisibility: int
    number: int
    terms: Optional[EntryTerms] = None
    symbol: Optional[str] = None
    block: Optional[int] = None
    etching: Optional[str] = None
    burned: Optional[int] = None
    timestamp: Optional[int] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RuneEntry":
        spaced_rune = payload.get("spaced_rune")
        if not isinstance(spaced_rune, str) or not spaced_rune:
            raise DataIntegrityError("rune entry is missing spaced_rune")

        divisibility = _coerce_u128(payload.get("divisibility", 0), "divisibility")
        if divisibility > MAX_DIVISIBILITY:
            raise DataIntegrityError(
                f"divisibility {divisibility} exceeds maximum of {MAX_DIVISIBILITY}"
            )

        terms_block = payload.get("terms")
        terms = None
        if terms_block is not None:
            if not isinstance(terms_block, Mapping):
                raise DataIntegrityError("rune entry terms must be a mapping")
            terms = EntryTerms.from_dict(terms_block, turbo=bool(payload.get("turbo", False)))

        return cls(
            spaced_rune=spaced_rune,
            mints=_coerce_u128(payload.get("mints", 0), "mints"),
            premine=_coerce_u128(payload.get("premine", 0), "premine"),
            divisibility=divisibility,
            number=_coerce_u128(payload.get("number", 0), "number"),
            terms=terms,
            symbol=payload.get("symbol"),
            block=_optional_u128(payload.get("block"), "block"),
            etching=payload.get("etching"),
            burned=_optional_u128(payload.get("burned"), "burned"),
            timestamp=_optional_u128(payload.get("timestamp"), "timestamp"),
        )

    def remaining_mints(self) -> int:
        return remaining_mints(self)

    def premine_percentage(self) -> Decimal:
        return premine_percentage(self)


def remaining_mints(entry: RuneEntry) -> int:
    """Return how many mints are still open under the entry's cap.

    Entries without terms, or whose terms have no cap, report ``0``.
    """

    if entry.terms is None or entry.terms.cap is None:
        return 0
    cap = entry.terms.cap
    if entry.mints > cap:
        raise DataIntegrityError(
            f"{entry.spaced_rune}: mints ({entry.mints}) exceed cap ({cap})"
        )
    return cap - entry.mints


def premine_percentage(entry: RuneEntry) -> Decimal:
    """Return the premine's share of circulating supply, in percent.

    Premine and minted supply are each normalized to whole units by dividing
    by ``10 ** divisibility`` and rounding up. The share is rounded half-up to
    two decimal places.

    Entries with no premine, and entries with no minting terms at all, report
    ``0.00``.
    """

    if entry.premine == 0 or entry.terms is None:
        return ZERO_PERCENT
    if entry.divisibility > MAX_DIVISIBILITY:
        raise DataIntegrityError(
            f"{entry.spaced_rune}: divisibility {entry.divisibility} exceeds {MAX_DIVISIBILITY}"
        )

    cap = entry.terms.cap
    if cap is not None and entry.mints > cap:
        raise DataIntegrityError(
            f"{entry.spaced_rune}: mints ({entry.mints}) exceed cap ({cap})"
        )

    amount = entry.terms.amount
    if amount is None:
        if entry.mints > 0:
            raise DataIntegrityError(
                f"{entry.spaced_rune}: {entry.mints} mints recorded but terms have no amount"
            )
        amount = 0

    minted = amount * entry.mints
    if minted > U128_MAX:
        raise RuneArithmeticError(f"{entry.spaced_rune}: minted supply exceeds 128 bits")

    scale = 10 ** entry.divisibility
    premine_normalized = _ceil_div(entry.premine, scale)
    minted_normalized = _ceil_div(minted, scale)
    circulating = premine_normalized + minted_normalized
    if circulating == 0:
        raise RuneArithmeticError(f"{entry.spaced_rune}: circulating supply is zero")

    # Hundredths of a percent, rounded half-up on the remainder.
    hundredths, remainder = divmod(premine_normalized * 100 * 100, circulating)
    if remainder * 2 >= circulating:
        hundredths += 1
    percentage = (Decimal(hundredths) / 100).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    logger.debug(
        "%s premine %s of circulating %s -> %s%%",
        entry.spaced_rune,
        premine_normalized,
        circulating,
        percentage,
    )
    return percentage
