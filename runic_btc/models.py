"""JSON wire models for ord indexer responses.

The indexer serializes u128 quantities as strings in some endpoints and as
numbers in others; every parser here accepts both.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from .runes.entry import RuneEntry
from .runes.model import RuneId


class ResponseFormatError(ValueError):
    """Raised when an indexer response does not have the expected shape."""


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ResponseFormatError(f"{what} must be a JSON object")
    return payload


def _string_list(payload: Mapping[str, Any], key: str) -> List[str]:
    values = payload.get(key) or []
    if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
        raise ResponseFormatError(f"{key} must be a list of strings")
    return list(values)


def _int_field(payload: Mapping[str, Any], key: str, *, required: bool = True) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        if required:
            raise ResponseFormatError(f"missing integer field {key!r}")
        return None
    if isinstance(value, bool):
        raise ResponseFormatError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ResponseFormatError(f"{key} must be an integer, got {value!r}") from exc


def string_or_number(value: Any) -> Decimal:
    """Parse a balance sent either as a JSON number or a decimal string."""

    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ResponseFormatError(f"expected a string or a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ResponseFormatError(f"invalid numeric value {value!r}") from exc


@dataclass
class RuneBalance:
    rune_name: str
    balance: Decimal
    rune_symbol: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Any) -> "RuneBalance":
        """Accept ``[name, balance, symbol]`` triples or objects."""

        if isinstance(payload, list):
            if len(payload) not in (2, 3):
                raise ResponseFormatError("rune balance must be [name, balance, symbol]")
            name, balance = payload[0], payload[1]
            symbol = payload[2] if len(payload) == 3 else None
        else:
            mapping = _require_mapping(payload, "rune balance")
            name = mapping.get("rune_name")
            balance = mapping.get("balance")
            symbol = mapping.get("rune_symbol")
        if not isinstance(name, str):
            raise ResponseFormatError("rune balance name must be a string")
        return cls(rune_name=name, balance=string_or_number(balance), rune_symbol=symbol)


@dataclass
class AddressResponse:
    outputs: List[str]
    inscriptions: List[str]
    sat_balance: int
    runes_balances: List[RuneBalance] = field(default_factory=list)

    @classmethod
    def from_json(cls, payload: Any) -> "AddressResponse":
        data = _require_mapping(payload, "address response")
        balances = data.get("runes_balances") or []
        if not isinstance(balances, list):
            raise ResponseFormatError("runes_balances must be a list")
        return cls(
            outputs=_string_list(data, "outputs"),
            inscriptions=_string_list(data, "inscriptions"),
            sat_balance=_int_field(data, "sat_balance"),
            runes_balances=[RuneBalance.from_json(item) for item in balances],
        )


@dataclass
class OutputResponse:
    address: Optional[str]
    inscriptions: List[str]
    transaction: str
    value: int
    spent: Optional[bool] = None
    runes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, payload: Any) -> "OutputResponse":
        data = _require_mapping(payload, "output response")
        transaction = data.get("transaction")
        if not isinstance(transaction, str):
            raise ResponseFormatError("output response is missing transaction")
        runes = data.get("runes") or {}
        if isinstance(runes, list):
            # Older indexers send [[name, {amount, divisibility, symbol}], ...].
            runes = {item[0]: item[1] for item in runes if isinstance(item, list) and len(item) == 2}
        return cls(
            address=data.get("address"),
            inscriptions=_string_list(data, "inscriptions"),
            transaction=transaction,
            value=_int_field(data, "value"),
            spent=data.get("spent"),
            runes=dict(runes),
        )


@dataclass
class InscriptionResponse:
    id: str
    number: int
    address: Optional[str] = None
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    height: Optional[int] = None
    sat: Optional[int] = None
    satpoint: Optional[str] = None
    timestamp: Optional[int] = None

    @classmethod
    def from_json(cls, payload: Any) -> "InscriptionResponse":
        data = _require_mapping(payload, "inscription response")
        inscription_id = data.get("id") or data.get("inscription_id")
        if not isinstance(inscription_id, str):
            raise ResponseFormatError("inscription response is missing id")
        return cls(
            id=inscription_id,
            number=_int_field(data, "number"),
            address=data.get("address"),
            content_type=data.get("content_type"),
            content_length=_int_field(data, "content_length", required=False),
            height=_int_field(data, "height", required=False),
            sat=_int_field(data, "sat", required=False),
            satpoint=data.get("satpoint"),
            timestamp=_int_field(data, "timestamp", required=False),
        )


@dataclass
class RuneResponse:
    entry: RuneEntry
    parent: Optional[str] = None
    id: Optional[RuneId] = None
    mintable: Optional[bool] = None

    @classmethod
    def from_json(cls, payload: Any) -> "RuneResponse":
        data = _require_mapping(payload, "rune response")
        entry = _require_mapping(data.get("entry"), "rune entry")
        rune_id = data.get("id")
        try:
            parsed_id = RuneId.parse(rune_id) if isinstance(rune_id, str) else None
        except ValueError as exc:
            raise ResponseFormatError(f"invalid rune id {rune_id!r}") from exc
        return cls(
            entry=RuneEntry.from_dict(entry),
            parent=data.get("parent"),
            id=parsed_id,
            mintable=data.get("mintable"),
        )
