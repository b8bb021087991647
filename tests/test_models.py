from decimal import Decimal

import pytest

from runic_btc.models import (
    AddressResponse,
    InscriptionResponse,
    OutputResponse,
    ResponseFormatError,
    RuneResponse,
)
from runic_btc.runes.model import RuneId


def test_address_response_parses_balance_triples() -> None:
    payload = {
        "outputs": ["ab"],
        "inscriptions": ["jkjlk"],
        "sat_balance": 809009,
        "runes_balances": [["SAIKO•HAMSTER", "10150", "🐹"]],
    }

    response = AddressResponse.from_json(payload)

    assert response.sat_balance == 809009
    assert response.outputs == ["ab"]
    assert response.inscriptions == ["jkjlk"]
    balance = response.runes_balances[0]
    assert balance.rune_name == "SAIKO•HAMSTER"
    assert balance.balance == Decimal("10150")
    assert balance.rune_symbol == "🐹"


def test_address_response_accepts_numeric_balances() -> None:
    payload = {
        "outputs": [],
        "inscriptions": [],
        "sat_balance": 0,
        "runes_balances": [{"rune_name": "A", "balance": 12.5}],
    }

    response = AddressResponse.from_json(payload)

    assert response.runes_balances[0].balance == Decimal("12.5")
    assert response.runes_balances[0].rune_symbol is None


def test_address_response_rejects_bad_balance() -> None:
    payload = {"outputs": [], "inscriptions": [], "sat_balance": 0, "runes_balances": [["A", "x1"]]}

    with pytest.raises(ResponseFormatError):
        AddressResponse.from_json(payload)


def test_output_response() -> None:
    payload = {
        "address": "bc1p90zah9c3hyywydpgnw0gcuk2pwwywj8u7hd0rhhr8kg0x3wl778s4d8h9t",
        "inscriptions": ["198ba1162cccd67fb7fd590db92b6e9f2bc052dce244d6d0ceaebb3bbc10e134i622"],
        "transaction": "3de0c436d136abfb5f1ec1996d755331f25bf8e424743b1c21e2952fea8ef002",
        "value": 546,
    }

    response = OutputResponse.from_json(payload)

    assert response.value == 546
    assert response.address == "bc1p90zah9c3hyywydpgnw0gcuk2pwwywj8u7hd0rhhr8kg0x3wl778s4d8h9t"
    assert response.runes == {}


def test_output_response_accepts_rune_pairs() -> None:
    payload = {
        "inscriptions": [],
        "transaction": "00" * 32,
        "value": 1,
        "runes": [["UNCOMMON•GOODS", {"amount": 1, "divisibility": 0, "symbol": "⧉"}]],
    }

    response = OutputResponse.from_json(payload)

    assert response.address is None
    assert response.runes["UNCOMMON•GOODS"]["amount"] == 1


def test_output_response_requires_transaction() -> None:
    with pytest.raises(ResponseFormatError):
        OutputResponse.from_json({"inscriptions": [], "value": 1})


def test_inscription_response() -> None:
    response = InscriptionResponse.from_json(
        {"id": "abci0", "number": 12, "content_type": "text/plain", "height": 840000}
    )

    assert response.id == "abci0"
    assert response.number == 12
    assert response.height == 840000
    assert response.sat is None


def test_rune_response_builds_entry() -> None:
    payload = {
        "entry": {
            "spaced_rune": "UNCOMMON•GOODS",
            "divisibility": 0,
            "mints": 100,
            "premine": 0,
            "number": 0,
            "terms": {"amount": 1, "cap": "340282366920938463463374607431768211455"},
        },
        "id": "1:0",
        "mintable": True,
        "parent": None,
    }

    response = RuneResponse.from_json(payload)

    assert response.id == RuneId(1, 0)
    assert response.mintable is True
    assert response.entry.terms.cap == (1 << 128) - 1
    assert response.entry.premine_percentage() == Decimal("0.00")


def test_rune_response_rejects_missing_entry() -> None:
    with pytest.raises(ResponseFormatError):
        RuneResponse.from_json({"id": "1:0"})
