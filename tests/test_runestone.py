import pytest

from runic_btc.runes.classifier import (
    CenotaphDetails,
    EtchingDetails,
    MintDetails,
    RuneTransactionDecoder,
    TransferDetails,
)
from runic_btc.runes.model import Edict, Etching, Flaw, Rune, RuneId, SpacedRune, Terms
from runic_btc.runes.runestone import Cenotaph, Runestone, decipher
from runic_btc.runes.varint import encode_varint
from runic_btc.transaction import Transaction, TxIn, TxOut

MINT_TX_HEX = (
    "02000000000101e1abe66835908ec28bab86af8914ea85458993da13822e326a3bb1c159dfd009"
    "0200000000fdffffff0300000000000000000a6a5d0714c0a23314a3022202000000000000225120"
    "6bda50e97f9e9107d24774e12099e6ef6fb11047f52949e0cae98ae4aa0c8f8676b9000000000000"
    "225120528996bda1de76858fdecd34168c331e12a64f415427ec060ae1df72b4aaaafb0140f4def7"
    "a7945dbfdeecc285163a794bd624c603261a02a6a87e9ccc6d56ee1c6b9fe8e48c0bd30e540ca173"
    "27d6b0be3b215f5b8edee32b824aa42add2a283b7c00000000"
)

P2TR = bytes.fromhex("5120") + b"\x07" * 32


def _tx(*scripts: bytes) -> Transaction:
    outputs = [TxOut(0, script) for script in scripts]
    outputs.append(TxOut(546, P2TR))
    return Transaction(
        version=2,
        inputs=[TxIn(prev_txid="aa" * 32, prev_vout=0)],
        outputs=outputs,
    )


def _runestone_script(*integers: int) -> bytes:
    payload = b"".join(encode_varint(value) for value in integers)
    return b"\x6a\x5d" + bytes([len(payload)]) + payload


def _decode(transaction: Transaction):
    details = RuneTransactionDecoder().decode_tx(transaction)
    assert details is not None
    assert details.tx_id == transaction.txid
    return details.rune_tx


def test_transaction_without_marker_has_no_runestone() -> None:
    tx = _tx(b"\x6a\x04abcd")

    assert decipher(tx) is None
    assert RuneTransactionDecoder().decode_tx(tx) is None


def test_real_mint_transaction() -> None:
    details = RuneTransactionDecoder().decode_hex(MINT_TX_HEX)

    assert details is not None
    assert details.rune_tx == MintDetails(RuneId(840000, 291))
    assert details.to_dict()["rune_id"] == "840000:291"


def test_etching_reports_name_and_supply() -> None:
    etching = Etching(
        divisibility=2,
        premine=1000,
        rune=Rune.parse("HOOOOOOOOTERS"),
        symbol="$",
        terms=Terms(amount=100, cap=10),
    )
    tx = _tx(Runestone(etching=etching).encipher())

    rune_tx = _decode(tx)

    assert isinstance(rune_tx, EtchingDetails)
    assert rune_tx.rune_name == "HOOOOOOOOTERS"
    assert rune_tx.supply == 2000
    assert rune_tx.mintable is True
    assert rune_tx.etching == etching


def test_spaced_etching_name_round_trips() -> None:
    etching = Etching(rune=Rune.parse("HOOOOOOOOTERS"), spacers=1 << 8, premine=5)
    rune_tx = _decode(_tx(Runestone(etching=etching).encipher()))

    assert rune_tx.rune_name == "HOOOOOOOO•TERS"
    assert str(SpacedRune.parse(rune_tx.rune_name)) == rune_tx.rune_name
    assert rune_tx.supply == 5
    assert rune_tx.mintable is False


def test_etching_without_cap_has_unbounded_supply() -> None:
    etching = Etching(rune=Rune.parse("AAAAAAAAAAAAA"), terms=Terms(amount=100))
    rune_tx = _decode(_tx(Runestone(etching=etching).encipher()))

    assert rune_tx.supply is None
    assert rune_tx.mintable is True


def test_etching_without_name() -> None:
    rune_tx = _decode(_tx(Runestone(etching=Etching(premine=1)).encipher()))

    assert isinstance(rune_tx, EtchingDetails)
    assert rune_tx.rune_name is None


def test_transfer_with_single_edict() -> None:
    runestone = Runestone(edicts=[Edict(RuneId(840010, 4), 1000, 1)])
    rune_tx = _decode(_tx(runestone.encipher()))

    assert isinstance(rune_tx, TransferDetails)
    assert len(rune_tx.edicts) == 1
    assert rune_tx.edicts[0].id == RuneId(840010, 4)
    assert rune_tx.edicts[0].amount == 1000


def test_empty_runestone_is_a_transfer_without_edicts() -> None:
    assert _decode(_tx(b"\x6a\x5d")) == TransferDetails(edicts=[])


def test_etching_takes_precedence_over_mint() -> None:
    runestone = Runestone(
        etching=Etching(rune=Rune.parse("AAAAAAAAAAAAA")),
        mint=RuneId(840000, 291),
        edicts=[Edict(RuneId(840010, 4), 1, 0)],
    )

    assert isinstance(_decode(_tx(runestone.encipher())), EtchingDetails)


def test_mint_takes_precedence_over_transfer() -> None:
    runestone = Runestone(mint=RuneId(840000, 291), edicts=[Edict(RuneId(840010, 4), 1, 0)])

    assert _decode(_tx(runestone.encipher())) == MintDetails(RuneId(840000, 291))


def test_only_first_marker_output_is_decoded() -> None:
    first = Runestone(mint=RuneId(840000, 291)).encipher()
    second = Runestone(mint=RuneId(840001, 1)).encipher()

    assert _decode(_tx(first, second)) == MintDetails(RuneId(840000, 291))


def test_encipher_then_decipher_preserves_runestone() -> None:
    runestone = Runestone(
        edicts=[Edict(RuneId(840010, 4), 7, 0), Edict(RuneId(840000, 9), 3, 1)],
        mint=RuneId(840000, 291),
        pointer=1,
    )

    artifact = decipher(_tx(runestone.encipher()))

    assert artifact == Runestone(
        edicts=[Edict(RuneId(840000, 9), 3, 1), Edict(RuneId(840010, 4), 7, 0)],
        mint=RuneId(840000, 291),
        pointer=1,
    )


def test_non_push_opcode_ends_payload() -> None:
    # Pointer 0, then OP_1, then a push that would add a half mint field.
    script = b"\x6a\x5d\x02\x16\x00\x51\x02\x14\x01"

    assert decipher(_tx(script)) == Runestone(pointer=0)


def test_overlong_push_is_invalid_script() -> None:
    assert decipher(_tx(b"\x6a\x5d\x05\x14")) == Cenotaph(Flaw.INVALID_SCRIPT)


def test_bad_varint_is_a_cenotaph() -> None:
    rune_tx = _decode(_tx(b"\x6a\x5d\x01\x80"))

    assert rune_tx == CenotaphDetails(Flaw.VARINT)
    assert rune_tx.reason == "invalid varint"


def test_unknown_odd_tag_is_ignored() -> None:
    assert decipher(_tx(_runestone_script(9, 5))) == Runestone()


def test_unknown_even_tag_is_a_cenotaph() -> None:
    assert decipher(_tx(_runestone_script(20, 840000, 20, 291, 24, 5))) == Cenotaph(
        Flaw.UNRECOGNIZED_EVEN_TAG
    )


def test_cenotaph_tag_is_a_cenotaph() -> None:
    assert decipher(_tx(_runestone_script(126, 0))) == Cenotaph(Flaw.UNRECOGNIZED_EVEN_TAG)


def test_invalid_pointer_is_a_cenotaph() -> None:
    # Two outputs, so pointer 2 is out of range and stays in the fields.
    assert decipher(_tx(_runestone_script(22, 2))) == Cenotaph(Flaw.UNRECOGNIZED_EVEN_TAG)


def test_unrecognized_flag_is_a_cenotaph() -> None:
    assert decipher(_tx(_runestone_script(2, 1 << 3))) == Cenotaph(Flaw.UNRECOGNIZED_FLAG)


def test_terms_flag_without_etching_is_unrecognized() -> None:
    assert decipher(_tx(_runestone_script(2, 0b10))) == Cenotaph(Flaw.UNRECOGNIZED_FLAG)


def test_cenotaph_flag_is_unrecognized() -> None:
    assert decipher(_tx(_runestone_script(2, 1 << 127))) == Cenotaph(Flaw.UNRECOGNIZED_FLAG)


def test_trailing_body_integers_are_a_cenotaph() -> None:
    assert decipher(_tx(_runestone_script(0, 840000, 1, 5))) == Cenotaph(
        Flaw.TRAILING_INTEGERS
    )


def test_edict_output_beyond_outputs_is_a_cenotaph() -> None:
    assert decipher(_tx(_runestone_script(0, 840000, 1, 5, 3))) == Cenotaph(Flaw.EDICT_OUTPUT)


def test_truncated_field_is_a_cenotaph() -> None:
    assert decipher(_tx(_runestone_script(22))) == Cenotaph(Flaw.TRUNCATED_FIELD)


def test_supply_overflow_is_a_cenotaph() -> None:
    etching = Etching(rune=Rune(0), terms=Terms(amount=4, cap=1 << 127))

    assert decipher(_tx(Runestone(etching=etching).encipher())) == Cenotaph(
        Flaw.SUPPLY_OVERFLOW
    )


def test_divisibility_above_maximum_is_dropped() -> None:
    # Divisibility is an odd tag, so an invalid value is ignored.
    artifact = decipher(_tx(_runestone_script(2, 1, 1, 39)))

    assert isinstance(artifact, Runestone)
    assert artifact.etching == Etching()


def test_cenotaph_discards_mint() -> None:
    rune_tx = _decode(_tx(_runestone_script(20, 840000, 20, 291, 2, 1 << 5)))

    assert rune_tx == CenotaphDetails(Flaw.UNRECOGNIZED_FLAG)


@pytest.mark.parametrize(
    "script",
    [
        Runestone(mint=RuneId(840000, 291)).encipher(),
        Runestone(edicts=[Edict(RuneId(840010, 4), 1, 0)]).encipher(),
        b"\x6a\x5d\x01\x80",
    ],
)
def test_decoding_is_deterministic(script: bytes) -> None:
    raw = _tx(script).serialize()
    decoder = RuneTransactionDecoder()

    assert decoder.decode_bytes(raw) == decoder.decode_bytes(raw)
    assert decoder.decode_hex(raw.hex()) == decoder.decode_bytes(raw)


def test_to_dict_renders_amounts_as_strings() -> None:
    etching = Etching(rune=Rune.parse("HOOOOOOOOTERS"), premine=1 << 100, divisibility=3)
    details = RuneTransactionDecoder().decode_tx(_tx(Runestone(etching=etching).encipher()))

    data = details.to_dict()

    assert data["kind"] == "etching"
    assert data["premine"] == str(1 << 100)
    assert data["supply"] == str(1 << 100)
    assert data["divisibility"] == 3
