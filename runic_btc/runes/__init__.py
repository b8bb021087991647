"""Runestone decoding and rune supply analytics.

The protocol pipeline runs payload extraction, field sequencing and
classification in that order; :class:`RuneTransactionDecoder` wires them
together. Analytics over indexer ledger entries live in
:mod:`runic_btc.runes.entry`.
"""

from runic_btc.runes.classifier import (
    CenotaphDetails,
    EtchingDetails,
    MintDetails,
    RuneTransaction,
    RuneTransactionDecoder,
    RuneTxDetails,
    TransferDetails,
    classify,
)
from runic_btc.runes.entry import (
    DataIntegrityError,
    EntryTerms,
    RuneArithmeticError,
    RuneEntry,
    premine_percentage,
    remaining_mints,
)
from runic_btc.runes.message import Flag, Message, Tag, decode_integers
from runic_btc.runes.model import Edict, Etching, Flaw, Rune, RuneId, SpacedRune, Terms
from runic_btc.runes.payload import Payload, extract_payload
from runic_btc.runes.runestone import Cenotaph, Runestone, decipher
from runic_btc.runes.varint import VarintError, decode_varint, encode_varint

__all__ = [
    "Cenotaph",
    "CenotaphDetails",
    "DataIntegrityError",
    "Edict",
    "EntryTerms",
    "Etching",
    "EtchingDetails",
    "Flag",
    "Flaw",
    "Message",
    "MintDetails",
    "Payload",
    "Rune",
    "RuneArithmeticError",
    "RuneEntry",
    "RuneId",
    "RuneTransaction",
    "RuneTransactionDecoder",
    "RuneTxDetails",
    "Runestone",
    "SpacedRune",
    "Tag",
    "Terms",
    "TransferDetails",
    "VarintError",
    "classify",
    "decipher",
    "decode_integers",
    "decode_varint",
    "encode_varint",
    "extract_payload",
    "premine_percentage",
    "remaining_mints",
]
