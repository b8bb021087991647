"""Runestone decoding and rune analytics for Bitcoin."""

from .runes import (
    CenotaphDetails,
    DataIntegrityError,
    EtchingDetails,
    MintDetails,
    RuneArithmeticError,
    RuneEntry,
    RuneId,
    RuneTransactionDecoder,
    RuneTxDetails,
    TransferDetails,
    decipher,
    premine_percentage,
    remaining_mints,
)
from .transaction import Transaction, TransactionDecodeError

__all__ = [
    "CenotaphDetails",
    "DataIntegrityError",
    "EtchingDetails",
    "MintDetails",
    "RuneArithmeticError",
    "RuneEntry",
    "RuneId",
    "RuneTransactionDecoder",
    "RuneTxDetails",
    "Transaction",
    "TransactionDecodeError",
    "TransferDetails",
    "decipher",
    "premine_percentage",
    "remaining_mints",
]
