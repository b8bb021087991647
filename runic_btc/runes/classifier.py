"""Classify deciphered runestones into rune transaction kinds."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..transaction import Transaction
from .model import Edict, Etching, Flaw, RuneId
from .runestone import Cenotaph, Runestone, decipher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EtchingDetails:
    """A new rune being etched.

    ``rune_name`` is the spaced display name, or ``None`` when the etching
    leaves the name to be assigned by the indexer. ``supply`` is ``None`` when
    the minting terms have no cap.
    """

    tx_id: str
    rune_name: Optional[str]
    supply: Optional[int]
    mintable: bool
    etching: Etching = field(repr=False)

    kind = "etching"


@dataclass(frozen=True)
class MintDetails:
    rune_id: RuneId

    kind = "mint"


@dataclass(frozen=True)
class TransferDetails:
    edicts: List[Edict]

    kind = "transfer"


@dataclass(frozen=True)
class CenotaphDetails:
    flaw: Flaw

    kind = "cenotaph"

    @property
    def reason(self) -> str:
        return self.flaw.describe()


RuneTransaction = Union[EtchingDetails, MintDetails, TransferDetails, CenotaphDetails]


@dataclass(frozen=True)
class RuneTxDetails:
    tx_id: str
    rune_tx: RuneTransaction

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly view; u128 quantities are rendered as strings."""

        rune_tx = self.rune_tx
        data: Dict[str, Any] = {"txid": self.tx_id, "kind": rune_tx.kind}
        if isinstance(rune_tx, EtchingDetails):
            etching = rune_tx.etching
            data.update(
                {
                    "rune_name": rune_tx.rune_name,
                    "supply": str(rune_tx.supply) if rune_tx.supply is not None else None,
                    "mintable": rune_tx.mintable,
                    "divisibility": etching.divisibility or 0,
                    "premine": str(etching.premine or 0),
                    "symbol": etching.symbol,
                    "turbo": etching.turbo,
                }
            )
        elif isinstance(rune_tx, MintDetails):
            data["rune_id"] = str(rune_tx.rune_id)
        elif isinstance(rune_tx, TransferDetails):
            data["edicts"] = [
                {"id": str(edict.id), "amount": str(edict.amount), "output": edict.output}
                for edict in rune_tx.edicts
            ]
        else:
            data["flaw"] = rune_tx.flaw.value
            data["reason"] = rune_tx.reason
        return data


def classify(tx_id: str, artifact: Union[Runestone, Cenotaph]) -> RuneTransaction:
    """Map a deciphered artifact to exactly one rune transaction kind.

    Precedence is etching, then mint, then transfer. A cenotaph discards
    whatever was partially decoded.
    """

    if isinstance(artifact, Cenotaph):
        return CenotaphDetails(flaw=artifact.flaw)

    etching = artifact.etching
    if etching is not None:
        spaced_rune = etching.spaced_rune
        return EtchingDetails(
            tx_id=tx_id,
            rune_name=str(spaced_rune) if spaced_rune is not None else None,
            supply=etching.supply(),
            mintable=etching.terms is not None,
            etching=etching,
        )
    if artifact.mint is not None:
        return MintDetails(rune_id=artifact.mint)
    return TransferDetails(edicts=list(artifact.edicts))


class RuneTransactionDecoder:
    """Decode rune activity from raw transactions."""

    def decode_tx(self, transaction: Transaction) -> Optional[RuneTxDetails]:
        """Return the rune activity of ``transaction`` or ``None`` without a runestone."""

        artifact = decipher(transaction)
        if artifact is None:
            return None
        tx_id = transaction.txid
        rune_tx = classify(tx_id, artifact)
        logger.debug("Decoded %s as %s", tx_id, rune_tx.kind)
        return RuneTxDetails(tx_id=tx_id, rune_tx=rune_tx)

    def decode_hex(self, raw_hex: str) -> Optional[RuneTxDetails]:
        return self.decode_tx(Transaction.from_hex(raw_hex))

    def decode_bytes(self, raw: bytes) -> Optional[RuneTxDetails]:
        return self.decode_tx(Transaction.from_bytes(raw))
