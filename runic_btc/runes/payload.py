"""Locate the runestone output of a transaction and collect its payload."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..transaction import OP_13, OP_RETURN, ScriptDecodeError, Transaction, iter_instructions
from .model import Flaw

logger = logging.getLogger(__name__)

MAGIC_NUMBER = OP_13


@dataclass(frozen=True)
class Payload:
    """Bytes pushed after the runestone marker.

    ``flaw`` is set when the script was malformed; such payloads still mark
    the transaction as carrying a runestone but decode to a cenotaph.
    """

    vout: int
    data: bytes
    flaw: Optional[Flaw] = None

    @property
    def is_valid(self) -> bool:
        return self.flaw is None


def is_runestone_script(script: bytes) -> bool:
    """Return True when ``script`` begins with ``OP_RETURN OP_13``."""

    return len(script) >= 2 and script[0] == OP_RETURN and script[1] == MAGIC_NUMBER


def extract_payload(transaction: Transaction) -> Optional[Payload]:
    """Return the payload of the first runestone output, or ``None``.

    Data pushes after the marker are concatenated in script order. Any other
    opcode ends collection and the bytes gathered so far are kept. A push
    that runs past the end of the script yields an invalid payload.
    """

    for vout, output in enumerate(transaction.outputs):
        script = output.script_pubkey
        if not is_runestone_script(script):
            continue

        collected = bytearray()
        try:
            for instruction in iter_instructions(script[2:]):
                if not instruction.is_push:
                    logger.debug(
                        "Opcode 0x%02x ends runestone payload in vout %d", instruction.opcode, vout
                    )
                    break
                collected.extend(instruction.data or b"")
        except ScriptDecodeError as exc:
            logger.debug("Malformed runestone script in vout %d: %s", vout, exc)
            return Payload(vout=vout, data=bytes(collected), flaw=Flaw.INVALID_SCRIPT)

        return Payload(vout=vout, data=bytes(collected))

    return None
