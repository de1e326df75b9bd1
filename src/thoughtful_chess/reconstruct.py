"""
Position reconstruction from an ordered move list.

reconstruct() replays every move code from the initial position through the
rules oracle. It is recomputed from scratch on each full or delta event
instead of diffing against the previous position, so local state cannot drift
from the server's move list.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from . import rules
from .rules import Color

log = logging.getLogger("reconstruct")


@dataclass(frozen=True)
class MoveRecord:
    """One applied move: compact code plus its SAN once resolved."""

    code: str
    origin: str
    destination: str
    promotion: Optional[str] = None
    san: Optional[str] = None


@dataclass(frozen=True)
class Reconstruction:
    fen: str
    side_to_move: Color
    last_move: Optional[tuple[str, str]]
    records: tuple[MoveRecord, ...]


def reconstruct(initial_fen: Optional[str], moves: str | Iterable[str]) -> Reconstruction:
    """Replay `moves` from `initial_fen` and return the resulting position.

    Moves the oracle rejects (malformed or illegal in the running position) are
    logged and skipped; replay continues from the last good position. Only
    applied moves appear in `records`, so replaying `records` reproduces `fen`.
    """
    fen = rules.normalize_fen(initial_fen)
    codes = moves.split(" ") if isinstance(moves, str) else list(moves)
    records: list[MoveRecord] = []
    for idx, code in enumerate(c for c in codes if c):
        parsed = rules.parse_move_code(code)
        applied = rules.apply_move(fen, *parsed) if parsed else None
        if applied is None:
            log.warning("Skipping unplayable move #%d %r in position %s", idx + 1, code, fen)
            continue
        origin, destination, promotion = parsed
        fen, san = applied
        records.append(MoveRecord(code=code.lower(), origin=origin, destination=destination, promotion=promotion, san=san))
    last = (records[-1].origin, records[-1].destination) if records else None
    return Reconstruction(fen=fen, side_to_move=rules.side_to_move(fen), last_move=last, records=tuple(records))
