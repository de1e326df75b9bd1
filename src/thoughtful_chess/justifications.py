"""
Per-move justifications written by the player before confirming a move.

Kept for the current session only; cleared when the session is reset.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from .config import SETTINGS
from .selection import PendingMove


@dataclass(frozen=True)
class Justification:
    move_number: int
    move: str  # SAN
    uci: str
    text: str
    timestamp: float
    fen: str  # position the move was made from


class JustificationLog:
    def __init__(self, min_chars: int | None = None, max_chars: int | None = None):
        self.min_chars = SETTINGS.justification_min if min_chars is None else min_chars
        self.max_chars = SETTINGS.justification_max if max_chars is None else max_chars
        self._entries: list[Justification] = []

    @property
    def entries(self) -> tuple[Justification, ...]:
        return tuple(self._entries)

    def validate(self, text: str) -> str:
        """Return the stripped text, or raise ValueError if its length is out of bounds."""
        cleaned = (text or "").strip()
        if not self.min_chars <= len(cleaned) <= self.max_chars:
            raise ValueError(
                f"Justification must be {self.min_chars}-{self.max_chars} characters (got {len(cleaned)})"
            )
        return cleaned

    def add(self, move_number: int, pending: PendingMove, text: str) -> Justification:
        entry = Justification(
            move_number=move_number,
            move=pending.san,
            uci=pending.code,
            text=self.validate(text),
            timestamp=time.time(),
            fen=pending.fen,
        )
        self._entries.append(entry)
        return entry

    def find(self, move_number: int, uci: str) -> Optional[Justification]:
        for entry in self._entries:
            if entry.uci == uci and entry.move_number == move_number:
                return entry
        return None

    def clear(self) -> None:
        self._entries.clear()
