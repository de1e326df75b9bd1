"""
Move selection state machine.

    IDLE --select own piece--> SQUARE_SELECTED --select legal target--> PENDING_CONFIRMATION
      ^                               |                                      |
      +------ other square / same ----+                                      |
      +------------------- confirm / cancel / reset -------------------------+

reset() is the transition taken on every authoritative session update: the
selection and any pending move were computed against a position that is now
stale. Every transition except cancel and reset requires that the game is
being played and that it is the player's turn.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from . import rules
from .rules import Color

log = logging.getLogger("selection")

AUTO_PROMOTION = "q"


class SelectionPhase(str, Enum):
    IDLE = "idle"
    SQUARE_SELECTED = "square_selected"
    PENDING_CONFIRMATION = "pending_confirmation"


@dataclass(frozen=True)
class SelectionState:
    origin: Optional[str] = None
    destinations: frozenset[str] = frozenset()


@dataclass(frozen=True)
class PendingMove:
    """A locally validated move awaiting confirmation, tied to the FEN it was computed from."""

    origin: str
    destination: str
    code: str
    san: str
    fen: str
    promotion: Optional[str] = None


class MoveSelectionMachine:
    def __init__(self):
        self.phase = SelectionPhase.IDLE
        self.selection = SelectionState()
        self.pending: Optional[PendingMove] = None

    @staticmethod
    def _can_act(fen: str, player_color: Color, playing: bool) -> bool:
        return playing and rules.side_to_move(fen) == player_color

    def _to_idle(self) -> None:
        self.phase = SelectionPhase.IDLE
        self.selection = SelectionState()
        self.pending = None

    def select(self, square: str, *, fen: str, player_color: Color, playing: bool) -> SelectionPhase:
        """Handle a square click and return the resulting phase."""
        if not self._can_act(fen, player_color, playing):
            return self.phase
        square = (square or "").strip().lower()

        if self.phase is SelectionPhase.IDLE:
            if rules.piece_color_at(fen, square) == player_color:
                self.phase = SelectionPhase.SQUARE_SELECTED
                self.selection = SelectionState(origin=square, destinations=rules.legal_destinations(fen, square))
            return self.phase

        if self.phase is SelectionPhase.SQUARE_SELECTED:
            origin = self.selection.origin
            if square == origin or square not in self.selection.destinations:
                self._to_idle()
                return self.phase
            promotion = AUTO_PROMOTION if rules.is_promotion(fen, origin, square) else None
            applied = rules.apply_move(fen, origin, square, promotion)
            if applied is None:
                log.warning("Oracle rejected %s%s despite legal destination set", origin, square)
                self._to_idle()
                return self.phase
            _, san = applied
            self.pending = PendingMove(
                origin=origin,
                destination=square,
                code=rules.move_code(origin, square, promotion),
                san=san,
                fen=fen,
                promotion=promotion,
            )
            self.phase = SelectionPhase.PENDING_CONFIRMATION
            self.selection = SelectionState()
            return self.phase

        # PENDING_CONFIRMATION: squares are ignored until confirm or cancel
        return self.phase

    def confirm(self, *, fen: str, player_color: Color, playing: bool) -> Optional[PendingMove]:
        """Hand over the pending move for submission and return to IDLE.

        Returns None (and changes nothing) when there is no pending move or the
        guard rejects the transition.
        """
        if self.phase is not SelectionPhase.PENDING_CONFIRMATION or self.pending is None:
            return None
        if not self._can_act(fen, player_color, playing):
            return None
        pending = self.pending
        self._to_idle()
        return pending

    def cancel(self) -> None:
        self._to_idle()

    def reset(self) -> None:
        if self.phase is not SelectionPhase.IDLE:
            log.debug("Discarding %s after authoritative update", self.phase.value)
        self._to_idle()
