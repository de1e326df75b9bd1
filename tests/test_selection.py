import unittest

from thoughtful_chess import rules
from thoughtful_chess.selection import MoveSelectionMachine, SelectionPhase

START = rules.STARTING_FEN
PROMO = "7k/4P3/8/8/8/8/8/K7 w - - 0 1"


class SelectionMachineTests(unittest.TestCase):
    def setUp(self):
        self.m = MoveSelectionMachine()

    def select(self, square, fen=START, color="white", playing=True):
        return self.m.select(square, fen=fen, player_color=color, playing=playing)

    def test_select_own_piece_lists_destinations(self):
        self.assertEqual(self.select("e2"), SelectionPhase.SQUARE_SELECTED)
        self.assertEqual(self.m.selection.origin, "e2")
        self.assertEqual(self.m.selection.destinations, frozenset({"e3", "e4"}))

    def test_select_target_creates_pending_move(self):
        self.select("e2")
        self.assertEqual(self.select("e4"), SelectionPhase.PENDING_CONFIRMATION)
        p = self.m.pending
        self.assertEqual((p.code, p.san, p.fen), ("e2e4", "e4", START))
        self.assertIsNone(p.promotion)

    def test_pending_move_is_always_legal(self):
        for origin in ("b1", "g1", "a2", "h2", "d2"):
            self.m.reset()
            self.select(origin)
            for dest in sorted(self.m.selection.destinations):
                m = MoveSelectionMachine()
                m.select(origin, fen=START, player_color="white", playing=True)
                m.select(dest, fen=START, player_color="white", playing=True)
                self.assertIsNotNone(rules.apply_move(START, m.pending.origin, m.pending.destination))

    def test_promotion_defaults_to_queen(self):
        self.select("e7", fen=PROMO)
        self.select("e8", fen=PROMO)
        self.assertEqual(self.m.pending.code, "e7e8q")
        self.assertTrue(self.m.pending.san.startswith("e8=Q"))

    def test_opponent_piece_or_empty_square_is_ignored(self):
        self.assertEqual(self.select("e7"), SelectionPhase.IDLE)
        self.assertEqual(self.select("e4"), SelectionPhase.IDLE)

    def test_same_or_unreachable_square_deselects(self):
        self.select("e2")
        self.assertEqual(self.select("e2"), SelectionPhase.IDLE)
        self.select("e2")
        self.assertEqual(self.select("e5"), SelectionPhase.IDLE)
        self.assertIsNone(self.m.selection.origin)

    def test_guard_blocks_when_not_player_turn_or_not_playing(self):
        self.assertEqual(self.select("e7", color="black"), SelectionPhase.IDLE)
        self.assertEqual(self.select("e2", playing=False), SelectionPhase.IDLE)

    def test_squares_ignored_while_pending(self):
        self.select("e2")
        self.select("e4")
        self.assertEqual(self.select("d2"), SelectionPhase.PENDING_CONFIRMATION)
        self.assertEqual(self.m.pending.code, "e2e4")

    def test_confirm_returns_pending_and_goes_idle(self):
        self.select("g1")
        self.select("f3")
        pending = self.m.confirm(fen=START, player_color="white", playing=True)
        self.assertEqual(pending.san, "Nf3")
        self.assertEqual(self.m.phase, SelectionPhase.IDLE)
        self.assertIsNone(self.m.pending)
        self.assertIsNone(self.m.confirm(fen=START, player_color="white", playing=True))

    def test_confirm_blocked_by_guard_keeps_pending(self):
        self.select("e2")
        self.select("e4")
        self.assertIsNone(self.m.confirm(fen=START, player_color="white", playing=False))
        self.assertEqual(self.m.phase, SelectionPhase.PENDING_CONFIRMATION)

    def test_cancel_and_reset(self):
        self.select("e2")
        self.select("e4")
        self.m.cancel()
        self.assertEqual(self.m.phase, SelectionPhase.IDLE)
        self.assertIsNone(self.m.pending)
        self.select("e2")
        self.m.reset()
        self.assertEqual(self.m.phase, SelectionPhase.IDLE)
        self.assertEqual(self.m.selection.destinations, frozenset())


if __name__ == "__main__":
    unittest.main()
