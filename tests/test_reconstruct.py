import unittest

from thoughtful_chess import rules
from thoughtful_chess.reconstruct import reconstruct

ITALIAN = "e2e4 e7e5 g1f3 b8c6 f1c4 f8c5"


class ReconstructTests(unittest.TestCase):
    def test_empty_move_list(self):
        r = reconstruct("startpos", "")
        self.assertEqual(r.fen, rules.STARTING_FEN)
        self.assertEqual(r.side_to_move, "white")
        self.assertIsNone(r.last_move)
        self.assertEqual(r.records, ())

    def test_replay_matches_stepwise_application(self):
        fen = rules.STARTING_FEN
        for code in ITALIAN.split():
            fen, _ = rules.apply_move(fen, *rules.parse_move_code(code))
        r = reconstruct("startpos", ITALIAN)
        self.assertEqual(r.fen, fen)
        self.assertEqual(r.side_to_move, "white")
        self.assertEqual(r.last_move, ("f8", "c5"))
        self.assertEqual([m.san for m in r.records], ["e4", "e5", "Nf3", "Nc6", "Bc4", "Bc5"])

    def test_illegal_and_malformed_moves_are_skipped(self):
        with self.assertLogs("reconstruct", level="WARNING") as logs:
            r = reconstruct("startpos", "e2e4 e7e5 e4e5 zz99 g1f3")
        self.assertEqual(len(logs.output), 2)
        self.assertEqual([m.code for m in r.records], ["e2e4", "e7e5", "g1f3"])
        self.assertEqual(r.fen, reconstruct(None, ["e2e4", "e7e5", "g1f3"]).fen)

    def test_records_replay_to_same_position(self):
        r = reconstruct("startpos", "e2e4 d7d5 e4d5 d8d5 b1c3")
        again = reconstruct("startpos", [m.code for m in r.records])
        self.assertEqual(again.fen, r.fen)
        self.assertEqual(again.side_to_move, rules.side_to_move(r.fen))

    def test_custom_initial_position_and_promotion(self):
        r = reconstruct("7k/4P3/8/8/8/8/8/K7 w - - 0 1", "e7e8q")
        self.assertEqual(r.records[0].promotion, "q")
        self.assertTrue(r.records[0].san.startswith("e8=Q"))
        self.assertEqual(r.side_to_move, "black")


if __name__ == "__main__":
    unittest.main()
