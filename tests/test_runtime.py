import unittest

from thoughtful_chess.errors import AuthError
from thoughtful_chess.runtime import SessionRuntime
from thoughtful_chess.selection import SelectionPhase
from thoughtful_chess.session import SessionStatus

from helpers import FakeApi, game_full, game_start


class SessionRuntimeTests(unittest.TestCase):
    def setUp(self):
        self.api = FakeApi()
        self.runtime = SessionRuntime(api_factory=lambda: self.api, call_timeout_s=5)

    def tearDown(self):
        self.runtime.stop()

    def test_calls_before_start_raise(self):
        self.assertFalse(self.runtime.started)
        with self.assertRaises(RuntimeError):
            self.runtime.snapshot()

    def test_start_connects_once(self):
        account = self.runtime.start()
        self.assertEqual(account.id, "me")
        self.assertTrue(self.runtime.started)
        self.assertIs(self.runtime.start(), account)
        self.assertEqual(len(self.api.event_streams), 1)
        self.api.get_account.assert_awaited_once()

    def test_intents_are_forwarded_to_loop(self):
        self.runtime.start()
        self.runtime._run(self.api.event_streams[0].emit, game_start())
        self.runtime._run(self.api.game_streams[0].emit, game_full())
        self.assertEqual(self.runtime.snapshot().session.status, SessionStatus.PLAYING)
        self.assertEqual(self.runtime.select_square("e2"), SelectionPhase.SQUARE_SELECTED)
        self.runtime.select_square("e4")
        self.assertTrue(self.runtime.confirm_move())
        self.api.make_move.assert_awaited_once_with("g1", "e2e4")

    def test_failed_login_closes_client(self):
        self.api.get_account.side_effect = AuthError("Invalid API token.", status=401)
        with self.assertRaises(AuthError):
            self.runtime.start()
        self.assertFalse(self.runtime.started)
        self.api.close.assert_awaited_once()

    def test_stop_closes_streams_and_client(self):
        self.runtime.start()
        stream = self.api.event_streams[0]
        self.runtime.stop()
        self.runtime.stop()
        self.assertTrue(stream.cancelled)
        self.assertFalse(self.runtime.started)
        self.api.close.assert_awaited_once()


if __name__ == "__main__":
    unittest.main()
