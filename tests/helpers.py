"""Shared fakes and record builders for the session tests."""
from unittest.mock import AsyncMock

from thoughtful_chess.api import Account


class FakeHandle:
    def __init__(self, on_event, on_error, game_id=None):
        self.on_event = on_event
        self.on_error = on_error
        self.game_id = game_id
        self.cancelled = False
        self.done = False
        self.cancel_calls = 0

    def cancel(self):
        self.cancel_calls += 1
        self.cancelled = True

    def emit(self, record):
        if not self.cancelled:
            self.on_event(record)

    def fail(self, exc):
        if not self.cancelled:
            self.on_error(exc)


class FakeApi:
    """Stands in for LichessClient; streams are driven by hand through FakeHandle."""

    def __init__(self, account_id="me"):
        self.account = Account(id=account_id, username=account_id.capitalize(), rating=1600)
        self.get_account = AsyncMock(return_value=self.account)
        self.make_move = AsyncMock(return_value=None)
        self.resign = AsyncMock(return_value=None)
        self.abort = AsyncMock(return_value=None)
        self.create_seek = AsyncMock(return_value=None)
        self.close = AsyncMock(return_value=None)
        self.event_streams = []
        self.game_streams = []

    def stream_events(self, on_event, on_error):
        handle = FakeHandle(on_event, on_error)
        self.event_streams.append(handle)
        return handle

    def stream_game(self, game_id, on_event, on_error):
        handle = FakeHandle(on_event, on_error, game_id=game_id)
        self.game_streams.append(handle)
        return handle


def game_state(moves="", wtime=600000, btime=600000, status="started", winner=None):
    rec = {"type": "gameState", "moves": moves, "wtime": wtime, "btime": btime, "status": status}
    if winner:
        rec["winner"] = winner
    return rec


def game_full(game_id="g1", white_id="me", black_id="opp", moves="", status="started",
              wtime=600000, btime=600000, initial_fen="startpos", clock=None, winner=None):
    rec = {
        "type": "gameFull",
        "id": game_id,
        "white": {"id": white_id, "name": white_id.capitalize(), "rating": 1700},
        "black": {"id": black_id, "name": black_id.capitalize(), "rating": 1800},
        "initialFen": initial_fen,
        "state": game_state(moves, wtime, btime, status, winner),
    }
    if clock is not None:
        rec["clock"] = clock
    return rec


def game_start(game_id="g1"):
    return {"type": "gameStart", "game": {"gameId": game_id, "color": "white", "opponent": {"username": "opp"}}}
