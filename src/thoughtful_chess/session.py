"""
Live game session: composition of streams, reconstruction, selection and clocks.

- GameSession: authoritative game data, replaced on full state and re-derived on delta state.
- SessionController: owns the account-level stream and, once a game starts, the
  game-level stream; dispatches decoded events; accepts player intents (select,
  confirm, cancel, resign, seek) and publishes immutable SessionSnapshots.

All methods are meant to run on one asyncio event loop. Threaded callers go
through runtime.SessionRuntime.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from . import rules
from .api import Account
from .clock import ClockPair, ClockSynchronizer, ClockTicker
from .errors import ApiError
from .events import DEFAULT_RATING, Event, GameFull, GameStart, GameState, decode_event
from .justifications import Justification, JustificationLog
from .reconstruct import MoveRecord, reconstruct
from .rules import Color
from .selection import MoveSelectionMachine, PendingMove, SelectionPhase, SelectionState


class SessionStatus(str, Enum):
    IDLE = "idle"
    SEEKING = "seeking"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass(frozen=True)
class TimeControl:
    label: str
    category: str
    initial: int  # seconds
    increment: int  # seconds


TIME_CONTROLS: tuple[TimeControl, ...] = (
    TimeControl("1+0", "Bullet", 60, 0),
    TimeControl("2+1", "Bullet", 120, 1),
    TimeControl("3+0", "Blitz", 180, 0),
    TimeControl("3+2", "Blitz", 180, 2),
    TimeControl("5+0", "Blitz", 300, 0),
    TimeControl("5+3", "Blitz", 300, 3),
    TimeControl("10+0", "Rapid", 600, 0),
    TimeControl("10+5", "Rapid", 600, 5),
    TimeControl("15+10", "Rapid", 900, 10),
    TimeControl("30+0", "Classical", 1800, 0),
)


@dataclass(frozen=True)
class GameSession:
    game_id: Optional[str] = None
    initial_fen: str = rules.STARTING_FEN
    moves: tuple[MoveRecord, ...] = ()
    fen: str = rules.STARTING_FEN
    side_to_move: Color = "white"
    player_color: Color = "white"
    opponent_name: str = ""
    opponent_rating: int = 0
    status: SessionStatus = SessionStatus.IDLE
    result: Optional[str] = None
    winner: Optional[str] = None  # "white" | "black" | "draw" | None
    initial_time_s: int = 0
    increment_s: int = 0
    last_move: Optional[tuple[str, str]] = None


# status code -> (result text, winner rule)
# winner rule: "not_to_move" | "from_event" | "draw" | None
TERMINAL_STATUSES: dict[str, tuple[str, Optional[str]]] = {
    "mate": ("Checkmate", "not_to_move"),
    "resign": ("Resignation", "from_event"),
    "timeout": ("Time out", "from_event"),
    "outoftime": ("Time out", "from_event"),
    "stalemate": ("Stalemate", "draw"),
    "draw": ("Draw", "draw"),
    "aborted": ("Aborted", None),
}


def terminal_outcome(status_code: str, winner: Optional[str], side_to_move: Color) -> Optional[tuple[str, Optional[str]]]:
    """Map a server status code to (result, winner); None for non-terminal or unknown codes."""
    entry = TERMINAL_STATUSES.get(status_code)
    if entry is None:
        return None
    result, rule = entry
    if rule == "not_to_move":
        return result, rules.opposite(side_to_move)
    if rule == "from_event":
        return result, winner
    return result, rule


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of everything the presentation layer needs."""

    session: GameSession
    phase: SelectionPhase
    selection: SelectionState
    pending: Optional[PendingMove]
    clocks: ClockPair
    is_player_turn: bool
    check_square: Optional[str]
    justifications: tuple[Justification, ...] = ()
    account: Optional[Account] = None

    def to_dict(self) -> dict:
        s = self.session
        return {
            "game_id": s.game_id,
            "status": s.status.value,
            "fen": s.fen,
            "initial_fen": s.initial_fen,
            "turn": s.side_to_move,
            "player_color": s.player_color,
            "opponent": {"name": s.opponent_name, "rating": s.opponent_rating},
            "result": s.result,
            "winner": s.winner,
            "moves": [{"uci": m.code, "san": m.san} for m in s.moves],
            "last_move": {"from": s.last_move[0], "to": s.last_move[1]} if s.last_move else None,
            "time_control": {"initial": s.initial_time_s, "increment": s.increment_s},
            "clocks": {"white": self.clocks.white_ms, "black": self.clocks.black_ms},
            "selection": {
                "phase": self.phase.value,
                "square": self.selection.origin,
                "legal_moves": sorted(self.selection.destinations),
            },
            "pending_move": None if self.pending is None else {
                "from": self.pending.origin,
                "to": self.pending.destination,
                "uci": self.pending.code,
                "san": self.pending.san,
                "promotion": self.pending.promotion,
            },
            "is_player_turn": self.is_player_turn,
            "check_square": self.check_square,
            "justifications": [
                {"move_number": j.move_number, "move": j.move, "uci": j.uci, "text": j.text, "timestamp": j.timestamp}
                for j in self.justifications
            ],
            "account": None if self.account is None else {
                "id": self.account.id,
                "username": self.account.username,
                "rating": self.account.rating,
                "title": self.account.title,
            },
        }


class SessionController:
    """Single owner of the session, its selection machine and its clocks.

    `api` is a LichessClient (or any object with the same coroutine and stream
    methods).
    """

    def __init__(self, api, account: Account | None = None, clock_tick_ms: int | None = None):
        self.log = logging.getLogger("session")
        self._api = api
        self.account = account
        self._session = GameSession()
        self._selection = MoveSelectionMachine()
        self._clock = ClockSynchronizer()
        self._ticker = ClockTicker(self._clock, clock_tick_ms)
        self._justifications = JustificationLog()
        self._account_stream = None
        self._game_stream = None
        self._game_stream_id: Optional[str] = None
        self._seek_task: Optional[asyncio.Task] = None
        self._listeners: list[Callable[[SessionSnapshot], None]] = []

    # ---------------- Read-only state -----------------
    @property
    def session(self) -> GameSession:
        return self._session

    @property
    def clock(self) -> ClockSynchronizer:
        return self._clock

    @property
    def ticker(self) -> ClockTicker:
        return self._ticker

    def _is_playing(self) -> bool:
        return self._session.status is SessionStatus.PLAYING

    def _is_player_turn(self) -> bool:
        return self._is_playing() and self._session.side_to_move == self._session.player_color

    def snapshot(self) -> SessionSnapshot:
        s = self._session
        check = rules.king_square_in_check(s.fen, s.side_to_move) if s.game_id else None
        return SessionSnapshot(
            session=s,
            phase=self._selection.phase,
            selection=self._selection.selection,
            pending=self._selection.pending,
            clocks=self._clock.snapshot(),
            is_player_turn=self._is_player_turn(),
            check_square=check,
            justifications=self._justifications.entries,
            account=self.account,
        )

    def subscribe(self, listener: Callable[[SessionSnapshot], None]) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                self.log.exception("Session listener failed")

    # ---------------- Connection lifecycle -----------------
    async def connect(self) -> Account:
        """Validate the token and remember the account (raises AuthError/ApiError)."""
        self.account = await self._api.get_account()
        self.log.info("Connected as %s (rating %s)", self.account.username, self.account.rating)
        return self.account

    def start(self) -> None:
        """Open the account-level stream (no-op if already open)."""
        if self._account_stream is not None and not self._account_stream.cancelled:
            return
        self._account_stream = self._api.stream_events(self.handle_account_record, self._on_account_error)

    def close(self) -> None:
        """Tear down ticker, seek and both streams. Safe to call repeatedly."""
        self._ticker.stop()
        self._clock.set_active(None)
        self._cancel_seek_task()
        self._close_game_stream()
        if self._account_stream is not None:
            self._account_stream.cancel()
            self._account_stream = None

    def _close_game_stream(self) -> None:
        if self._game_stream is not None:
            self._game_stream.cancel()
        self._game_stream = None
        self._game_stream_id = None

    def _on_account_error(self, exc: BaseException) -> None:
        self.log.error("Event stream error: %s", exc)

    def _on_game_error(self, exc: BaseException) -> None:
        self.log.error("Game stream error: %s", exc)

    def _open_game_stream(self, game_id: str) -> None:
        if game_id == self._game_stream_id and self._game_stream is not None and not self._game_stream.done:
            self.log.debug("Game stream for %s already open", game_id)
            return
        self._close_game_stream()
        self.log.info("Game started: %s", game_id)
        self._game_stream_id = game_id
        self._game_stream = self._api.stream_game(
            game_id, functools.partial(self.handle_game_record, game_id=game_id), self._on_game_error)

    # ---------------- Event dispatch -----------------
    def handle_account_record(self, record: dict) -> None:
        event = decode_event(record)
        if isinstance(event, GameStart):
            self._open_game_stream(event.game_id)
        else:
            self.log.debug("Ignoring account event %s", event.type)

    def handle_game_record(self, record: dict, game_id: str | None = None) -> None:
        if game_id is not None and game_id != self._game_stream_id:
            self.log.debug("Dropping record from retired game stream %s", game_id)
            return
        self.dispatch(decode_event(record))

    def dispatch(self, event: Event) -> None:
        if isinstance(event, GameFull):
            self._apply_full(event)
        elif isinstance(event, GameState):
            self._apply_delta(event)
        else:
            self.log.debug("Ignoring game event %s", event.type)
            return
        self._notify()

    def _player_color(self, event: GameFull) -> Color:
        if self.account is None:
            self.log.warning("No account loaded; assuming white in game %s", event.id)
            return "white"
        return "white" if event.white.id.lower() == self.account.id.lower() else "black"

    def _apply_full(self, event: GameFull) -> None:
        color = self._player_color(event)
        opponent = event.black if color == "white" else event.white
        recon = reconstruct(event.initial_fen, event.state.moves)
        previous = self._session
        initial_s = event.clock_initial_ms // 1000 if event.clock_initial_ms is not None else previous.initial_time_s
        increment_s = event.clock_increment_ms // 1000 if event.clock_increment_ms is not None else previous.increment_s
        status, result, winner = SessionStatus.PLAYING, None, None
        outcome = terminal_outcome(event.state.status, event.state.winner, recon.side_to_move)
        if outcome is not None:
            status = SessionStatus.FINISHED
            result, winner = outcome
        self._session = GameSession(
            game_id=event.id,
            initial_fen=rules.normalize_fen(event.initial_fen),
            moves=recon.records,
            fen=recon.fen,
            side_to_move=recon.side_to_move,
            player_color=color,
            opponent_name=opponent.name or opponent.id,
            opponent_rating=opponent.rating or DEFAULT_RATING,
            status=status,
            result=result,
            winner=winner,
            initial_time_s=initial_s,
            increment_s=increment_s,
            last_move=recon.last_move,
        )
        self.log.info("Game %s loaded: playing %s vs %s, %d moves", event.id, color, self._session.opponent_name, len(recon.records))
        self._after_update(event.state.wtime, event.state.btime)

    def _apply_delta(self, event: GameState) -> None:
        s = self._session
        recon = reconstruct(s.initial_fen, event.moves)
        status, result, winner = s.status, s.result, s.winner
        outcome = terminal_outcome(event.status, event.winner, recon.side_to_move)
        if outcome is not None:
            status = SessionStatus.FINISHED
            result, winner = outcome
            if s.status is not SessionStatus.FINISHED:
                self.log.info("Game %s finished: %s (winner: %s)", s.game_id, result, winner)
        self._session = replace(
            s,
            moves=recon.records,
            fen=recon.fen,
            side_to_move=recon.side_to_move,
            last_move=recon.last_move,
            status=status,
            result=result,
            winner=winner,
        )
        self._after_update(event.wtime, event.btime)

    def _after_update(self, white_ms: int, black_ms: int) -> None:
        # authoritative update: stale selection/pending move goes first
        self._selection.reset()
        self._clock.anchor(white_ms, black_ms)
        self._sync_ticker()

    def _sync_ticker(self) -> None:
        if self._is_playing():
            self._clock.set_active(self._session.side_to_move)
            self._ticker.start()
        else:
            self._clock.set_active(None)
            self._ticker.stop()

    # ---------------- Player intents -----------------
    def select_square(self, square: str) -> SelectionPhase:
        s = self._session
        phase = self._selection.select(square, fen=s.fen, player_color=s.player_color, playing=self._is_playing())
        self._notify()
        return phase

    def cancel_pending(self) -> None:
        self._selection.cancel()
        self._notify()

    async def confirm_move(self, justification: str | None = None) -> bool:
        """Submit the pending move. Returns True only if the server accepted it.

        The pending move is cleared before submission and not restored on
        failure. A justification outside the configured length bounds raises
        ValueError and leaves the pending move in place.
        """
        if justification is not None and self._selection.pending is not None:
            self._justifications.validate(justification)
        s = self._session
        pending = self._selection.confirm(fen=s.fen, player_color=s.player_color, playing=self._is_playing())
        if pending is None:
            return False
        if justification is not None:
            self._justifications.add(rules.fullmove_number(pending.fen), pending, justification)
        self._notify()
        try:
            await self._api.make_move(s.game_id, pending.code)
        except ApiError:
            self.log.exception("Failed to make move %s in game %s", pending.code, s.game_id)
            return False
        self.log.info("Submitted %s (%s) in game %s", pending.san, pending.code, s.game_id)
        return True

    async def resign(self) -> bool:
        s = self._session
        if not s.game_id or s.status is not SessionStatus.PLAYING:
            return False
        try:
            await self._api.resign(s.game_id)
        except ApiError:
            self.log.exception("Failed to resign game %s", s.game_id)
            return False
        return True

    async def abort(self) -> bool:
        s = self._session
        if not s.game_id or s.status is not SessionStatus.PLAYING:
            return False
        try:
            await self._api.abort(s.game_id)
        except ApiError:
            self.log.exception("Failed to abort game %s", s.game_id)
            return False
        return True

    def seek(self, initial_s: int, increment_s: int) -> None:
        """Post a seek in the background; status stays `seeking` until a game arrives."""
        if self._session.status in (SessionStatus.PLAYING, SessionStatus.SEEKING):
            self.log.warning("Cannot seek while %s", self._session.status.value)
            return
        if self._session.status is SessionStatus.FINISHED:
            self._clear_game()
        self._session = replace(self._session, status=SessionStatus.SEEKING, initial_time_s=initial_s, increment_s=increment_s)
        self._seek_task = asyncio.get_running_loop().create_task(self._run_seek(initial_s, increment_s))
        self._notify()

    async def _run_seek(self, initial_s: int, increment_s: int) -> None:
        try:
            await self._api.create_seek(initial_s, increment_s)
        except ApiError:
            self.log.exception("Failed to create seek %d+%d", initial_s // 60, increment_s)
            if self._session.status is SessionStatus.SEEKING:
                self._session = replace(self._session, status=SessionStatus.IDLE)
                self._notify()

    def _cancel_seek_task(self) -> None:
        task, self._seek_task = self._seek_task, None
        if task is not None and not task.done():
            task.cancel()

    def cancel_seek(self) -> None:
        self._cancel_seek_task()
        if self._session.status is SessionStatus.SEEKING:
            self._session = replace(self._session, status=SessionStatus.IDLE)
            self._notify()

    def reset(self) -> None:
        """Return to an idle session (after a finished game); the account stream stays open."""
        self._clear_game()
        self._notify()

    def _clear_game(self) -> None:
        self._ticker.stop()
        self._cancel_seek_task()
        self._close_game_stream()
        self._session = GameSession()
        self._selection.reset()
        self._clock.set_active(None)
        self._clock.anchor(0, 0)
        self._justifications.clear()
