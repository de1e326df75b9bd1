"""
Event records consumed from the account and game streams.

Each decoded JSON record becomes one tagged variant, decided once at the
stream boundary:

- GameFull:  complete snapshot of a game (players, initial FEN, clock, nested state)
- GameState: incremental update (move list, both clocks, status, optional winner)
- GameStart: account-level "game found" notification carrying the new game id
- Unknown:   anything else (challenges, gameFinish, malformed shapes); ignored by dispatch
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

log = logging.getLogger("events")

DEFAULT_RATING = 1500


@dataclass(frozen=True)
class PlayerInfo:
    id: str
    name: str
    rating: Optional[int] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class GameState:
    moves: tuple[str, ...]
    wtime: int
    btime: int
    status: str
    winner: Optional[str] = None
    type: str = "gameState"


@dataclass(frozen=True)
class GameFull:
    id: str
    white: PlayerInfo
    black: PlayerInfo
    initial_fen: str
    state: GameState
    clock_initial_ms: Optional[int] = None
    clock_increment_ms: Optional[int] = None
    type: str = "gameFull"


@dataclass(frozen=True)
class GameStart:
    game_id: str
    color: Optional[str] = None
    opponent: Optional[str] = None
    type: str = "gameStart"


@dataclass(frozen=True)
class Unknown:
    type: str
    raw: dict = field(default_factory=dict, compare=False)


Event = Union[GameFull, GameState, GameStart, Unknown]


def split_moves(moves: str | None) -> tuple[str, ...]:
    """Split the server's space-separated move list into individual codes."""
    return tuple(m for m in (moves or "").split(" ") if m)


def _player(d: dict) -> PlayerInfo:
    if "aiLevel" in d and "id" not in d:
        return PlayerInfo(id="", name=f"Stockfish level {d['aiLevel']}")
    pid = str(d.get("id") or "")
    rating = d.get("rating")
    return PlayerInfo(
        id=pid,
        name=str(d.get("name") or d.get("username") or pid),
        rating=int(rating) if rating is not None else None,
        title=d.get("title"),
    )


def _game_state(d: dict) -> GameState:
    return GameState(
        moves=split_moves(d.get("moves")),
        wtime=int(d.get("wtime") or 0),
        btime=int(d.get("btime") or 0),
        status=str(d.get("status") or ""),
        winner=d.get("winner"),
    )


def _game_full(d: dict) -> GameFull:
    clock = d.get("clock") or {}
    return GameFull(
        id=str(d["id"]),
        white=_player(d.get("white") or {}),
        black=_player(d.get("black") or {}),
        initial_fen=str(d.get("initialFen") or "startpos"),
        state=_game_state(d.get("state") or {}),
        clock_initial_ms=clock.get("initial"),
        clock_increment_ms=clock.get("increment"),
    )


def _game_start(d: dict) -> GameStart:
    game = d["game"]
    opponent = game.get("opponent") or {}
    return GameStart(
        game_id=str(game.get("gameId") or game["id"]),
        color=game.get("color"),
        opponent=opponent.get("username") or opponent.get("id"),
    )


_DECODERS = {
    "gameFull": _game_full,
    "gameState": _game_state,
    "gameStart": _game_start,
}


def decode_event(record: dict) -> Event:
    """Turn one parsed stream record into a tagged event; unsupported shapes become Unknown."""
    kind = str(record.get("type") or "")
    decoder = _DECODERS.get(kind)
    if decoder is None:
        return Unknown(type=kind, raw=record)
    try:
        return decoder(record)
    except (KeyError, TypeError, ValueError, AttributeError):
        log.debug("Malformed %s record ignored: %r", kind, record)
        return Unknown(type=kind, raw=record)
