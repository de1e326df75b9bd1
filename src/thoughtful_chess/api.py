"""
Lichess board API transport.

Endpoints (bearer token auth):
  - GET  /api/account
  - GET  /api/stream/event                      (NDJSON, account-level)
  - GET  /api/board/game/stream/{gameId}        (NDJSON, game-level)
  - POST /api/board/seek                        (held open until paired)
  - POST /api/board/game/{gameId}/move/{code}
  - POST /api/board/game/{gameId}/resign
  - POST /api/board/game/{gameId}/abort

Request/response calls raise ApiError (AuthError on 401); streams report
failures through their on_error callback instead.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .config import SETTINGS
from .errors import ApiError, AuthError, ConfigurationError
from .events import DEFAULT_RATING
from .stream import ErrorCallback, EventCallback, ReconnectingStream, StreamClient, StreamHandle

log = logging.getLogger("api")


@dataclass(frozen=True)
class Account:
    id: str
    username: str
    rating: int
    title: Optional[str] = None


def _account_from_json(data: dict) -> Account:
    perfs = data.get("perfs") or {}
    rating = DEFAULT_RATING
    for perf in ("rapid", "blitz", "classical"):
        value = (perfs.get(perf) or {}).get("rating")
        if value:
            rating = int(value)
            break
    return Account(id=data["id"], username=data.get("username") or data["id"], rating=rating, title=data.get("title"))


class LichessClient:
    def __init__(self, token: str | None = None, base_url: str | None = None,
                 session: aiohttp.ClientSession | None = None, reconnect: bool | None = None):
        token = SETTINGS.lichess_token if token is None else token
        if not token:
            raise ConfigurationError("LICHESS_TOKEN is not set (environment, .env or settings.yml)")
        self.base_url = (base_url or SETTINGS.base_url).rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._session = session
        self._owns_session = session is None
        self._reconnect = SETTINGS.stream_reconnect if reconnect is None else reconnect
        self._timeout = aiohttp.ClientTimeout(total=SETTINGS.request_timeout_s)

    def _http(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # ---------------- Request / response -----------------
    async def _post(self, path: str, action: str, data: dict | None = None,
                    timeout: aiohttp.ClientTimeout | None = None) -> str:
        url = f"{self.base_url}{path}"
        try:
            async with self._http().post(url, headers=self._headers, data=data, timeout=timeout or self._timeout) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    raise ApiError(f"Failed to {action}: {resp.status}", status=resp.status)
                return text
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ApiError(f"Failed to {action}: {exc!r}") from exc

    async def get_account(self) -> Account:
        url = f"{self.base_url}/api/account"
        try:
            async with self._http().get(url, headers=self._headers, timeout=self._timeout) as resp:
                if resp.status == 401:
                    raise AuthError("Invalid API token. Please check your token and try again.", status=401)
                if resp.status != 200:
                    raise ApiError(f"Failed to get account: {resp.status}", status=resp.status)
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ApiError(f"Failed to get account: {exc!r}") from exc
        return _account_from_json(data)

    async def create_seek(self, initial_s: int, increment_s: int, rated: bool = False) -> None:
        """Post a real-time seek; returns once the server pairs it (or drops it)."""
        form = {
            "rated": "true" if rated else "false",
            "time": f"{initial_s / 60:g}",
            "increment": str(increment_s),
        }
        # the server keeps the request open while the seek is active
        await self._post("/api/board/seek", "create seek", data=form, timeout=aiohttp.ClientTimeout(total=None))

    async def make_move(self, game_id: str, code: str) -> None:
        await self._post(f"/api/board/game/{game_id}/move/{code}", "make move")

    async def resign(self, game_id: str) -> None:
        await self._post(f"/api/board/game/{game_id}/resign", "resign")

    async def abort(self, game_id: str) -> None:
        await self._post(f"/api/board/game/{game_id}/abort", "abort")

    # ---------------- Streams -----------------
    def _streamer(self) -> StreamClient | ReconnectingStream:
        client = StreamClient(self._http(), headers=self._headers)
        return ReconnectingStream(client) if self._reconnect else client

    def stream_events(self, on_event: EventCallback, on_error: ErrorCallback) -> StreamHandle:
        return self._streamer().open(f"{self.base_url}/api/stream/event", on_event, on_error, label="account")

    def stream_game(self, game_id: str, on_event: EventCallback, on_error: ErrorCallback) -> StreamHandle:
        return self._streamer().open(f"{self.base_url}/api/board/game/stream/{game_id}", on_event, on_error,
                                     label=f"game:{game_id}")
