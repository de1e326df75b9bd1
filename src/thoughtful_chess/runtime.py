"""
Background event loop bridge for threaded callers.

SessionRuntime runs one asyncio loop in a daemon thread and owns the
SessionController living on it. Flask request handlers (or any other thread)
never touch session state directly: every intent and snapshot read is
scheduled onto the loop with run_coroutine_threadsafe and awaited with a
timeout, so all mutations stay serialized on the loop.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Optional

from .api import Account, LichessClient
from .session import SessionController, SessionSnapshot

DEFAULT_CALL_TIMEOUT_S = 30.0


class SessionRuntime:
    def __init__(self, api_factory: Callable[[], Any] | None = None, call_timeout_s: float = DEFAULT_CALL_TIMEOUT_S):
        self.log = logging.getLogger("runtime")
        self._api_factory = api_factory or LichessClient
        self._call_timeout_s = call_timeout_s
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="session-loop", daemon=True)
        self._lock = threading.Lock()
        self._api = None
        self.controller: Optional[SessionController] = None

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    @property
    def started(self) -> bool:
        return self.controller is not None

    def _call(self, coro: Awaitable[Any], timeout: float | None = None) -> Any:
        fut = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return fut.result(timeout or self._call_timeout_s)

    def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a synchronous controller method on the loop thread and return its result."""
        async def _invoke():
            return fn(*args)
        return self._call(_invoke())

    def _require(self) -> SessionController:
        if self.controller is None:
            raise RuntimeError("Session runtime not started")
        return self.controller

    # ---------------- Lifecycle -----------------
    def start(self) -> Account:
        """Start the loop thread, validate the token and open the account stream."""
        with self._lock:
            if self.controller is not None:
                return self.controller.account
            if not self._thread.is_alive():
                self._thread.start()
            return self._call(self._astart())

    async def _astart(self) -> Account:
        self._api = self._api_factory()
        controller = SessionController(self._api)
        try:
            account = await controller.connect()
        except Exception:
            await self._close_api()
            raise
        controller.start()
        self.controller = controller
        return account

    def stop(self) -> None:
        with self._lock:
            if self._thread.is_alive():
                self._call(self._astop())
                self._loop.call_soon_threadsafe(self._loop.stop)
                self._thread.join(timeout=5)
            self.controller = None

    async def _astop(self) -> None:
        if self.controller is not None:
            self.controller.close()
        await self._close_api()

    async def _close_api(self) -> None:
        close = getattr(self._api, "close", None)
        if close is not None:
            await close()
        self._api = None

    # ---------------- Intents / reads -----------------
    def snapshot(self) -> SessionSnapshot:
        return self._run(self._require().snapshot)

    def select_square(self, square: str):
        return self._run(self._require().select_square, square)

    def cancel_pending(self) -> None:
        self._run(self._require().cancel_pending)

    def confirm_move(self, justification: str | None = None) -> bool:
        return self._call(self._require().confirm_move(justification))

    def resign(self) -> bool:
        return self._call(self._require().resign())

    def abort(self) -> bool:
        return self._call(self._require().abort())

    def seek(self, initial_s: int, increment_s: int) -> None:
        self._run(self._require().seek, initial_s, increment_s)

    def cancel_seek(self) -> None:
        self._run(self._require().cancel_seek)

    def reset(self) -> None:
        self._run(self._require().reset)
