"""
Terminal client for one live game.

Connects with LICHESS_TOKEN, optionally posts a seek, and attaches to the next
game the account stream reports. Type a square (e2) to select a piece, then a
target square to compose a move; confirm with "ok <justification>" or "cancel".
Other commands: board, resign, abort, quit.
"""
import argparse
import asyncio
import logging
import os
import sys

import chess

ROOT = os.path.abspath(os.path.dirname(__file__))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from thoughtful_chess.api import LichessClient
from thoughtful_chess.clock import format_clock
from thoughtful_chess.config import SETTINGS
from thoughtful_chess.errors import ThoughtfulChessError
from thoughtful_chess.session import TIME_CONTROLS, SessionController, SessionSnapshot, SessionStatus

log = logging.getLogger("play_one")


def render(snap: SessionSnapshot) -> str:
    s = snap.session
    board = chess.Board(s.fen)
    lines = [board.unicode(empty_square=".", orientation=chess.WHITE if s.player_color == "white" else chess.BLACK)]
    lines.append(f"White {format_clock(snap.clocks.white_ms)} | Black {format_clock(snap.clocks.black_ms)}")
    lines.append(f"You: {s.player_color}  vs  {s.opponent_name} ({s.opponent_rating})  status={s.status.value}")
    if s.moves:
        lines.append("Last: " + " ".join(m.san or m.code for m in s.moves[-6:]))
    if snap.check_square:
        lines.append(f"Check! ({snap.check_square})")
    if snap.selection.origin:
        lines.append(f"Selected {snap.selection.origin}: " + " ".join(sorted(snap.selection.destinations)))
    if snap.pending:
        lines.append(f"Pending {snap.pending.san} ({snap.pending.code}) - 'ok <why>' to confirm, 'cancel' to discard")
    if s.status is SessionStatus.FINISHED:
        lines.append(f"Game over: {s.result} (winner: {s.winner})")
    return "\n".join(lines)


class Printer:
    """Prints the board whenever the position or game status changes."""

    def __init__(self):
        self._last = None

    def __call__(self, snap: SessionSnapshot) -> None:
        key = (snap.session.fen, snap.session.status)
        if key != self._last:
            self._last = key
            print("\n" + render(snap))


async def main(args) -> int:
    api = LichessClient()
    controller = SessionController(api)
    try:
        account = await controller.connect()
    except ThoughtfulChessError as e:
        log.error("%s", e)
        await api.close()
        return 1
    print(f"Connected as {account.username} ({account.rating})")
    controller.subscribe(Printer())
    controller.start()
    if args.time_control:
        tc = next(t for t in TIME_CONTROLS if t.label == args.time_control)
        controller.seek(tc.initial, tc.increment)
        print(f"Seeking {tc.label} ({tc.category})...")

    loop = asyncio.get_running_loop()
    try:
        while True:
            raw = (await loop.run_in_executor(None, input, "> ")).strip()
            if not raw:
                continue
            cmd, _, rest = raw.partition(" ")
            cmd = cmd.lower()
            if cmd in ("quit", "exit"):
                break
            if cmd == "board":
                print(render(controller.snapshot()))
            elif cmd == "cancel":
                controller.cancel_pending()
            elif cmd == "ok":
                try:
                    ok = await controller.confirm_move(rest or None)
                except ValueError as e:
                    print(e)
                    continue
                print("Move sent." if ok else "Move not sent.")
            elif cmd == "resign":
                await controller.resign()
            elif cmd == "abort":
                await controller.abort()
            else:
                controller.select_square(cmd)
                snap = controller.snapshot()
                if snap.selection.origin or snap.pending:
                    print(render(snap).splitlines()[-1])
    finally:
        controller.close()
        await api.close()
    return 0


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--time-control", choices=[t.label for t in TIME_CONTROLS], default=None,
                    help="Post a casual seek with this time control (omit to attach to an existing game)")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args()

    log_level = (args.log_level or SETTINGS.log_level).upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        sys.exit(asyncio.run(main(args)))
    except KeyboardInterrupt:
        pass
