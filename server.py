"""
Minimal Flask API that exposes the live session to a local UI.

Endpoints:
- POST /api/connect            -> validate the Lichess token and open the account stream
- POST /api/disconnect         -> close streams and drop the session
- GET  /api/session            -> read-only session snapshot (board, clocks, selection, pending move)
- GET  /api/time-controls      -> seek presets grouped by category
- POST /api/seek               -> start seeking ({"time_control": "15+10"} or {"initial": s, "increment": s})
- POST /api/seek/cancel        -> stop seeking
- POST /api/select             -> square click ({"square": "e2"})
- POST /api/pending/confirm    -> submit the pending move ({"justification": "..."})
- POST /api/pending/cancel     -> discard the pending move
- POST /api/resign | /api/abort | /api/reset

The session itself lives on the runtime's event loop thread; handlers only
forward intents and read snapshots through SessionRuntime.
"""
from __future__ import annotations

import functools
import logging
import os
import sys
import threading

from flask import Flask, jsonify, request

# Allow running from a checkout without installing the package
SRC = os.path.join(os.path.dirname(os.path.abspath(__file__)), "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from thoughtful_chess.config import SETTINGS
from thoughtful_chess.errors import ApiError, AuthError, ConfigurationError
from thoughtful_chess.runtime import SessionRuntime
from thoughtful_chess.session import TIME_CONTROLS

logging.basicConfig(level=getattr(logging, SETTINGS.log_level.upper(), logging.INFO),
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = Flask(__name__)
runtime_lock = threading.Lock()
RUNTIME = SessionRuntime()


def _snapshot_json():
    return jsonify(RUNTIME.snapshot().to_dict())


def requires_session(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        if not RUNTIME.started:
            return jsonify({"error": "not_connected"}), 409
        return fn(*args, **kwargs)
    return wrapper


@app.route("/api/connect", methods=["POST"])
def connect():
    try:
        with runtime_lock:
            account = RUNTIME.start()
    except AuthError as e:
        return jsonify({"error": str(e)}), 401
    except ConfigurationError as e:
        return jsonify({"error": str(e)}), 400
    except ApiError as e:
        logging.exception("Connect failed")
        return jsonify({"error": str(e)}), 502
    return jsonify({"id": account.id, "username": account.username, "rating": account.rating, "title": account.title})


@app.route("/api/disconnect", methods=["POST"])
def disconnect():
    global RUNTIME
    with runtime_lock:
        RUNTIME.stop()
        RUNTIME = SessionRuntime()
    return jsonify({"ok": True})


@app.route("/api/session", methods=["GET"])
@requires_session
def session_state():
    return _snapshot_json()


@app.route("/api/time-controls", methods=["GET"])
def time_controls():
    return jsonify([
        {"label": tc.label, "category": tc.category, "initial": tc.initial, "increment": tc.increment}
        for tc in TIME_CONTROLS
    ])


@app.route("/api/seek", methods=["POST"])
@requires_session
def seek():
    data = request.get_json(force=True, silent=True) or {}
    label = data.get("time_control")
    if label:
        tc = next((t for t in TIME_CONTROLS if t.label == label), None)
        if tc is None:
            return jsonify({"error": f"unknown time control {label!r}"}), 400
        initial, increment = tc.initial, tc.increment
    else:
        try:
            initial, increment = int(data["initial"]), int(data.get("increment", 0))
        except (KeyError, TypeError, ValueError):
            return jsonify({"error": "time_control or initial/increment is required"}), 400
    RUNTIME.seek(initial, increment)
    return _snapshot_json()


@app.route("/api/seek/cancel", methods=["POST"])
@requires_session
def cancel_seek():
    RUNTIME.cancel_seek()
    return _snapshot_json()


@app.route("/api/select", methods=["POST"])
@requires_session
def select_square():
    data = request.get_json(force=True, silent=True) or {}
    square = data.get("square")
    if not square:
        return jsonify({"error": "square is required"}), 400
    RUNTIME.select_square(str(square))
    return _snapshot_json()


@app.route("/api/pending/confirm", methods=["POST"])
@requires_session
def confirm_pending():
    data = request.get_json(force=True, silent=True) or {}
    try:
        ok = RUNTIME.confirm_move(data.get("justification"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    payload = RUNTIME.snapshot().to_dict()
    payload["submitted"] = ok
    return jsonify(payload)


@app.route("/api/pending/cancel", methods=["POST"])
@requires_session
def cancel_pending():
    RUNTIME.cancel_pending()
    return _snapshot_json()


@app.route("/api/resign", methods=["POST"])
@requires_session
def resign():
    return jsonify({"ok": RUNTIME.resign()})


@app.route("/api/abort", methods=["POST"])
@requires_session
def abort():
    return jsonify({"ok": RUNTIME.abort()})


@app.route("/api/reset", methods=["POST"])
@requires_session
def reset():
    RUNTIME.reset()
    return _snapshot_json()


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    # Clocks and selection change constantly; never serve a cached snapshot
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return response


@app.route("/api/<path:path>", methods=["OPTIONS"])
def cors_preflight(path: str):
    resp = app.make_response(("", 204))
    resp.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    resp.headers["Access-Control-Allow-Credentials"] = "true"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    return resp


if __name__ == "__main__":
    # single process: the session loop thread must not be duplicated by the reloader
    app.run(host="127.0.0.1", port=8000, debug=False, threaded=True)
