"""
Configuration and environment loading for the live-session client.

- Loads .env (python-dotenv) and settings.yml (YAML) from the repo root if present.
- settings.yml takes precedence over environment variables.
- Exposes SETTINGS with the keys used across the project (token, base URL, clock and stream knobs).
"""
from dataclasses import dataclass
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()


def _repo_root() -> str:
    # this file: src/thoughtful_chess/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.path.join(_repo_root(), "settings.yml"))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


def _as_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint
    lichess_token: str
    base_url: str

    # Clock display smoothing
    clock_tick_ms: int

    # Transport knobs
    connect_timeout_s: float
    request_timeout_s: float
    stream_read_timeout_s: float
    stream_reconnect: bool
    reconnect_attempts: int
    reconnect_base_s: float
    reconnect_max_s: float

    # Justification length bounds (characters)
    justification_min: int
    justification_max: int

    log_level: str


SETTINGS = Settings(
    lichess_token=_get("LICHESS_TOKEN", ""),
    base_url=_get("LICHESS_BASE_URL", "https://lichess.org"),
    clock_tick_ms=int(_get("THOUGHTFUL_CHESS_CLOCK_TICK_MS", 100, cast=int)),
    connect_timeout_s=float(_get("THOUGHTFUL_CHESS_CONNECT_TIMEOUT_S", 10.0, cast=float)),
    request_timeout_s=float(_get("THOUGHTFUL_CHESS_REQUEST_TIMEOUT_S", 10.0, cast=float)),
    stream_read_timeout_s=float(_get("THOUGHTFUL_CHESS_STREAM_READ_TIMEOUT_S", 20.0, cast=float)),
    stream_reconnect=bool(_get("THOUGHTFUL_CHESS_STREAM_RECONNECT", False, cast=_as_bool)),
    reconnect_attempts=int(_get("THOUGHTFUL_CHESS_RECONNECT_ATTEMPTS", 5, cast=int)),
    reconnect_base_s=float(_get("THOUGHTFUL_CHESS_RECONNECT_BASE_S", 1.0, cast=float)),
    reconnect_max_s=float(_get("THOUGHTFUL_CHESS_RECONNECT_MAX_S", 30.0, cast=float)),
    justification_min=int(_get("THOUGHTFUL_CHESS_JUSTIFICATION_MIN", 10, cast=int)),
    justification_max=int(_get("THOUGHTFUL_CHESS_JUSTIFICATION_MAX", 280, cast=int)),
    log_level=str(_get("THOUGHTFUL_CHESS_LOG_LEVEL", "INFO")),
)
