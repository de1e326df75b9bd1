"""
Rules oracle backed by python-chess.

Positions are exchanged as FEN strings and squares by name ("e2"), so the rest
of the client never handles python-chess objects directly.

- legal_destinations(): target squares reachable from one origin square.
- apply_move(): legality check plus resulting FEN and SAN for one move.
- is_check() / king_square_in_check(): check detection for highlighting.
- parse_move_code(): split a compact move code (e2e4, e7e8q) into parts.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Literal, Optional

import chess

UCI_RE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$")
STARTING_FEN = chess.STARTING_FEN

Color = Literal["white", "black"]


def normalize_fen(fen: Optional[str]) -> str:
    """Map the server's "startpos" marker (or nothing) to the standard start FEN."""
    if not fen or fen == "startpos":
        return STARTING_FEN
    return fen


def color_name(turn: chess.Color) -> Color:
    return "white" if turn == chess.WHITE else "black"


def opposite(color: Color) -> Color:
    return "black" if color == "white" else "white"


def _square(name: str) -> Optional[int]:
    try:
        return chess.parse_square(name)
    except ValueError:
        return None


@lru_cache(maxsize=8192)
def _legal_moves(fen: str) -> tuple[chess.Move, ...]:
    """Cache and return the legal moves for a given FEN."""
    return tuple(chess.Board(fen).legal_moves)


def parse_move_code(code: str) -> Optional[tuple[str, str, Optional[str]]]:
    """Return (origin, destination, promotion) for a move code, or None if malformed."""
    code = (code or "").strip().lower()
    if not UCI_RE.fullmatch(code):
        return None
    return code[:2], code[2:4], (code[4] if len(code) == 5 else None)


def move_code(origin: str, destination: str, promotion: Optional[str] = None) -> str:
    return f"{origin}{destination}{promotion or ''}"


def side_to_move(fen: str) -> Color:
    return color_name(chess.Board(fen).turn)


def fullmove_number(fen: str) -> int:
    return chess.Board(fen).fullmove_number


def piece_color_at(fen: str, square: str) -> Optional[Color]:
    sq = _square(square)
    if sq is None:
        return None
    piece = chess.Board(fen).piece_at(sq)
    return color_name(piece.color) if piece else None


def legal_destinations(fen: str, square: str) -> frozenset[str]:
    """Squares the piece on `square` may legally move to (empty if none or no piece)."""
    sq = _square(square)
    if sq is None:
        return frozenset()
    return frozenset(chess.square_name(m.to_square) for m in _legal_moves(fen) if m.from_square == sq)


def is_promotion(fen: str, origin: str, destination: str) -> bool:
    """True when the piece on `origin` is a pawn and `destination` is its farthest rank."""
    src, dst = _square(origin), _square(destination)
    if src is None or dst is None:
        return False
    piece = chess.Board(fen).piece_at(src)
    if piece is None or piece.piece_type != chess.PAWN:
        return False
    last_rank = 7 if piece.color == chess.WHITE else 0
    return chess.square_rank(dst) == last_rank


def apply_move(fen: str, origin: str, destination: str, promotion: Optional[str] = None) -> Optional[tuple[str, str]]:
    """Apply one move; return (new_fen, san), or None if the move is illegal here."""
    src, dst = _square(origin), _square(destination)
    if src is None or dst is None:
        return None
    promo = chess.PIECE_SYMBOLS.index(promotion.lower()) if promotion else None
    mv = chess.Move(src, dst, promotion=promo)
    if mv not in _legal_moves(fen):
        return None
    board = chess.Board(fen)
    san = board.san(mv)
    board.push(mv)
    return board.fen(), san


def is_check(fen: str) -> bool:
    return chess.Board(fen).is_check()


def king_square_in_check(fen: str, side: Color) -> Optional[str]:
    """Return the king square of `side` if that king is attacked, else None."""
    board = chess.Board(fen)
    color = chess.WHITE if side == "white" else chess.BLACK
    king = board.king(color)
    if king is None or not board.is_attacked_by(not color, king):
        return None
    return chess.square_name(king)


__all__ = [
    "STARTING_FEN",
    "Color",
    "normalize_fen",
    "opposite",
    "parse_move_code",
    "move_code",
    "side_to_move",
    "fullmove_number",
    "piece_color_at",
    "legal_destinations",
    "is_promotion",
    "apply_move",
    "is_check",
    "king_square_in_check",
]
