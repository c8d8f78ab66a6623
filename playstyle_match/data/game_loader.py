"""
Game loader: turn PGN or SAN input into validated Move records.

This module is the parsing collaborator in front of the analysis pipeline.
The pipeline itself never parses notation; it receives the immutable Move
records produced here.
"""

import io
from pathlib import Path
from typing import List, Optional, Sequence, Union

import chess
import chess.pgn
from loguru import logger

from playstyle_match.common.models import BLACK, WHITE, Move
from playstyle_match.errors import InvalidMoveListError

GAME_RESULTS = {"1-0", "0-1", "1/2-1/2", "*"}


def _record_move(board: chess.Board, move: chess.Move, index: int) -> Move:
    """Describe ``move`` in ``board`` and play it on the board."""
    piece = board.piece_at(move.from_square)
    if piece is None:
        raise InvalidMoveListError(f"No piece on {chess.square_name(move.from_square)} at ply {index}")

    san = board.san(move)
    side = WHITE if board.turn == chess.WHITE else BLACK
    is_capture = board.is_capture(move)
    is_castle = board.is_castling(move)
    is_check = board.gives_check(move)

    board.push(move)

    return Move(
        index=index,
        side=side,
        piece=piece.symbol().lower(),
        from_square=chess.square_name(move.from_square),
        to_square=chess.square_name(move.to_square),
        san=san,
        is_capture=is_capture,
        is_check=is_check,
        is_checkmate=board.is_checkmate(),
        is_castle=is_castle,
        promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
    )


def moves_from_game(game: chess.pgn.Game) -> List[Move]:
    """
    Extract the mainline of a parsed PGN game.

    Args:
        game: Parsed game starting from the standard initial position

    Returns:
        Move records in order

    Raises:
        InvalidMoveListError: If the game has no moves, starts from a custom
            position, or contains parse errors
    """
    if game.errors:
        raise InvalidMoveListError(f"PGN contains errors: {game.errors[0]}")

    board = game.board()
    if board.fen() != chess.STARTING_FEN:
        raise InvalidMoveListError("Games from a custom starting position are not supported")

    moves = [_record_move(board, move, i) for i, move in enumerate(game.mainline_moves())]
    if not moves:
        raise InvalidMoveListError("Game has no moves")
    return moves


def moves_from_pgn(pgn_string: str) -> List[Move]:
    """
    Parse the first game of a PGN string.

    Args:
        pgn_string: PGN text

    Returns:
        Move records in order

    Raises:
        InvalidMoveListError: If no game could be read or it has no moves
    """
    game = chess.pgn.read_game(io.StringIO(pgn_string))
    if game is None:
        raise InvalidMoveListError("Invalid PGN string")
    return moves_from_game(game)


def moves_from_san(sans: Union[str, Sequence[str]]) -> List[Move]:
    """
    Build Move records from SAN moves played from the initial position.

    Args:
        sans: SAN moves as a list or a whitespace-separated string; move
            numbers such as "1." are ignored

    Returns:
        Move records in order

    Raises:
        InvalidMoveListError: If the list is empty or a move is illegal
    """
    if isinstance(sans, str):
        tokens = [
            t for t in sans.split()
            if not t.rstrip(".").isdigit() and t not in GAME_RESULTS
        ]
    else:
        tokens = list(sans)

    if not tokens:
        raise InvalidMoveListError("Move list is empty")

    board = chess.Board()
    moves = []
    for i, token in enumerate(tokens):
        try:
            move = board.parse_san(token)
        except ValueError as e:
            raise InvalidMoveListError(f"Illegal move {token!r} at ply {i}: {e}") from e
        moves.append(_record_move(board, move, i))
    return moves


def load_pgn_file(pgn_path: Union[str, Path], game_index: int = 0) -> List[Move]:
    """
    Load one game from a PGN file.

    Args:
        pgn_path: Path to a .pgn file
        game_index: 0-based index of the game within the file

    Returns:
        Move records of the selected game

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidMoveListError: If the selected game is missing or invalid
    """
    log = logger.bind(context="load_pgn_file")
    path = Path(pgn_path)
    if not path.exists():
        raise FileNotFoundError(f"PGN file not found: {pgn_path}")

    game: Optional[chess.pgn.Game] = None
    with open(path, 'r', encoding='utf-8', errors='ignore') as pgn_file:
        for _ in range(game_index + 1):
            game = chess.pgn.read_game(pgn_file)
            if game is None:
                raise InvalidMoveListError(f"{path} has no game at index {game_index}")

    log.info(
        f"Loaded game {game_index} from {path}: "
        f"{game.headers.get('White', '?')} vs {game.headers.get('Black', '?')}"
    )
    return moves_from_game(game)
