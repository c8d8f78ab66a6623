"""
Material-count evaluation used when the engine cannot be consulted.

Two evaluators live here:
- material_balance: deterministic signed piece-value sum, used to substitute
  a single position whose engine evaluation failed
- synthetic_evaluation: material balance plus a small random positional
  jitter and game-end detection, used by the fallback analyzer when no engine
  is available at all
"""

import random
from typing import Optional

import chess

# Pawn-unit piece values for material balance
MATERIAL_VALUES = {
    chess.PAWN: 1.0,
    chess.KNIGHT: 3.0,
    chess.BISHOP: 3.25,
    chess.ROOK: 5.0,
    chess.QUEEN: 9.0,
    chess.KING: 0.0,
}

# Saturated evaluation for a decided game
DECISIVE_EVALUATION = 20.0

# Positional jitter range for synthetic evaluation
JITTER = 0.2


def material_balance(board: chess.Board) -> float:
    """
    Sum signed piece values on the board.

    Args:
        board: Position to evaluate

    Returns:
        White material minus Black material, in pawns
    """
    balance = 0.0
    for piece in board.piece_map().values():
        value = MATERIAL_VALUES[piece.piece_type]
        balance += value if piece.color == chess.WHITE else -value
    return balance


def is_drawn(board: chess.Board) -> bool:
    """True for stalemate, insufficient material, 50-move or threefold positions."""
    return (
        board.is_stalemate()
        or board.is_insufficient_material()
        or board.is_fifty_moves()
        or board.is_repetition(3)
    )


def synthetic_evaluation(board: chess.Board, rng: Optional[random.Random] = None) -> float:
    """
    Approximate an evaluation without an engine.

    The jitter makes this non-deterministic unless a seeded ``rng`` is given;
    it must only be used on the fallback path.

    Args:
        board: Position to evaluate
        rng: Random source for the positional jitter (default: module random)

    Returns:
        Evaluation from White's perspective, clamped to [-20, 20]
    """
    if board.is_checkmate():
        # The side to move has been mated
        return -DECISIVE_EVALUATION if board.turn == chess.WHITE else DECISIVE_EVALUATION
    if is_drawn(board):
        return 0.0

    source = rng or random
    evaluation = material_balance(board) + source.uniform(-JITTER, JITTER)
    return max(-DECISIVE_EVALUATION, min(DECISIVE_EVALUATION, evaluation))
