"""
Core data records shared by the analysis pipeline.

This module defines the records that flow between the pipeline stages:
- Move: one half-move of a validated game, as produced by the game loader
- Variation: one ranked engine continuation
- PositionAnalysis: the engine (or material) verdict for one position
- AnalysisResult: the full trace plus per-side aggregate counters

Evaluations are always expressed from White's perspective: positive values
favour White, negative values favour Black.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

WHITE = "white"
BLACK = "black"
SIDES = (WHITE, BLACK)


@dataclass(frozen=True)
class Move:
    """
    A single half-move of a game.

    Attributes:
        index: 0-based ply index within the game
        side: "white" or "black"
        piece: Lower-case piece symbol of the moving piece (p, n, b, r, q, k)
        from_square: Origin square in algebraic notation (e.g. "g1")
        to_square: Destination square in algebraic notation (e.g. "f3")
        san: Standard algebraic notation of the move
        is_capture: True if the move captures a piece (en passant included)
        is_check: True if the move gives check (checkmate included)
        is_checkmate: True if the move delivers checkmate
        is_castle: True for O-O and O-O-O
        promotion: Lower-case promotion piece symbol, if any
    """
    index: int
    side: str
    piece: str
    from_square: str
    to_square: str
    san: str
    is_capture: bool = False
    is_check: bool = False
    is_checkmate: bool = False
    is_castle: bool = False
    promotion: Optional[str] = None

    @property
    def uci(self) -> str:
        """UCI notation of the move (e.g. "e7e8q")."""
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    @property
    def move_number(self) -> int:
        """1-based full-move number."""
        return self.index // 2 + 1


@dataclass(frozen=True)
class Variation:
    """A ranked engine continuation from a position."""
    move: str  # UCI
    evaluation: float
    line: Optional[str] = None  # SAN of the first move

    def to_dict(self) -> Dict[str, Any]:
        return {"move": self.move, "evaluation": self.evaluation, "line": self.line}


@dataclass(frozen=True)
class PositionAnalysis:
    """
    Evaluation of a single position.

    Attributes:
        fen: Canonical FEN of the position
        evaluation: Pawn-unit evaluation from White's perspective
        depth: Search depth reached (1 for material substitutes)
        best_move: Best continuation in UCI, if the engine reported one
        mate: Signed forced-mate distance from White's perspective, if any.
            A mated position reports 0 for either side; the sign of
            ``evaluation`` tells who was mated
        variations: Up to three ranked candidate continuations
    """
    fen: str
    evaluation: float
    depth: int = 0
    best_move: Optional[str] = None
    mate: Optional[int] = None
    variations: Tuple[Variation, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fen": self.fen,
            "evaluation": round(self.evaluation, 3),
            "depth": self.depth,
            "best_move": self.best_move,
            "mate": self.mate,
            "variations": [v.to_dict() for v in self.variations],
        }


@dataclass(frozen=True)
class SideCounts:
    """A per-side pair of values (accuracy, mistakes, ...)."""
    white: float = 0
    black: float = 0

    def for_side(self, side: str) -> float:
        if side == WHITE:
            return self.white
        if side == BLACK:
            return self.black
        raise ValueError(f"Unknown side: {side!r}")

    def to_dict(self) -> Dict[str, float]:
        return {"white": self.white, "black": self.black}


@dataclass(frozen=True)
class AnalysisResult:
    """
    Complete analysis of one game.

    The trace holds one entry per position, starting with the initial
    position, so ``len(positions) == number of moves + 1``.

    Attributes:
        positions: Ordered position analyses
        accuracy: Per-side accuracy in [0, 1]
        mistakes: Per-side mistake counts
        blunders: Per-side blunder counts
        sacrifices: Per-side sacrifice counts
        source: "engine" for oracle analysis, "material" for the fallback
    """
    positions: Tuple[PositionAnalysis, ...]
    accuracy: SideCounts
    mistakes: SideCounts
    blunders: SideCounts
    sacrifices: SideCounts = field(default_factory=SideCounts)
    source: str = "engine"

    @property
    def evaluations(self) -> List[float]:
        return [p.evaluation for p in self.positions]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "source": self.source,
            "positions": [p.to_dict() for p in self.positions],
            "accuracy": {
                "white": round(self.accuracy.white, 4),
                "black": round(self.accuracy.black, 4),
            },
            "mistakes": self.mistakes.to_dict(),
            "blunders": self.blunders.to_dict(),
            "sacrifices": self.sacrifices.to_dict(),
        }
