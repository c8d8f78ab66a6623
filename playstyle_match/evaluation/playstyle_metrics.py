"""
Playstyle metrics calculator for analyzed games.

This module turns a move list plus its evaluation trace into a six-trait
StyleVector for one side. Every trait starts at 1.0 and loses a fixed penalty
(1 / number of the side's moves) for each advantage-ceding move whose context
matches the trait.

Traits and their penalty conditions (only for moves where the side's
evaluation went down):
    - Tactical: every such move
    - Positional: pawn moves, after any centre move, or before move 15
    - Defensive: checks, captures, or after any defensive move
    - Aggression: captures, or after any attacking move
    - Risk-taking: evaluation dropped by more than 0.8 pawns
    - Endgame: moves after move 30 (reported as -1 for games under 60 plies)

The raw traits are then scaled by one of eight fixed archetype multiplier
sets, selected by a signature hash of the game (signature mod 8), and floored
at 0.1. Values above 1.0 are kept.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from loguru import logger

from playstyle_match.common.models import BLACK, WHITE, AnalysisResult, Move
from playstyle_match.evaluation.opening_classifier import determine_openings

TRAITS = ("aggression", "positional", "tactical", "defensive", "risk_taking", "endgame")

# Endgame is only scored for games reaching move 30 for both sides
ENDGAME_MIN_PLIES = 60
ENDGAME_MOVE_NUMBER = 30
ENDGAME_SENTINEL = -1.0

# Moves before this number count as opening moves for the positional trait
OPENING_MOVE_NUMBER = 15

RISK_THRESHOLD = 0.8
TRAIT_FLOOR = 0.1

# Sacrifice signature on the analyzed side's own moves
SACRIFICE_DROP = 1.0
SACRIFICE_RECOVERY = 0.5

CENTER_SQUARES = {"e4", "d4", "e5", "d5"}
HOME_SQUARES = {
    WHITE: {"n": {"b1", "g1"}, "b": {"c1", "f1"}},
    BLACK: {"n": {"b8", "g8"}, "b": {"c8", "f8"}},
}

# Signature weights: moves, captures, checks, castled, developed pieces, sacrifices
SIGNATURE_WEIGHTS = (13, 17, 19, 23, 29, 31)


@dataclass(frozen=True)
class Archetype:
    """A fixed multiplier set applied to the raw traits."""
    name: str
    multipliers: Tuple[float, float, float, float, float, float]  # in TRAITS order


# Indexed by signature % 8
ARCHETYPES = (
    Archetype("aggressive_attacker", (1.2, 0.9, 1.1, 0.8, 1.3, 0.9)),
    Archetype("positional", (0.8, 1.2, 0.9, 1.2, 0.7, 1.1)),
    Archetype("universal", (0.95, 1.1, 1.05, 1.1, 0.9, 1.2)),
    Archetype("tactical", (1.05, 1.05, 1.2, 0.95, 1.0, 1.1)),
    Archetype("defensive_specialist", (0.8, 1.1, 0.9, 1.3, 0.7, 1.05)),
    Archetype("classical", (0.8, 1.2, 0.95, 1.1, 0.7, 1.2)),
    Archetype("dynamic", (1.1, 1.05, 1.1, 0.9, 1.1, 0.95)),
    Archetype("solid_technical", (0.85, 1.1, 1.05, 1.1, 0.8, 1.1)),
)


@dataclass(frozen=True)
class StyleVector:
    """
    Six-trait playstyle summary of one side in one game.

    Traits are nominally in [0.1, ~1.3]. ``endgame`` is exactly -1 when the
    game was too short to score it.
    """
    aggression: float
    positional: float
    tactical: float
    defensive: float
    risk_taking: float
    endgame: float
    opening_repertoire: List[str] = field(default_factory=list, compare=False)
    archetype: str = field(default="", compare=False)

    def traits(self) -> Tuple[float, ...]:
        """Trait values in TRAITS order."""
        return tuple(getattr(self, name) for name in TRAITS)

    @property
    def has_endgame(self) -> bool:
        return self.endgame != ENDGAME_SENTINEL

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: round(getattr(self, name), 4) for name in TRAITS}
        data["opening_repertoire"] = list(self.opening_repertoire)
        data["archetype"] = self.archetype
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StyleVector":
        return cls(
            aggression=float(data["aggression"]),
            positional=float(data["positional"]),
            tactical=float(data["tactical"]),
            defensive=float(data["defensive"]),
            risk_taking=float(data["risk_taking"]),
            endgame=float(data["endgame"]),
            opening_repertoire=list(data.get("opening_repertoire", [])),
            archetype=data.get("archetype", ""),
        )


@dataclass
class MoveContextCounters:
    """Running counters for the analyzed side's moves."""
    piece_moves: Dict[str, int] = field(default_factory=lambda: {p: 0 for p in "pnbrqk"})
    captures: int = 0
    checks: int = 0
    castled: bool = False
    developed_pieces: int = 0
    center_control: int = 0
    attacking_moves: int = 0
    defensive_moves: int = 0
    sacrifices: int = 0

    def update(self, move: Move) -> None:
        """Count one of the analyzed side's moves."""
        self.piece_moves[move.piece] += 1

        if move.from_square in HOME_SQUARES[move.side].get(move.piece, ()):
            self.developed_pieces += 1
        if move.is_capture:
            self.captures += 1
        if move.is_check and not move.is_checkmate:
            self.checks += 1
        if move.is_castle:
            self.castled = True
        if move.to_square in CENTER_SQUARES:
            self.center_control += 1

        if move.is_capture or move.is_check:
            self.attacking_moves += 1
        elif move.is_castle or move.piece == "k":
            self.defensive_moves += 1

    def signature(self, move_count: int) -> int:
        """Deterministic game signature used to pick the archetype."""
        w_moves, w_captures, w_checks, w_castled, w_developed, w_sacrifices = SIGNATURE_WEIGHTS
        return (
            move_count * w_moves
            + self.captures * w_captures
            + self.checks * w_checks
            + (w_castled if self.castled else 0)
            + self.developed_pieces * w_developed
            + self.sacrifices * w_sacrifices
        )


def select_archetype(signature: int) -> Archetype:
    return ARCHETYPES[signature % len(ARCHETYPES)]


def _apply_archetype(raw: Dict[str, float], archetype: Archetype, endgame_scored: bool) -> Dict[str, float]:
    """Scale raw traits by the archetype and apply the 0.1 floor."""
    scaled = {}
    for name, multiplier in zip(TRAITS, archetype.multipliers):
        if name == "endgame" and not endgame_scored:
            scaled[name] = ENDGAME_SENTINEL
            continue
        scaled[name] = max(TRAIT_FLOOR, raw[name] * multiplier)
    return scaled


def calculate_playstyle(moves: Sequence[Move], analysis: AnalysisResult, side: str = WHITE) -> StyleVector:
    """
    Derive the StyleVector of one side.

    Args:
        moves: Full move list of the game (both sides)
        analysis: Analysis of the same game
        side: "white" or "black"

    Returns:
        StyleVector for ``side``

    Raises:
        ValueError: If ``side`` is unknown, made no moves, or the trace does
            not match the move list
    """
    log = logger.bind(context="calculate_playstyle")

    if side not in (WHITE, BLACK):
        raise ValueError(f"Unknown side: {side!r}")
    if len(analysis.positions) != len(moves) + 1:
        raise ValueError(
            f"Analysis has {len(analysis.positions)} positions for {len(moves)} moves"
        )

    side_moves = [m for m in moves if m.side == side]
    if not side_moves:
        raise ValueError(f"No {side} moves to profile")

    penalty = 1.0 / len(side_moves)
    log.debug(f"{side} has {len(side_moves)} moves, penalty per mistake {penalty:.4f}")

    evaluations = [p.evaluation for p in analysis.positions]
    raw = {name: 1.0 for name in TRAITS}
    counters = MoveContextCounters()
    prev_eval = evaluations[0]

    for i, move in enumerate(moves):
        if move.side != side:
            continue

        move_number = move.move_number
        current_eval = evaluations[i + 1]
        eval_change = current_eval - prev_eval if side == WHITE else prev_eval - current_eval

        if eval_change < -SACRIFICE_DROP and i + 2 < len(evaluations):
            next_change = evaluations[i + 2] - current_eval
            if (side == WHITE and next_change > SACRIFICE_RECOVERY) or \
                    (side == BLACK and next_change < -SACRIFICE_RECOVERY):
                counters.sacrifices += 1

        if eval_change < 0:
            raw["tactical"] -= penalty
            if move.piece == "p" or counters.center_control > 0 or move_number < OPENING_MOVE_NUMBER:
                raw["positional"] -= penalty
            gives_check = move.is_check and not move.is_checkmate
            if gives_check or move.is_capture or counters.defensive_moves > 0:
                raw["defensive"] -= penalty
            if counters.attacking_moves > 0 or move.is_capture:
                raw["aggression"] -= penalty
            if abs(eval_change) > RISK_THRESHOLD:
                raw["risk_taking"] -= penalty
            if move_number > ENDGAME_MOVE_NUMBER:
                raw["endgame"] -= penalty

        prev_eval = current_eval
        counters.update(move)

    endgame_scored = len(moves) >= ENDGAME_MIN_PLIES
    signature = counters.signature(len(side_moves))
    archetype = select_archetype(signature)
    log.debug(f"Game signature {signature}, archetype {archetype.name}, raw traits {raw}")

    scaled = _apply_archetype(raw, archetype, endgame_scored)
    style = StyleVector(
        opening_repertoire=determine_openings([m.san for m in moves], side),
        archetype=archetype.name,
        **scaled,
    )
    log.info(f"Playstyle for {side}: {style.to_dict()}")
    return style
