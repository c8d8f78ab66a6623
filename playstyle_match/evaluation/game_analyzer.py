"""
Game walker: replay a game through the evaluation oracle.

This module plays a validated move list forward one half-move at a time,
asks the oracle for an evaluation after every move, and derives per-side
statistics from the evaluation deltas.

Key Metrics:
    - Mistakes: mover's position worsened by more than 0.8 and at most 1.8 pawns
    - Blunders: mover's position worsened by more than 1.8 pawns
    - Accuracy: 100 for non-worsening moves, else max(0, 100 - |delta| * 20),
      averaged per side and scaled to [0, 1]
    - Sacrifices: a sharp evaluation drop followed by a recovery within the
      next two plies

Degradation:
    - A position the oracle fails on is replaced by its material balance
    - Without an oracle the whole game is evaluated by material plus a small
      random positional jitter (the only non-deterministic path)
    - Cancellation is polled once per move and raises AnalysisCancelled after
      the oracle has been shut down
"""

import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import chess
from loguru import logger

from playstyle_match.common.models import (
    BLACK,
    SIDES,
    WHITE,
    AnalysisResult,
    Move,
    PositionAnalysis,
    SideCounts,
)
from playstyle_match.config import AnalysisConfig
from playstyle_match.engine.material import material_balance, synthetic_evaluation
from playstyle_match.engine.oracle import EvaluationOracle, open_engine
from playstyle_match.errors import AnalysisCancelled, InvalidMoveListError

ProgressCallback = Callable[[float], None]
CancelCheck = Callable[[], bool]
OracleFactory = Callable[[], Optional[EvaluationOracle]]

# Sacrifice signature: initial drop and follow-up recovery (pawns)
SACRIFICE_DROP = 0.5
SACRIFICE_RECOVERY = 0.7

# Depth recorded for synthetic evaluations
SUBSTITUTE_DEPTH = 1
FALLBACK_DEPTH = 8


@dataclass(frozen=True)
class QualityThresholds:
    """Thresholds for classifying a move by how much it worsened the mover's position."""
    mistake: float
    blunder: float
    accuracy_penalty: float  # accuracy points lost per pawn
    default_accuracy: float  # reported for a side with no scored moves


ENGINE_THRESHOLDS = QualityThresholds(mistake=0.8, blunder=1.8, accuracy_penalty=20.0, default_accuracy=0.5)
MATERIAL_THRESHOLDS = QualityThresholds(mistake=1.5, blunder=3.0, accuracy_penalty=10.0, default_accuracy=0.7)


@dataclass(frozen=True)
class SacrificeEvent:
    """Record of a detected sacrifice signature."""
    ply: int
    side: str
    value: float


class MoveQualityTally:
    """Accumulate mistakes, blunders and accuracy for both sides."""

    def __init__(self, thresholds: QualityThresholds = ENGINE_THRESHOLDS):
        self.thresholds = thresholds
        self.mistakes: Dict[str, int] = {side: 0 for side in SIDES}
        self.blunders: Dict[str, int] = {side: 0 for side in SIDES}
        self._accuracy_sum: Dict[str, float] = {side: 0.0 for side in SIDES}
        self._moves: Dict[str, int] = {side: 0 for side in SIDES}

    def record(self, side: str, delta: float) -> None:
        """
        Score one move.

        Args:
            side: Side that made the move
            delta: Evaluation change caused by the move, White's perspective
        """
        change = delta if side == WHITE else -delta
        loss = -change if change < 0 else 0.0

        if loss > self.thresholds.blunder:
            self.blunders[side] += 1
        elif loss > self.thresholds.mistake:
            self.mistakes[side] += 1

        accuracy = 100.0
        if loss > 0:
            accuracy = max(0.0, 100.0 - loss * self.thresholds.accuracy_penalty)

        self._accuracy_sum[side] += accuracy
        self._moves[side] += 1

    def accuracy(self, side: str) -> float:
        if self._moves[side] == 0:
            return self.thresholds.default_accuracy
        return self._accuracy_sum[side] / self._moves[side] / 100.0


def replay_positions(moves: Sequence[Move]) -> List[chess.Board]:
    """
    Replay a move list from the initial position.

    Args:
        moves: Validated move list

    Returns:
        Board snapshots, starting position first (len(moves) + 1 boards)

    Raises:
        InvalidMoveListError: If the list is empty or a move is illegal
    """
    if not moves:
        raise InvalidMoveListError("Move list is empty")

    board = chess.Board()
    boards = [board.copy()]
    for i, move in enumerate(moves):
        expected_side = WHITE if board.turn == chess.WHITE else BLACK
        if move.side != expected_side:
            raise InvalidMoveListError(
                f"Move {i} ({move.san}) is marked {move.side} but {expected_side} is to move"
            )
        try:
            board.push(board.parse_uci(move.uci))
        except ValueError as e:
            raise InvalidMoveListError(f"Illegal move {i} ({move.san}): {e}") from e
        boards.append(board.copy())
    return boards


def detect_sacrifices(evaluations: Sequence[float]) -> List[SacrificeEvent]:
    """
    Find sacrifice signatures in an evaluation trace.

    At trace index i the change e[i+1] - e[i] is the initial drop and
    e[i+2] - e[i+1] the follow-up. Odd indices are scored for White (drop
    below -0.5, recovery above +0.7), even indices for Black with the signs
    reversed. The first entry and the last two are never scanned.

    Args:
        evaluations: White-perspective evaluations, starting position first

    Returns:
        Detected sacrifice events
    """
    sacrifices = []
    for i in range(1, len(evaluations) - 2):
        initial_change = evaluations[i + 1] - evaluations[i]
        followup_change = evaluations[i + 2] - evaluations[i + 1]

        if i % 2 == 1:
            if initial_change < -SACRIFICE_DROP and followup_change > SACRIFICE_RECOVERY:
                sacrifices.append(SacrificeEvent(ply=i, side=WHITE, value=abs(initial_change)))
        else:
            if initial_change > SACRIFICE_DROP and followup_change < -SACRIFICE_RECOVERY:
                sacrifices.append(SacrificeEvent(ply=i, side=BLACK, value=abs(initial_change)))

    return sacrifices


def _build_result(
    positions: List[PositionAnalysis],
    tally: MoveQualityTally,
    source: str
) -> AnalysisResult:
    sacrifices = detect_sacrifices([p.evaluation for p in positions])
    return AnalysisResult(
        positions=tuple(positions),
        accuracy=SideCounts(white=tally.accuracy(WHITE), black=tally.accuracy(BLACK)),
        mistakes=SideCounts(white=tally.mistakes[WHITE], black=tally.mistakes[BLACK]),
        blunders=SideCounts(white=tally.blunders[WHITE], black=tally.blunders[BLACK]),
        sacrifices=SideCounts(
            white=sum(1 for s in sacrifices if s.side == WHITE),
            black=sum(1 for s in sacrifices if s.side == BLACK),
        ),
        source=source,
    )


class GameAnalyzer:
    """
    Analyze games move by move with an evaluation oracle.

    The analyzer owns its oracle: it is created through ``oracle_factory`` on
    first use, reused for later games, and closed by ``shutdown()`` or when an
    analysis is cancelled (a new one is created on the next call).

    Example:
        >>> analyzer = GameAnalyzer.from_config(AnalysisConfig())
        >>> result = analyzer.analyze_game(moves, on_progress=print)
        >>> analyzer.shutdown()
    """

    def __init__(
        self,
        oracle_factory: Optional[OracleFactory] = None,
        depth: int = 12,
        timeout: float = 3.0,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the analyzer.

        Args:
            oracle_factory: Callable returning a ready oracle or None when
                unavailable (None = start Stockfish with default settings)
            depth: Default search depth
            timeout: Default per-position time budget in seconds
            rng: Random source for the fallback jitter
        """
        self.oracle_factory = oracle_factory or open_engine
        self.depth = depth
        self.timeout = timeout
        self.rng = rng or random.Random()
        self._oracle: Optional[EvaluationOracle] = None

    @classmethod
    def from_config(cls, config: AnalysisConfig, deep: bool = False) -> "GameAnalyzer":
        """
        Create an analyzer whose oracle follows ``config``.

        Args:
            config: Analysis configuration
            deep: Use the deep search budget by default
        """
        depth, timeout = config.depth_and_timeout(deep)

        def factory() -> Optional[EvaluationOracle]:
            return open_engine(
                engine_path=config.engine_path,
                threads=config.threads,
                hash_mb=config.hash_mb,
                init_timeout=config.init_timeout,
                multipv=config.multipv,
            )

        return cls(oracle_factory=factory, depth=depth, timeout=timeout)

    def _ensure_oracle(self) -> Optional[EvaluationOracle]:
        if self._oracle is None:
            self._oracle = self.oracle_factory()
        return self._oracle

    def shutdown(self) -> None:
        """Close the oracle if one is running."""
        oracle, self._oracle = self._oracle, None
        if oracle is not None:
            oracle.close()

    def _cancel(self, ply: int) -> None:
        logger.bind(context="GameAnalyzer.analyze_game").info(f"Analysis cancelled at ply {ply}")
        self.shutdown()
        raise AnalysisCancelled(f"Analysis cancelled at ply {ply}")

    def analyze_game(
        self,
        moves: Sequence[Move],
        on_progress: Optional[ProgressCallback] = None,
        depth: Optional[int] = None,
        timeout: Optional[float] = None,
        is_cancelled: Optional[CancelCheck] = None
    ) -> AnalysisResult:
        """
        Analyze a complete game.

        Args:
            moves: Validated move list from the starting position
            on_progress: Called once per move with the percentage of moves
                completed before the current one is evaluated
            depth: Search depth (None = analyzer default)
            timeout: Per-position time budget in seconds (None = analyzer default)
            is_cancelled: Polled once per move; returning True aborts

        Returns:
            AnalysisResult with len(moves) + 1 positions

        Raises:
            InvalidMoveListError: If the move list is empty or illegal
            AnalysisCancelled: If ``is_cancelled`` returned True
        """
        log = logger.bind(context="GameAnalyzer.analyze_game")
        boards = replay_positions(moves)
        depth = depth or self.depth
        timeout = timeout or self.timeout
        cancelled = is_cancelled or (lambda: False)

        oracle = self._ensure_oracle()
        if oracle is None:
            log.warning("Evaluation oracle unavailable, using material fallback analysis")
            return self._fallback_analysis(moves, boards, on_progress, cancelled)

        log.info(f"Analyzing {len(moves)} plies (depth {depth}, timeout {timeout}s)")

        positions = [PositionAnalysis(fen=boards[0].fen(), evaluation=0.0)]
        tally = MoveQualityTally(ENGINE_THRESHOLDS)
        prev_eval = 0.0
        total = len(moves)
        substituted = 0

        for i, move in enumerate(moves):
            if cancelled():
                self._cancel(i)

            board = boards[i + 1]
            if on_progress is not None:
                on_progress(i / total * 100)

            try:
                analysis = oracle.evaluate(board, depth, timeout)
            except Exception as e:
                if cancelled():
                    self._cancel(i)
                log.warning(f"Evaluation failed at ply {i + 1} ({move.san}), using material balance: {e}")
                positions.append(PositionAnalysis(
                    fen=board.fen(),
                    evaluation=material_balance(board),
                    depth=SUBSTITUTE_DEPTH,
                ))
                substituted += 1
                continue

            positions.append(analysis)
            delta = analysis.evaluation - prev_eval
            tally.record(move.side, delta)
            log.debug(
                f"Ply {i + 1}: {move.san} ({move.side}) eval={analysis.evaluation:.2f} "
                f"prev={prev_eval:.2f} change={delta:.2f}"
            )
            prev_eval = analysis.evaluation

        result = _build_result(positions, tally, source="engine")
        log.success(
            f"Analysis complete: {total} plies, {substituted} substituted, "
            f"accuracy white={result.accuracy.white:.2f} black={result.accuracy.black:.2f}"
        )
        return result

    def _fallback_analysis(
        self,
        moves: Sequence[Move],
        boards: List[chess.Board],
        on_progress: Optional[ProgressCallback],
        cancelled: CancelCheck
    ) -> AnalysisResult:
        """Evaluate every position by material balance plus positional jitter."""
        log = logger.bind(context="GameAnalyzer._fallback_analysis")

        positions = [PositionAnalysis(fen=boards[0].fen(), evaluation=0.0)]
        total = len(moves)
        for i in range(total):
            if cancelled():
                self._cancel(i)
            board = boards[i + 1]
            if on_progress is not None:
                on_progress(i / total * 100)
            positions.append(PositionAnalysis(
                fen=board.fen(),
                evaluation=synthetic_evaluation(board, self.rng),
                depth=FALLBACK_DEPTH,
            ))

        tally = MoveQualityTally(MATERIAL_THRESHOLDS)
        for i, move in enumerate(moves):
            tally.record(move.side, positions[i + 1].evaluation - positions[i].evaluation)

        log.info(f"Fallback analysis complete: {total} plies")
        return _build_result(positions, tally, source="material")
