"""
Evaluation oracle adapter around a UCI chess engine.

The adapter owns one long-lived engine process (Stockfish by default) and
turns a board position into a PositionAnalysis. Searches run through
python-chess's ``SimpleEngine.analysis``, which yields the engine's ``info``
reports as a synchronous iterator; SearchTracker folds those reports in
order (deepest depth, latest score and principal variation per multipv slot)
until the engine sends ``bestmove``.

Score conventions:
    - The engine reports scores relative to the side to move
    - The adapter normalizes every evaluation to White's perspective
    - Forced mates saturate to +/-20 pawns, decaying 0.1 per ply of distance,
      and the signed mate distance is exposed separately

Failure modes:
    - Engine missing or never ready: ``open()`` returns False and
      ``open_engine()`` returns None; nothing is raised
    - No ``bestmove`` within the time budget: a watchdog stops the search and
      the last collected report is used
    - No score at all for a position: EvaluationError
"""

import atexit
import shutil
import threading
from typing import Dict, Iterable, List, Optional, Protocol, Tuple, runtime_checkable

import chess
import chess.engine
from loguru import logger

from playstyle_match.common.models import PositionAnalysis, Variation
from playstyle_match.errors import EvaluationError

# Saturated evaluation for a forced mate and its decay per ply of distance
MATE_EVALUATION = 20.0
MATE_DECAY = 0.1

# Large centipawn stand-in used only to read the sign of mate scores
_MATE_SCORE_CP = 100000

# Locations tried when no engine path is configured
COMMON_ENGINE_PATHS = [
    "/usr/local/bin/stockfish",
    "/usr/bin/stockfish",
    "/usr/games/stockfish",
    "/opt/homebrew/bin/stockfish",
]


@runtime_checkable
class EvaluationOracle(Protocol):
    """
    Contract shared by the Stockfish adapter and test stubs.

    Implementations must serialize calls: at most one evaluation may be in
    flight per instance.
    """

    def evaluate(self, board: chess.Board, depth: int, timeout: float) -> PositionAnalysis:
        """Evaluate ``board`` within the given depth and time budget (seconds)."""
        ...

    def close(self) -> None:
        """Release the underlying engine process."""
        ...


def score_to_evaluation(score: chess.engine.PovScore, turn: chess.Color) -> Tuple[float, Optional[int]]:
    """
    Convert an engine score to a White-perspective evaluation.

    Args:
        score: Score as reported by the engine
        turn: Side to move in the evaluated position

    Returns:
        Tuple of (evaluation in pawns, signed mate distance or None), both
        from White's perspective. Mate 0 carries no sign, so only the
        evaluation distinguishes White mated from Black mated
    """
    relative = score.relative
    mate = relative.mate()

    if mate is not None:
        winning = relative.score(mate_score=_MATE_SCORE_CP) > 0
        distance = abs(mate)
        if winning:
            evaluation = MATE_EVALUATION - distance * MATE_DECAY
        else:
            evaluation = -MATE_EVALUATION + distance * MATE_DECAY
    else:
        evaluation = relative.score() / 100.0

    if turn == chess.BLACK:
        evaluation = -evaluation
        if mate is not None:
            mate = -mate

    return evaluation, mate


class SearchTracker:
    """
    Fold a stream of engine ``info`` reports into a PositionAnalysis.

    Reports are consumed in arrival order. Missing fields are ignored per
    report, so a report without a score still contributes its depth.
    """

    def __init__(self, board: chess.Board, multipv: int = 3):
        self.board = board
        self.multipv = multipv
        self.depth = 0
        self.reports = 0
        self._scores: Dict[int, chess.engine.PovScore] = {}
        self._first_moves: Dict[int, chess.Move] = {}

    @property
    def has_score(self) -> bool:
        return 1 in self._scores

    def add(self, info: chess.engine.InfoDict) -> None:
        """Record one ``info`` report."""
        self.reports += 1

        depth = info.get("depth")
        if depth is not None and depth > self.depth:
            self.depth = depth

        slot = info.get("multipv", 1)
        if slot > self.multipv:
            return

        score = info.get("score")
        if score is not None:
            self._scores[slot] = score

        pv = info.get("pv")
        if pv:
            self._first_moves[slot] = pv[0]

    def add_all(self, reports: Iterable[chess.engine.InfoDict]) -> "SearchTracker":
        for info in reports:
            self.add(info)
        return self

    def result(self, best_move: Optional[chess.Move] = None) -> PositionAnalysis:
        """
        Build the analysis from everything collected so far.

        Args:
            best_move: Move from the terminal ``bestmove`` report, if any

        Returns:
            PositionAnalysis for the tracked board

        Raises:
            EvaluationError: If no primary score was ever reported
        """
        if not self.has_score:
            raise EvaluationError(
                f"No score after {self.reports} reports for {self.board.fen()}"
            )

        evaluation, mate = score_to_evaluation(self._scores[1], self.board.turn)

        if best_move is None:
            best_move = self._first_moves.get(1)

        return PositionAnalysis(
            fen=self.board.fen(),
            evaluation=evaluation,
            depth=self.depth or 1,
            best_move=best_move.uci() if best_move else None,
            mate=mate,
            variations=tuple(self._variations()),
        )

    def _variations(self) -> List[Variation]:
        variations = []
        for slot in sorted(self._scores):
            move = self._first_moves.get(slot)
            if move is None:
                continue
            slot_eval, _ = score_to_evaluation(self._scores[slot], self.board.turn)
            san = self.board.san(move) if self.board.is_legal(move) else None
            variations.append(Variation(move=move.uci(), evaluation=slot_eval, line=san))
        return variations


def resolve_engine_paths(engine_path: Optional[str] = None) -> List[str]:
    """
    List engine binaries to try, in order.

    Args:
        engine_path: Explicitly configured path (tried alone if given)

    Returns:
        Candidate executable paths
    """
    if engine_path:
        return [engine_path]

    candidates = []
    found = shutil.which("stockfish")
    if found:
        candidates.append(found)
    for path in COMMON_ENGINE_PATHS:
        if path not in candidates:
            candidates.append(path)
    return candidates


class StockfishOracle:
    """
    Lifecycle-managed UCI engine used as the evaluation oracle.

    One instance owns one engine process. ``evaluate`` calls are serialized
    with a lock, so concurrent callers queue instead of interleaving engine
    commands. The process is started by ``open()`` and stopped by ``close()``,
    on context exit, or at interpreter exit.

    Example:
        >>> with StockfishOracle() as oracle:
        ...     if oracle.available:
        ...         analysis = oracle.evaluate(chess.Board(), depth=12, timeout=3.0)
    """

    def __init__(
        self,
        engine_path: Optional[str] = None,
        threads: int = 1,
        hash_mb: int = 16,
        init_timeout: float = 5.0,
        multipv: int = 3,
        watchdog_grace: float = 1.0
    ):
        """
        Initialize the oracle without starting the engine.

        Args:
            engine_path: Path to the engine binary (None = auto-detect)
            threads: Engine "Threads" option
            hash_mb: Engine "Hash" option in MB
            init_timeout: Seconds to wait for the engine to become ready
            multipv: Number of candidate continuations per search
            watchdog_grace: Extra seconds past the time budget before the
                search is force-stopped
        """
        self.engine_path = engine_path
        self.threads = threads
        self.hash_mb = hash_mb
        self.init_timeout = init_timeout
        self.multipv = multipv
        self.watchdog_grace = watchdog_grace

        self._engine: Optional[chess.engine.SimpleEngine] = None
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self._engine is not None

    def open(self) -> bool:
        """
        Start the engine process and wait until it is ready.

        Returns:
            True if an engine is running, False if none could be started
        """
        log = logger.bind(context="StockfishOracle.open")
        if self._engine is not None:
            return True

        for path in resolve_engine_paths(self.engine_path):
            try:
                engine = chess.engine.SimpleEngine.popen_uci(path, timeout=self.init_timeout)
            except Exception as e:
                log.debug(f"Could not start engine at {path}: {e}")
                continue

            self._engine = engine
            self._configure(engine)
            atexit.register(self.close)
            log.info(f"Engine started: {engine.id.get('name', path)} ({path})")
            return True

        log.warning("Could not initialize a UCI engine - oracle unavailable")
        return False

    def _configure(self, engine: chess.engine.SimpleEngine) -> None:
        log = logger.bind(context="StockfishOracle._configure")
        wanted = {"Threads": self.threads, "Hash": self.hash_mb}
        options = {name: value for name, value in wanted.items() if name in engine.options}
        if not options:
            return
        try:
            engine.configure(options)
        except chess.engine.EngineError as e:
            log.warning(f"Engine rejected options {options}: {e}")

    def evaluate(self, board: chess.Board, depth: int, timeout: float) -> PositionAnalysis:
        """
        Evaluate a position.

        Args:
            board: Position to evaluate (not modified)
            depth: Target search depth
            timeout: Wall-clock budget in seconds

        Returns:
            PositionAnalysis from White's perspective

        Raises:
            EvaluationError: If the engine is not running or reported no score
            chess.engine.EngineTerminatedError: If the engine process died
        """
        log = logger.bind(context="StockfishOracle.evaluate")

        with self._lock:
            if self._engine is None:
                raise EvaluationError("Engine is not running")

            tracker = SearchTracker(board.copy(), multipv=self.multipv)
            limit = chess.engine.Limit(depth=depth, time=timeout)
            timed_out = threading.Event()

            with self._engine.analysis(board, limit, multipv=self.multipv) as analysis:
                def force_stop():
                    timed_out.set()
                    analysis.stop()

                watchdog = threading.Timer(timeout + self.watchdog_grace, force_stop)
                watchdog.daemon = True
                watchdog.start()
                try:
                    tracker.add_all(analysis)
                    best = analysis.wait()
                finally:
                    watchdog.cancel()

            if timed_out.is_set():
                log.warning(f"Search timed out after {timeout}s at depth {tracker.depth}")

            return tracker.result(best.move)

    def close(self) -> None:
        """Stop the engine process. Safe to call more than once."""
        log = logger.bind(context="StockfishOracle.close")
        with self._lock:
            engine, self._engine = self._engine, None
        if engine is None:
            return

        atexit.unregister(self.close)
        try:
            engine.quit()
        except Exception as e:
            log.warning(f"Engine did not quit cleanly, terminating: {e}")
            engine.close()
        log.info("Engine stopped")

    def __enter__(self) -> "StockfishOracle":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_engine(
    engine_path: Optional[str] = None,
    threads: int = 1,
    hash_mb: int = 16,
    init_timeout: float = 5.0,
    multipv: int = 3
) -> Optional[StockfishOracle]:
    """
    Start an engine oracle.

    Returns:
        A running StockfishOracle, or None when no engine is available
    """
    oracle = StockfishOracle(
        engine_path=engine_path,
        threads=threads,
        hash_mb=hash_mb,
        init_timeout=init_timeout,
        multipv=multipv,
    )
    return oracle if oracle.open() else None
