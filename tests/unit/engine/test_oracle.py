"""
Unit tests for engine/oracle.py

Drives SearchTracker and the StockfishOracle search loop with scripted
python-chess InfoDicts and checks score normalization. No engine binary is
required.
"""

import chess
import chess.engine
import pytest

from playstyle_match.common.models import PositionAnalysis
from playstyle_match.engine.oracle import (
    COMMON_ENGINE_PATHS,
    EvaluationOracle,
    SearchTracker,
    StockfishOracle,
    open_engine,
    resolve_engine_paths,
    score_to_evaluation,
)
from playstyle_match.errors import EvaluationError
from tests.fixtures.game_utils import FakeEngine, StubOracle

MISSING_ENGINE = "/nonexistent/path/to/stockfish"


def pov(score, color=chess.WHITE):
    return chess.engine.PovScore(score, color)


class TestScoreToEvaluation:
    """Test suite for score normalization."""

    def test_centipawns_white_to_move(self):
        """Test that centipawns become pawns."""
        assert score_to_evaluation(pov(chess.engine.Cp(50)), chess.WHITE) == (0.5, None)

    def test_centipawns_black_to_move_are_flipped(self):
        """Test that a score relative to Black is flipped to White's view."""
        evaluation, mate = score_to_evaluation(pov(chess.engine.Cp(50), chess.BLACK), chess.BLACK)
        assert evaluation == pytest.approx(-0.5)
        assert mate is None

    def test_mate_for_side_to_move(self):
        """Test that mate in 3 saturates to 20 - 0.3."""
        evaluation, mate = score_to_evaluation(pov(chess.engine.Mate(3)), chess.WHITE)
        assert evaluation == pytest.approx(19.7)
        assert mate == 3

    def test_mate_against_black_to_move(self):
        """Test that Black being mated in 2 is good for White."""
        evaluation, mate = score_to_evaluation(pov(chess.engine.Mate(-2), chess.BLACK), chess.BLACK)
        assert evaluation == pytest.approx(19.8)
        assert mate == 2

    def test_side_to_move_is_mated(self):
        """Test that mate 0 means the side to move has been mated."""
        evaluation, mate = score_to_evaluation(pov(chess.engine.Mate(0)), chess.WHITE)
        assert evaluation == pytest.approx(-20.0)
        assert mate == 0

    def test_mated_sides_differ_only_by_evaluation(self):
        """Test that White mated and Black mated share mate 0 but not the evaluation."""
        white_mated = score_to_evaluation(pov(chess.engine.Mate(0), chess.WHITE), chess.WHITE)
        black_mated = score_to_evaluation(pov(chess.engine.Mate(0), chess.BLACK), chess.BLACK)

        assert white_mated[1] == black_mated[1] == 0
        assert white_mated[0] == pytest.approx(-20.0)
        assert black_mated[0] == pytest.approx(20.0)


class TestSearchTracker:
    """Test suite for folding info reports."""

    @pytest.fixture
    def board(self):
        """The starting position."""
        return chess.Board()

    def test_folds_deepest_depth_and_latest_score(self, board):
        """Test that the latest primary score and the deepest depth are kept."""
        tracker = SearchTracker(board, multipv=3)
        tracker.add_all([
            {"depth": 5, "multipv": 1, "score": pov(chess.engine.Cp(20)),
             "pv": [chess.Move.from_uci("e2e4")]},
            {"depth": 10, "multipv": 2, "score": pov(chess.engine.Cp(10)),
             "pv": [chess.Move.from_uci("d2d4")]},
            {"depth": 10, "multipv": 1, "score": pov(chess.engine.Cp(30)),
             "pv": [chess.Move.from_uci("e2e4"), chess.Move.from_uci("e7e5")]},
        ])

        result = tracker.result()

        assert isinstance(result, PositionAnalysis)
        assert result.evaluation == pytest.approx(0.3)
        assert result.depth == 10
        assert result.best_move == "e2e4"
        assert result.mate is None
        assert [v.move for v in result.variations] == ["e2e4", "d2d4"]
        assert [v.line for v in result.variations] == ["e4", "d4"]
        assert result.variations[1].evaluation == pytest.approx(0.1)

    def test_reports_missing_fields_are_tolerated(self, board):
        """Test that reports without depth, score or pv do not break the fold."""
        tracker = SearchTracker(board)
        tracker.add({"string": "NNUE evaluation using nn-xyz.nnue"})
        tracker.add({"depth": 7})
        tracker.add({"score": pov(chess.engine.Cp(-15))})

        result = tracker.result()

        assert tracker.reports == 3
        assert result.depth == 7
        assert result.evaluation == pytest.approx(-0.15)
        assert result.best_move is None
        assert result.variations == ()

    def test_bestmove_overrides_pv(self, board):
        """Test that the terminal bestmove is preferred over the pv."""
        tracker = SearchTracker(board)
        tracker.add({"depth": 3, "score": pov(chess.engine.Cp(10)), "pv": [chess.Move.from_uci("e2e4")]})

        result = tracker.result(chess.Move.from_uci("g1f3"))

        assert result.best_move == "g1f3"

    def test_slots_beyond_multipv_are_ignored(self, board):
        """Test that extra multipv lines are dropped."""
        tracker = SearchTracker(board, multipv=1)
        tracker.add({"depth": 4, "multipv": 1, "score": pov(chess.engine.Cp(10)),
                     "pv": [chess.Move.from_uci("e2e4")]})
        tracker.add({"depth": 4, "multipv": 2, "score": pov(chess.engine.Cp(5)),
                     "pv": [chess.Move.from_uci("d2d4")]})

        result = tracker.result()

        assert len(result.variations) == 1

    def test_no_depth_reports_depth_one(self, board):
        """Test that a score without any depth yields depth 1."""
        tracker = SearchTracker(board)
        tracker.add({"score": pov(chess.engine.Cp(0))})
        assert tracker.result().depth == 1

    def test_black_to_move_mate_is_normalized(self):
        """Test mate normalization when Black is to move."""
        board = chess.Board("rnbqkbnr/pppp1ppp/8/4p3/6P1/5P2/PPPPP2P/RNBQKBNR b KQkq - 0 2")
        tracker = SearchTracker(board)
        tracker.add({"depth": 1, "score": pov(chess.engine.Mate(1), chess.BLACK),
                     "pv": [chess.Move.from_uci("d8h4")]})

        result = tracker.result()

        assert result.evaluation == pytest.approx(-19.9)
        assert result.mate == -1
        assert result.variations[0].line == "Qh4#"

    def test_no_score_raises(self, board):
        """Test that a search without any score is a hard failure."""
        tracker = SearchTracker(board)
        tracker.add({"depth": 12})

        assert not tracker.has_score
        with pytest.raises(EvaluationError):
            tracker.result()


class TestStockfishOracle:
    """Test suite for the engine lifecycle without a real engine."""

    def test_explicit_path_is_tried_alone(self):
        """Test that a configured path disables auto-detection."""
        assert resolve_engine_paths("/opt/engine") == ["/opt/engine"]

    def test_auto_detection_includes_common_paths(self):
        """Test that auto-detection tries the common install locations."""
        paths = resolve_engine_paths()
        for path in COMMON_ENGINE_PATHS:
            assert path in paths

    def test_missing_engine_is_unavailable(self):
        """Test that a missing binary reports unavailable instead of raising."""
        oracle = StockfishOracle(engine_path=MISSING_ENGINE, init_timeout=1.0)

        assert oracle.open() is False
        assert not oracle.available

    def test_open_engine_returns_none(self):
        """Test that open_engine returns None for a missing binary."""
        assert open_engine(engine_path=MISSING_ENGINE, init_timeout=1.0) is None

    def test_evaluate_without_engine_raises(self):
        """Test that evaluating on a closed oracle raises EvaluationError."""
        oracle = StockfishOracle(engine_path=MISSING_ENGINE)
        with pytest.raises(EvaluationError):
            oracle.evaluate(chess.Board(), depth=1, timeout=0.1)

    def test_close_is_idempotent(self):
        """Test that closing an unopened oracle is a no-op."""
        oracle = StockfishOracle(engine_path=MISSING_ENGINE)
        oracle.close()
        oracle.close()
        assert not oracle.available

    def test_protocol_conformance(self):
        """Test that both the adapter and the stub satisfy the protocol."""
        assert isinstance(StockfishOracle(), EvaluationOracle)
        assert isinstance(StubOracle(), EvaluationOracle)


class TestStockfishOracleEvaluate:
    """Test suite for the search loop, driven by a fake engine."""

    @pytest.fixture
    def board(self):
        """Position after 1. e4, Black to move."""
        board = chess.Board()
        board.push_san("e4")
        return board

    def make_oracle(self, engine, grace=0.0):
        oracle = StockfishOracle(watchdog_grace=grace)
        oracle._engine = engine
        return oracle

    def test_completed_search(self, board):
        """Test a search that finishes on its own."""
        engine = FakeEngine(
            [
                {"depth": 8, "multipv": 1, "score": pov(chess.engine.Cp(-20), chess.BLACK),
                 "pv": [chess.Move.from_uci("c7c5")]},
                {"depth": 8, "multipv": 2, "score": pov(chess.engine.Cp(-30), chess.BLACK),
                 "pv": [chess.Move.from_uci("e7e5")]},
            ],
            best_move=chess.Move.from_uci("c7c5"),
        )
        oracle = self.make_oracle(engine, grace=5.0)

        result = oracle.evaluate(board, depth=12, timeout=3.0)

        assert result.evaluation == pytest.approx(0.2)
        assert result.depth == 8
        assert result.best_move == "c7c5"
        assert [v.line for v in result.variations] == ["c5", "e5"]
        assert engine.limits[0].depth == 12
        assert engine.limits[0].time == 3.0
        assert engine.multipv == 3
        assert not engine.searches[0].stop_called

    def test_timeout_uses_partial_report(self, board):
        """Test that a stalled search is stopped and finalized from what arrived."""
        engine = FakeEngine(
            [{"depth": 5, "score": pov(chess.engine.Cp(40), chess.BLACK),
              "pv": [chess.Move.from_uci("e7e5")]}],
            hang=True,
        )
        oracle = self.make_oracle(engine)

        result = oracle.evaluate(board, depth=30, timeout=0.2)

        assert engine.searches[0].stop_called
        assert result.evaluation == pytest.approx(-0.4)
        assert result.depth == 5
        assert result.best_move == "e7e5"

    def test_timeout_without_score_raises(self, board):
        """Test that a stalled search with no score is an EvaluationError."""
        engine = FakeEngine([{"depth": 3}], hang=True)
        oracle = self.make_oracle(engine)

        with pytest.raises(EvaluationError):
            oracle.evaluate(board, depth=30, timeout=0.2)
        assert engine.searches[0].stop_called

    def test_board_is_not_modified(self, board):
        """Test that evaluating leaves the caller's board untouched."""
        engine = FakeEngine([{"depth": 1, "score": pov(chess.engine.Cp(0), chess.BLACK)}])
        oracle = self.make_oracle(engine, grace=5.0)
        fen = board.fen()

        result = oracle.evaluate(board, depth=1, timeout=1.0)

        assert board.fen() == fen
        assert result.fen == fen

    def test_close_quits_engine(self, board):
        """Test that closing the oracle quits the engine process."""
        engine = FakeEngine([])
        oracle = self.make_oracle(engine)

        oracle.close()

        assert engine.quit_called
        assert not oracle.available
