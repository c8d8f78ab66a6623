"""
End-to-end analysis of a single game.

Wires the game walker, the style profiler and the matcher together and
collects their outputs into a GameReport that can be serialized to JSON.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from loguru import logger

from playstyle_match.common.models import SIDES, WHITE, AnalysisResult, Move
from playstyle_match.config import AnalysisConfig
from playstyle_match.data.catalog import ReferenceProfile, default_catalog, get_profile, load_catalog
from playstyle_match.evaluation.game_analyzer import CancelCheck, GameAnalyzer, ProgressCallback
from playstyle_match.evaluation.matcher import MatchResult, match_style
from playstyle_match.evaluation.opening_classifier import classify_opening
from playstyle_match.evaluation.playstyle_metrics import StyleVector, calculate_playstyle


@dataclass(frozen=True)
class GameReport:
    """
    Everything computed for one side of one game.

    Attributes:
        side: Side that was profiled
        move_count: Number of half-moves in the game
        eco: ECO code of the opening, if recognized
        opening: Opening name, if recognized
        analysis: Evaluation trace and per-side statistics
        style: StyleVector of ``side``
        match: Matcher outcome
        profile: Catalog entry of the matched player
    """
    side: str
    move_count: int
    eco: Optional[str]
    opening: Optional[str]
    analysis: AnalysisResult
    style: StyleVector
    match: MatchResult
    profile: ReferenceProfile

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side": self.side,
            "move_count": self.move_count,
            "opening": {"eco": self.eco, "name": self.opening},
            "analysis": self.analysis.to_dict(),
            "style": self.style.to_dict(),
            "match": self.match.to_dict(),
            "profile": self.profile.to_dict(),
        }


def run_analysis(
    moves: Sequence[Move],
    side: str = WHITE,
    config: Optional[AnalysisConfig] = None,
    deep: bool = False,
    on_progress: Optional[ProgressCallback] = None,
    is_cancelled: Optional[CancelCheck] = None,
    analyzer: Optional[GameAnalyzer] = None,
    catalog: Optional[Sequence[ReferenceProfile]] = None
) -> GameReport:
    """
    Analyze a game, profile one side and match it against the catalog.

    Args:
        moves: Validated move list
        side: Side to profile ("white" or "black")
        config: Analysis configuration (None = defaults)
        deep: Use the deep search budget
        on_progress: Progress callback forwarded to the analyzer
        is_cancelled: Cancellation check forwarded to the analyzer
        analyzer: Analyzer to use (None = one built from ``config``, shut
            down before returning)
        catalog: Reference profiles (None = ``config.catalog_path`` or the
            bundled catalog)

    Returns:
        GameReport for ``side``

    Raises:
        InvalidMoveListError: If the move list is empty or illegal
        AnalysisCancelled: If ``is_cancelled`` returned True
        ValueError: If ``side`` is unknown or made no moves
    """
    log = logger.bind(context="run_analysis")
    if side not in SIDES:
        raise ValueError(f"Unknown side: {side!r}")
    config = config or AnalysisConfig()

    if catalog is None:
        catalog = load_catalog(config.catalog_path) if config.catalog_path else default_catalog()

    owns_analyzer = analyzer is None
    if owns_analyzer:
        analyzer = GameAnalyzer.from_config(config, deep=deep)

    depth, timeout = config.depth_and_timeout(deep)
    try:
        analysis = analyzer.analyze_game(
            moves,
            on_progress=on_progress,
            depth=depth,
            timeout=timeout,
            is_cancelled=is_cancelled,
        )
    finally:
        if owns_analyzer:
            analyzer.shutdown()

    style = calculate_playstyle(moves, analysis, side)
    match = match_style(style, catalog, avoid_id=config.avoid_profile_id)
    profile = get_profile(catalog, match.profile_id)
    eco, opening = classify_opening([m.san for m in moves])

    log.info(
        f"{side} plays most like {profile.name} (similarity {match.similarity:.3f}, "
        f"accuracy {analysis.accuracy.for_side(side):.2f}, "
        f"mistakes {analysis.mistakes.for_side(side)}, blunders {analysis.blunders.for_side(side)})"
    )
    return GameReport(
        side=side,
        move_count=len(moves),
        eco=eco,
        opening=opening,
        analysis=analysis,
        style=style,
        match=match,
        profile=profile,
    )
