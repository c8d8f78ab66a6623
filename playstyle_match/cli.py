"""
Command-line entry point.

Usage:
    playstyle-match analyze game.pgn --side black --deep
    playstyle-match analyze --moves "e4 e5 Nf3 Nc6" --output report.json
    playstyle-match catalog

Exit codes: 0 on success, 1 on invalid input, 130 when interrupted.
"""

import argparse
import json
import signal
import sys
import threading
from typing import Any, Dict, List, Optional

from loguru import logger

from playstyle_match import __version__
from playstyle_match.common.models import SIDES, WHITE
from playstyle_match.config import load_config_with_overrides
from playstyle_match.data.catalog import default_catalog, load_catalog
from playstyle_match.data.game_loader import load_pgn_file, moves_from_san
from playstyle_match.errors import AnalysisCancelled, InvalidMoveListError
from playstyle_match.pipeline import run_analysis

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

EXIT_OK = 0
EXIT_INVALID_INPUT = 1
EXIT_CANCELLED = 130

# Progress is logged each time another PROGRESS_STEP percent of the moves is done
PROGRESS_STEP = 10


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Minimum level for all sinks
        log_file: Optional file sink, rotated at 10 MB
    """
    logger.remove()  # Remove default handler
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    if log_file:
        logger.add(log_file, level=level, format=LOG_FORMAT, rotation="10 MB", retention=5)


def _progress_logger():
    """Build a progress callback that logs every PROGRESS_STEP percent."""
    state = {"next": 0.0}

    def on_progress(percent: float) -> None:
        if percent >= state["next"]:
            logger.info(f"Progress: {percent:.0f}%")
            while state["next"] <= percent:
                state["next"] += PROGRESS_STEP

    return on_progress


def _write_json(data: Any, output: Optional[str]) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(text + "\n")
        logger.info(f"Report written to {output}")
    else:
        print(text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playstyle-match",
        description="Analyze a chess game and match the player's style to a reference player"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze one game")
    source = analyze.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "pgn_file",
        nargs="?",
        help="PGN file containing the game"
    )
    source.add_argument(
        "--moves",
        type=str,
        help='SAN moves from the initial position, e.g. "e4 e5 Nf3 Nc6"'
    )
    analyze.add_argument(
        "--game-index",
        type=int,
        default=0,
        help="0-based index of the game in the PGN file (default: 0)"
    )
    analyze.add_argument(
        "--side",
        choices=list(SIDES),
        default=WHITE,
        help="Side to profile (default: white)"
    )
    analyze.add_argument(
        "--deep",
        action="store_true",
        help="Use the deep search budget"
    )
    analyze.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to an analysis config YAML file"
    )
    analyze.add_argument(
        "--engine",
        type=str,
        default=None,
        help="Path to a UCI engine binary (default: auto-detect Stockfish)"
    )
    analyze.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write the JSON report to this file instead of stdout"
    )
    analyze.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, INFO)"
    )

    catalog = subparsers.add_parser("catalog", help="List the reference players")
    catalog.add_argument(
        "--catalog",
        type=str,
        default=None,
        help="Path to a catalog YAML file (default: bundled catalog)"
    )

    return parser


def _run_analyze(args: argparse.Namespace) -> int:
    try:
        config = load_config_with_overrides(args.config, engine_path=args.engine)
    except (FileNotFoundError, ValueError) as e:
        setup_logging(args.log_level or "INFO")
        logger.error(f"Invalid configuration: {e}")
        return EXIT_INVALID_INPUT

    setup_logging(args.log_level or config.logging.get("level", "INFO"), config.logging.get("file"))
    log = logger.bind(context="cli.analyze")

    try:
        if args.moves:
            moves = moves_from_san(args.moves)
        else:
            moves = load_pgn_file(args.pgn_file, args.game_index)
    except (FileNotFoundError, InvalidMoveListError) as e:
        log.error(f"Invalid game input: {e}")
        return EXIT_INVALID_INPUT

    # Ctrl-C sets the cancellation flag; the analyzer stops at the next move
    cancel_event = threading.Event()

    def handle_sigint(signum, frame):
        log.warning("Interrupt received, cancelling analysis")
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, handle_sigint)
    try:
        report = run_analysis(
            moves,
            side=args.side,
            config=config,
            deep=args.deep,
            on_progress=_progress_logger(),
            is_cancelled=cancel_event.is_set,
        )
    except AnalysisCancelled as e:
        log.warning(str(e))
        return EXIT_CANCELLED
    except (FileNotFoundError, ValueError) as e:
        log.error(f"Analysis failed: {e}")
        return EXIT_INVALID_INPUT
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    _write_json(report.to_dict(), args.output)
    log.success(
        f"{args.side} ({report.style.archetype}) matches {report.profile.name} "
        f"with similarity {report.match.similarity:.3f}"
    )
    return EXIT_OK


def _run_catalog(args: argparse.Namespace) -> int:
    setup_logging("WARNING")
    try:
        catalog = load_catalog(args.catalog) if args.catalog else default_catalog()
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Invalid catalog: {e}")
        return EXIT_INVALID_INPUT

    entries: List[Dict[str, Any]] = [profile.to_dict() for profile in catalog]
    _write_json(entries, None)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.command == "analyze":
        return _run_analyze(args)
    return _run_catalog(args)


if __name__ == "__main__":
    sys.exit(main())
