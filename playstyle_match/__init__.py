"""
Playstyle analysis for chess games.

This package replays a game through a UCI engine, derives a six-trait
playstyle profile for one side, and matches that profile against a catalog of
reference players.

Modules:
    engine: Evaluation oracle adapter (Stockfish via python-chess) and the
        material fallback
    evaluation: Game walker, style profiler, opening classifier and matcher
    data: PGN/SAN loading and the reference catalog
    pipeline: End-to-end analysis producing a GameReport
    cli: Command-line entry point
"""

__version__ = "0.1.0"
