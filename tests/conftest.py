"""
Pytest configuration and shared fixtures for playstyle-match tests.

Key Fixtures:
    - opening_moves: The four-ply game e4 e5 Nf3 Nc6
    - stub_oracle: Scripted oracle returning 0.2 after White moves and -0.1
      after Black moves
    - catalog: The bundled reference catalog
    - sample_pgn: A short two-game PGN text
"""

import sys

import pytest
from loguru import logger

from playstyle_match.data.catalog import default_catalog
from playstyle_match.data.game_loader import moves_from_san
from tests.fixtures.game_utils import StubOracle

SAMPLE_PGN = """[Event "Casual Game"]
[Site "?"]
[White "Alice"]
[Black "Bob"]
[Result "1-0"]

1. e4 e5 2. Nf3 Nc6 3. Bb5 a6 4. Ba4 Nf6 5. O-O Be7 1-0

[Event "Casual Game"]
[Site "?"]
[White "Carol"]
[Black "Dave"]
[Result "0-1"]

1. f3 e5 2. g4 Qh4# 0-1
"""


@pytest.fixture
def opening_moves():
    """Move records for 1. e4 e5 2. Nf3 Nc6."""
    return moves_from_san("e4 e5 Nf3 Nc6")


@pytest.fixture
def stub_oracle():
    """Scripted oracle with the alternating 0.2 / -0.1 evaluations."""
    return StubOracle()


@pytest.fixture
def catalog():
    """The bundled reference catalog."""
    return default_catalog()


@pytest.fixture
def sample_pgn():
    """PGN text with a Ruy Lopez game followed by Fool's Mate."""
    return SAMPLE_PGN


@pytest.fixture
def pgn_file(tmp_path, sample_pgn):
    """The sample PGN written to a temporary file."""
    path = tmp_path / "games.pgn"
    path.write_text(sample_pgn, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def restore_logging():
    """Reinstall the default loguru sink after tests that reconfigure logging."""
    yield
    logger.remove()
    logger.add(sys.stderr)
