"""
Opening classifier for analyzed games.

Two classifications are provided:
- Repertoire families: coarse labels describing the opening choice of one
  side, found by token-substring search over the first plies of SAN text.
  These feed the StyleVector's opening_repertoire.
- ECO lookup: (ECO code, opening name) by longest SAN-prefix match against
  a table of common openings. Reported alongside the analysis, never matched.
"""

from typing import List, Optional, Sequence, Tuple

from playstyle_match.common.models import WHITE

# Plies of SAN text inspected for the repertoire family
OPENING_PLIES = 12

# Ordered (SAN substring, labels); first hit wins
WHITE_FAMILIES = [
    ("e4 e5", ["Open Game", "Italian Game", "Ruy Lopez"]),
    ("e4 c5", ["Sicilian Defense (as White)"]),
    ("d4 d5", ["Queen's Gambit", "Closed Games"]),
    ("d4 Nf6", ["Indian Defense Systems (as White)"]),
    ("c4", ["English Opening"]),
    ("Nf3", ["Reti Opening", "Flexible Systems"]),
]
WHITE_DEFAULT = ["Flexible Opening Repertoire"]

BLACK_FAMILIES = [
    ("e4 e5", ["Open Game (as Black)", "Two Knights Defense"]),
    ("e4 c5", ["Sicilian Defense"]),
    ("e4 e6", ["French Defense"]),
    ("e4 c6", ["Caro-Kann Defense"]),
    ("d4 d5", ["Queen's Gambit Declined", "Slav Defense"]),
    ("d4 Nf6", ["Indian Defense", "King's Indian", "Nimzo-Indian"]),
]
BLACK_DEFAULT = ["Flexible Defense Repertoire"]


# SAN prefix -> (ECO, name)
ECO_PATTERNS = {
    # 1. e4 e5
    ("e4", "e5"): ("C20", "King's Pawn Game"),
    ("e4", "e5", "Nf3"): ("C40", "King's Knight Opening"),
    ("e4", "e5", "Nf3", "Nc6"): ("C44", "King's Knight Opening, Normal Variation"),
    ("e4", "e5", "Nf3", "Nc6", "Bb5"): ("C60", "Ruy Lopez"),
    ("e4", "e5", "Nf3", "Nc6", "Bb5", "a6"): ("C70", "Ruy Lopez, Morphy Defense"),
    ("e4", "e5", "Nf3", "Nc6", "Bb5", "Nf6"): ("C65", "Ruy Lopez, Berlin Defense"),
    ("e4", "e5", "Nf3", "Nc6", "Bc4"): ("C50", "Italian Game"),
    ("e4", "e5", "Nf3", "Nc6", "Bc4", "Bc5"): ("C50", "Italian Game, Giuoco Piano"),
    ("e4", "e5", "Nf3", "Nc6", "Bc4", "Nf6"): ("C55", "Italian Game, Two Knights Defense"),
    ("e4", "e5", "Nf3", "Nc6", "d4"): ("C44", "Scotch Game"),
    ("e4", "e5", "Nf3", "Nc6", "Nc3"): ("C46", "Four Knights Game"),
    ("e4", "e5", "Nf3", "Nf6"): ("C42", "Petrov Defense"),
    ("e4", "e5", "Nf3", "d6"): ("C41", "Philidor Defense"),
    ("e4", "e5", "f4"): ("C30", "King's Gambit"),
    ("e4", "e5", "f4", "exf4"): ("C33", "King's Gambit Accepted"),
    ("e4", "e5", "Nc3"): ("C25", "Vienna Game"),
    # 1. e4 other
    ("e4", "c5"): ("B20", "Sicilian Defense"),
    ("e4", "c5", "Nf3", "d6"): ("B50", "Sicilian Defense"),
    ("e4", "c5", "Nf3", "Nc6"): ("B30", "Sicilian Defense, Old Sicilian"),
    ("e4", "c5", "Nf3", "e6"): ("B40", "Sicilian Defense, French Variation"),
    ("e4", "c5", "c3"): ("B22", "Sicilian Defense, Alapin Variation"),
    ("e4", "c5", "Nc3"): ("B23", "Sicilian Defense, Closed"),
    ("e4", "e6"): ("C00", "French Defense"),
    ("e4", "e6", "d4", "d5", "Nc3"): ("C15", "French Defense, Winawer Variation"),
    ("e4", "e6", "d4", "d5", "Nd2"): ("C03", "French Defense, Tarrasch Variation"),
    ("e4", "e6", "d4", "d5", "e5"): ("C02", "French Defense, Advance Variation"),
    ("e4", "c6"): ("B10", "Caro-Kann Defense"),
    ("e4", "c6", "d4", "d5", "e5"): ("B12", "Caro-Kann Defense, Advance Variation"),
    ("e4", "d5"): ("B01", "Scandinavian Defense"),
    ("e4", "Nf6"): ("B02", "Alekhine's Defense"),
    ("e4", "d6"): ("B07", "Pirc Defense"),
    ("e4", "g6"): ("B06", "Modern Defense"),
    # 1. d4
    ("d4", "d5"): ("D00", "Queen's Pawn Game"),
    ("d4", "d5", "c4"): ("D06", "Queen's Gambit"),
    ("d4", "d5", "c4", "e6"): ("D30", "Queen's Gambit Declined"),
    ("d4", "d5", "c4", "c6"): ("D10", "Slav Defense"),
    ("d4", "d5", "c4", "dxc4"): ("D20", "Queen's Gambit Accepted"),
    ("d4", "d5", "Bf4"): ("D02", "London System"),
    ("d4", "Nf6"): ("A45", "Indian Defense"),
    ("d4", "Nf6", "c4", "e6"): ("E00", "Indian Defense, East Indian"),
    ("d4", "Nf6", "c4", "e6", "Nc3", "Bb4"): ("E20", "Nimzo-Indian Defense"),
    ("d4", "Nf6", "c4", "e6", "Nf3", "b6"): ("E12", "Queen's Indian Defense"),
    ("d4", "Nf6", "c4", "g6"): ("E60", "King's Indian Defense"),
    ("d4", "Nf6", "c4", "g6", "Nc3", "d5"): ("D80", "Grunfeld Defense"),
    ("d4", "Nf6", "c4", "c5"): ("A56", "Benoni Defense"),
    ("d4", "Nf6", "Bf4"): ("A45", "London System"),
    ("d4", "f5"): ("A80", "Dutch Defense"),
    # Flank openings
    ("c4",): ("A10", "English Opening"),
    ("c4", "e5"): ("A20", "English Opening, King's English Variation"),
    ("c4", "c5"): ("A30", "English Opening, Symmetrical Variation"),
    ("Nf3",): ("A04", "Reti Opening"),
    ("Nf3", "d5", "c4"): ("A09", "Reti Opening"),
    ("g3",): ("A00", "Hungarian Opening"),
    ("b3",): ("A01", "Nimzo-Larsen Attack"),
    ("f4",): ("A02", "Bird's Opening"),
}


def determine_openings(sans: Sequence[str], side: str) -> List[str]:
    """
    Label the opening family played by ``side``.

    Args:
        sans: SAN moves of the whole game in order
        side: "white" or "black"

    Returns:
        Non-empty list of repertoire labels
    """
    # Plain substring test: "c4" also hits "Bc4", "e4 e5" also hits "Ne4 e5"
    text = " ".join(sans[:OPENING_PLIES])

    if side == WHITE:
        families, default = WHITE_FAMILIES, WHITE_DEFAULT
    else:
        families, default = BLACK_FAMILIES, BLACK_DEFAULT

    for tokens, labels in families:
        if tokens in text:
            return list(labels)
    return list(default)


def classify_opening(sans: Sequence[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Look up the ECO code and opening name by longest SAN prefix.

    Args:
        sans: SAN moves in order

    Returns:
        Tuple of (ECO code, opening name) or (None, None) if not classified
    """
    best_match: Tuple[Optional[str], Optional[str]] = (None, None)
    best_match_length = 0

    for pattern, (eco, name) in ECO_PATTERNS.items():
        pattern_length = len(pattern)
        if best_match_length < pattern_length <= len(sans):
            if tuple(sans[:pattern_length]) == pattern:
                best_match = (eco, name)
                best_match_length = pattern_length

    return best_match
