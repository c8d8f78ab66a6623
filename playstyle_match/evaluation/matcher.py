"""
Reference player matcher.

Compares a StyleVector against the reference catalog with a weighted
Manhattan distance and picks one catalog id deterministically.

Selection rule:
    1. similarity = 1 / (1 + distance) for every catalog entry
    2. candidates = entries with similarity >= 0.85 * best similarity
    3. a single candidate wins outright
    4. otherwise the fractional part of a weighted trait sum indexes into the
       candidates; a designated id (``avoid_id``) is skipped when other
       candidates exist

The endgame trait takes part in the distance even when it is the -1
"not reached" sentinel, so short games are pulled away from every profile by
the same endgame penalty.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from playstyle_match.data.catalog import ReferenceProfile, default_catalog
from playstyle_match.evaluation.playstyle_metrics import TRAITS, StyleVector

# Per-trait distance weights, TRAITS order
TRAIT_WEIGHTS = np.array([1.5, 1.5, 1.5, 1.2, 1.5, 1.3])

CANDIDATE_RATIO = 0.85
DEFAULT_AVOID_ID = "anand"

# Per-trait multipliers of the tie-break sum, TRAITS order
SELECTOR_WEIGHTS = (10, 7, 5, 3, 11, 2)


@dataclass(frozen=True)
class ProfileScore:
    """Similarity of a StyleVector to one catalog entry."""
    profile_id: str
    name: str
    distance: float
    similarity: float
    differences: Dict[str, float] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile_id": self.profile_id,
            "name": self.name,
            "distance": round(self.distance, 4),
            "similarity": round(self.similarity, 4),
            "differences": {k: round(v, 4) for k, v in self.differences.items()},
        }


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one StyleVector."""
    profile_id: str
    similarity: float
    candidates: Tuple[str, ...]
    ranking: Tuple[ProfileScore, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile_id": self.profile_id,
            "similarity": round(self.similarity, 4),
            "candidates": list(self.candidates),
            "ranking": [s.to_dict() for s in self.ranking],
        }


def trait_differences(a: StyleVector, b: StyleVector) -> np.ndarray:
    """Absolute per-trait differences, in TRAITS order."""
    return np.abs(np.array(a.traits()) - np.array(b.traits()))


def weighted_distance(a: StyleVector, b: StyleVector) -> float:
    """Weighted Manhattan distance over the six traits."""
    return float(np.dot(TRAIT_WEIGHTS, trait_differences(a, b)))


def rank_profiles(style: StyleVector, catalog: Sequence[ReferenceProfile]) -> List[ProfileScore]:
    """
    Score every catalog entry, most similar first.

    Entries with equal similarity keep their catalog order.

    Args:
        style: Query vector
        catalog: Reference profiles

    Returns:
        ProfileScore list sorted by descending similarity
    """
    if not catalog:
        raise ValueError("Catalog is empty")

    scores = []
    for profile in catalog:
        distance = weighted_distance(style, profile.playstyle)
        diff = trait_differences(style, profile.playstyle)
        scores.append(ProfileScore(
            profile_id=profile.id,
            name=profile.name,
            distance=distance,
            similarity=1.0 / (1.0 + distance),
            differences=dict(zip(TRAITS, (float(d) for d in diff))),
        ))

    return sorted(scores, key=lambda s: s.similarity, reverse=True)


def selector_fraction(style: StyleVector) -> float:
    """Fractional part of the weighted trait sum used to break ties."""
    style_sum = sum(w * t for w, t in zip(SELECTOR_WEIGHTS, style.traits()))
    return style_sum % 1.0


def match_style(
    style: StyleVector,
    catalog: Optional[Sequence[ReferenceProfile]] = None,
    avoid_id: Optional[str] = DEFAULT_AVOID_ID
) -> MatchResult:
    """
    Match a StyleVector against the catalog.

    Args:
        style: Query vector
        catalog: Reference profiles (None = bundled catalog)
        avoid_id: Catalog id skipped on ties when other candidates exist

    Returns:
        MatchResult with the chosen id, its similarity and the full ranking
    """
    log = logger.bind(context="match_style")
    if catalog is None:
        catalog = default_catalog()

    ranking = rank_profiles(style, catalog)
    for score in ranking:
        log.debug(
            f"{score.name}: similarity={score.similarity:.3f} "
            + ", ".join(f"{k}={v:.2f}" for k, v in score.differences.items())
        )

    best_similarity = ranking[0].similarity
    candidates = [s for s in ranking if s.similarity >= best_similarity * CANDIDATE_RATIO]

    chosen = candidates[0]
    if len(candidates) > 1:
        fraction = selector_fraction(style)
        chosen = candidates[math.floor(fraction * len(candidates))]

        if chosen.profile_id == avoid_id:
            filtered = [c for c in candidates if c.profile_id != avoid_id]
            chosen = filtered[math.floor(fraction * len(filtered))]
            log.debug(f"Skipped {avoid_id}, selected {chosen.name}")

        log.info(f"Selected {chosen.name} among {len(candidates)} close candidates")
    else:
        log.info(f"Selected {chosen.name} (similarity {chosen.similarity:.3f})")

    return MatchResult(
        profile_id=chosen.profile_id,
        similarity=chosen.similarity,
        candidates=tuple(c.profile_id for c in candidates),
        ranking=tuple(ranking),
    )


def find_match(
    style: StyleVector,
    catalog: Optional[Sequence[ReferenceProfile]] = None,
    avoid_id: Optional[str] = DEFAULT_AVOID_ID
) -> str:
    """
    Pick the catalog id that best matches ``style``.

    Deterministic: identical vectors always give the same id.
    """
    return match_style(style, catalog, avoid_id).profile_id
