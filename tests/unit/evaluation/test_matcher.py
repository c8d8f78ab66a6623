"""
Unit tests for evaluation/matcher.py

Tests weighted distance, ranking and the deterministic candidate selection.
"""

import pytest

from playstyle_match.data.catalog import ReferenceProfile, get_profile
from playstyle_match.evaluation.matcher import (
    CANDIDATE_RATIO,
    find_match,
    match_style,
    rank_profiles,
    selector_fraction,
    weighted_distance,
)
from playstyle_match.evaluation.playstyle_metrics import StyleVector


def style(aggression=0.5, positional=0.5, tactical=0.5, defensive=0.5, risk_taking=0.5, endgame=0.5):
    return StyleVector(aggression, positional, tactical, defensive, risk_taking, endgame)


def profile(profile_id, vector):
    return ReferenceProfile(id=profile_id, name=profile_id.title(), playstyle=vector)


class TestWeightedDistance:
    """Test suite for the weighted Manhattan distance."""

    def test_identical_vectors(self):
        """Test that identical vectors are at distance 0."""
        assert weighted_distance(style(), style()) == 0.0

    def test_trait_weights(self):
        """Test the per-trait weights."""
        assert weighted_distance(style(), style(tactical=0.7)) == pytest.approx(0.3)
        assert weighted_distance(style(), style(defensive=0.7)) == pytest.approx(0.24)
        assert weighted_distance(style(), style(endgame=0.7)) == pytest.approx(0.26)

    def test_sentinel_takes_part(self):
        """Test that a -1 endgame counts numerically in the distance."""
        assert weighted_distance(style(endgame=-1.0), style(endgame=0.5)) == pytest.approx(1.3 * 1.5)


class TestRankProfiles:
    """Test suite for rank_profiles."""

    def test_sorted_by_similarity(self, catalog):
        """Test that the ranking covers the catalog, most similar first."""
        ranking = rank_profiles(get_profile(catalog, "tal").playstyle, catalog)

        assert len(ranking) == len(catalog)
        assert ranking[0].profile_id == "tal"
        similarities = [s.similarity for s in ranking]
        assert similarities == sorted(similarities, reverse=True)

    def test_similarity_formula(self):
        """Test similarity = 1 / (1 + distance)."""
        ranking = rank_profiles(style(), [profile("alpha", style(tactical=0.7))])
        assert ranking[0].distance == pytest.approx(0.3)
        assert ranking[0].similarity == pytest.approx(1 / 1.3)
        assert ranking[0].differences["tactical"] == pytest.approx(0.2)

    def test_distances_match_weighted_distance(self, catalog):
        """Test that every ranked distance is the weighted distance to that profile."""
        query = style(aggression=0.9, endgame=-1.0)

        for score in rank_profiles(query, catalog):
            expected = weighted_distance(query, get_profile(catalog, score.profile_id).playstyle)
            assert score.distance == expected

    def test_ties_keep_catalog_order(self):
        """Test that equal similarities keep catalog order."""
        catalog = [profile("beta", style()), profile("alpha", style())]
        assert [s.profile_id for s in rank_profiles(style(), catalog)] == ["beta", "alpha"]

    def test_empty_catalog_rejected(self):
        """Test that an empty catalog raises ValueError."""
        with pytest.raises(ValueError):
            rank_profiles(style(), [])


class TestSelectorFraction:
    """Test suite for the tie-break selector."""

    def test_fraction(self):
        """Test the fractional part of the weighted trait sum."""
        assert selector_fraction(style()) == 0.0
        assert selector_fraction(style(endgame=0.75)) == 0.5


class TestMatchStyle:
    """Test suite for match_style and find_match."""

    @pytest.mark.parametrize("profile_id", ["tal", "kasparov"])
    def test_exact_catalog_vector(self, catalog, profile_id):
        """Test that an exact catalog vector matches itself without ties."""
        target = get_profile(catalog, profile_id)
        result = match_style(target.playstyle, catalog)

        assert result.profile_id == profile_id
        assert result.similarity == 1.0
        assert result.candidates == (profile_id,)

    def test_exact_match_in_separated_catalog(self):
        """Test the exact-match example on a catalog with well separated entries."""
        catalog = [
            profile("attacker", style(0.95, 0.4, 0.9, 0.3, 0.95, 0.4)),
            profile("defender", style(0.3, 0.95, 0.5, 0.95, 0.2, 0.9)),
            profile("balanced", style(0.6, 0.6, 0.6, 0.6, 0.6, 0.6)),
        ]
        result = match_style(style(0.3, 0.95, 0.5, 0.95, 0.2, 0.9), catalog)

        assert result.profile_id == "defender"
        assert result.similarity == 1.0
        assert len(result.candidates) == 1
        second = result.ranking[1].similarity
        assert second < CANDIDATE_RATIO

    def test_selector_picks_among_candidates(self):
        """Test that the fractional selector indexes into the candidate set."""
        catalog = [
            profile("alpha", style(endgame=0.75)),
            profile("bravo", style(aggression=0.55, endgame=0.75)),
            profile("zulu", style(0.1, 0.1, 0.1, 0.1, 0.1, 0.1)),
        ]
        result = match_style(style(endgame=0.75), catalog, avoid_id=None)

        assert result.candidates == ("alpha", "bravo")
        assert result.profile_id == "bravo"

    def test_avoided_id_skipped_on_ties(self):
        """Test that the designated id is skipped when alternatives exist."""
        catalog = [profile("anand", style()), profile("bravo", style())]

        assert match_style(style(), catalog).profile_id == "bravo"
        assert match_style(style(), catalog, avoid_id=None).profile_id == "anand"

    def test_avoided_id_kept_when_alone(self):
        """Test that the designated id is returned when it is the only candidate."""
        catalog = [profile("anand", style()), profile("zulu", style(0.1, 0.1, 0.1, 0.1, 0.1, 0.1))]
        assert match_style(style(), catalog).profile_id == "anand"

    def test_deterministic(self, catalog):
        """Test that identical vectors always give the same id."""
        query = style(0.7, 0.8, 0.75, 0.7, 0.6, -1.0)
        results = {find_match(query, catalog) for _ in range(5)}
        assert len(results) == 1

    def test_default_catalog(self, catalog):
        """Test that the bundled catalog is used when none is given."""
        query = get_profile(catalog, "tal").playstyle
        assert find_match(query) == "tal"

    def test_to_dict(self, catalog):
        """Test MatchResult serialization."""
        data = match_style(get_profile(catalog, "tal").playstyle, catalog).to_dict()

        assert data["profile_id"] == "tal"
        assert data["similarity"] == 1.0
        assert len(data["ranking"]) == len(catalog)
        assert set(data["ranking"][0]["differences"]) == {
            "aggression", "positional", "tactical", "defensive", "risk_taking", "endgame"
        }
