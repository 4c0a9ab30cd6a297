"""
Unit tests for the match engine.

Tests weighted scoring, ranking, filtering and config loading.
"""

import json

import pytest

from stafind.ranker import MatchEngine, MatchPolicy, find_missing_skills
from stafind.shared.models import Candidate


@pytest.fixture
def engine():
    return MatchEngine(policy=MatchPolicy())


class TestMatchPolicy:
    """Test policy validation."""

    def test_defaults(self):
        policy = MatchPolicy()

        assert policy.required_weight > policy.preferred_weight
        assert policy.score_scale == 100.0

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"required_weight": 1.0, "preferred_weight": 1.0}, "greater than"),
            ({"preferred_weight": -1.0}, "must not be negative"),
            ({"score_scale": 0}, "score_scale"),
            ({"fuzzy_threshold": 1.5}, "fuzzy_threshold"),
            ({"location_bonus": -1.0}, "location_bonus"),
        ],
    )
    def test_invalid_policy(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            MatchPolicy(**kwargs)


class TestScoreCandidate:
    """Test scoring of a single candidate."""

    def test_full_and_partial_required_coverage(self, engine):
        full = engine.score_candidate(["Go", "SQL"], [], Candidate(id=1, name="Ben", skills=("Go", "SQL")))
        half = engine.score_candidate(["Go", "SQL"], [], Candidate(id=2, name="Ana", skills=("Go",)))

        assert full.match_score == 100.0
        assert half.match_score == 50.0
        assert half.matching_skills == ("Go",)
        assert half.missing_skills == ("SQL",)

    def test_required_outweighs_preferred(self, engine):
        """Test that a required hit is worth more than a preferred hit."""
        required_hit = engine.score_candidate(["Go"], ["Docker"], Candidate(id=1, name="A", skills=("Go",)))
        preferred_hit = engine.score_candidate(["Go"], ["Docker"], Candidate(id=2, name="B", skills=("Docker",)))

        assert required_hit.match_score == 75.0
        assert preferred_hit.match_score == 25.0

    def test_matching_is_case_and_punctuation_insensitive(self, engine):
        match = engine.score_candidate(["node.js", "POSTGRESQL"], [], Candidate(id=1, name="A", skills=("NodeJS", "PostgreSQL")))

        assert match.match_score == 100.0

    def test_skill_in_both_lists_counts_as_required(self, engine):
        match = engine.score_candidate(["Go"], ["go"], Candidate(id=1, name="A", skills=("Go",)))

        assert match.match_score == 100.0
        assert match.matching_skills == ("Go",)

    def test_notes_explain_the_match(self, engine):
        match = engine.score_candidate(["Go", "SQL"], [], Candidate(id=1, name="Ana", skills=("Go", "SQL")))

        assert match.notes == "Excellent match! Ana has 2 of 2 requested skills: Go, SQL."

    def test_notes_list_missing_skills(self, engine):
        match = engine.score_candidate(["Go", "SQL"], [], Candidate(id=1, name="Ana", skills=("Go",)))

        assert match.notes.startswith("Good match.")
        assert "Missing: SQL." in match.notes

    def test_more_skills_never_lower_the_score(self, engine):
        """Test that adding a skill to a candidate does not reduce their score."""
        required, preferred = ["Go", "SQL", "AWS"], ["Docker"]
        skills = []
        previous = 0.0
        for skill in ["Docker", "Go", "AWS", "SQL", "Rust"]:
            skills.append(skill)
            score = engine.score_candidate(required, preferred, Candidate(id=1, name="A", skills=tuple(skills))).match_score
            assert score >= previous
            assert 0.0 <= score <= 100.0
            previous = score
        assert previous == 100.0


class TestScorePool:
    """Test ranking of a candidate pool."""

    def test_better_candidate_ranks_first(self, engine, sample_candidates):
        matches = engine.score(["Go", "SQL"], [], sample_candidates, min_score=1)

        assert [m.employee_id for m in matches] == [2, 1, 3]
        assert [m.match_score for m in matches] == [100.0, 50.0, 50.0]

    def test_min_score_filters(self, engine, sample_candidates):
        matches = engine.score(["Go", "SQL"], [], sample_candidates, min_score=60)

        assert [m.employee_id for m in matches] == [2]

    def test_top_n_truncates(self, engine, sample_candidates):
        matches = engine.score(["Go", "SQL"], [], sample_candidates, min_score=0, top_n=2)

        assert [m.employee_id for m in matches] == [2, 1]

    def test_ties_broken_by_id(self, engine):
        pool = [Candidate(id=9, name="Z", skills=("Go",)), Candidate(id=4, name="Y", skills=("Go",))]

        assert [m.employee_id for m in engine.score(["Go"], [], pool, min_score=0)] == [4, 9]

    def test_empty_pool_or_required(self, engine, sample_candidates):
        assert engine.score(["Go"], [], [], min_score=0) == []
        assert engine.score([], ["Go"], sample_candidates, min_score=0) == []
        assert engine.score(["  "], [], sample_candidates, min_score=0) == []

    def test_rejects_bad_top_n(self, engine, sample_candidates):
        with pytest.raises(ValueError, match="top_n"):
            engine.score(["Go"], [], sample_candidates, min_score=0, top_n=0)


class TestMatchConfig:
    """Test JSON config loading."""

    def test_packaged_config_is_loaded(self):
        engine = MatchEngine()

        assert engine.policy == MatchPolicy(3.0, 1.0, 100.0, None)
        assert engine.explanation_tiers[0] == (80.0, "Excellent match!")
        assert engine.experience_levels["senior"] == 3
        assert engine.abbreviations["k8s"] == ["kubernetes"]

    def test_custom_config_file(self, tmp_path):
        config = {
            "match_policy": {"required_weight": 2.0, "preferred_weight": 1.0, "score_scale": 10.0},
            "explanation_tiers": [{"min_score": 0, "label": "Match."}],
        }
        path = tmp_path / "matching.json"
        path.write_text(json.dumps(config))

        engine = MatchEngine(config_path=str(path))
        match = engine.score_candidate(["Go"], ["SQL"], Candidate(id=1, name="A", skills=("Go",)))

        assert match.match_score == 6.67
        assert match.notes.startswith("Match.")

    def test_invalid_config_falls_back_to_packaged(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        assert MatchEngine(config_path=str(path)).policy == MatchPolicy()

    def test_fuzzy_matching(self):
        engine = MatchEngine(policy=MatchPolicy(fuzzy_threshold=0.8))

        match = engine.score_candidate(["Kubernetes"], [], Candidate(id=1, name="A", skills=("Kubernets",)))

        assert match.match_score == 100.0


def test_find_missing_skills():
    assert find_missing_skills(["Go", "SQL", "go"], ["sql"]) == ["Go"]


class TestBonuses:
    """Test department, level and location bonuses."""

    def test_no_criteria_means_no_bonus(self, engine):
        candidate = Candidate(id=1, name="Ana", department="Platform", level="senior", location="Lisbon", skills=("Go",))

        assert engine.score_candidate(["Go", "SQL"], [], candidate).match_score == 50.0

    def test_department_bonus(self, engine):
        candidate = Candidate(id=1, name="Ana", department="Engineering", skills=("Go",))

        same = engine.score_candidate(["Go", "SQL"], [], candidate, department="engineering")
        other = engine.score_candidate(["Go", "SQL"], [], candidate, department="Sales")

        assert same.match_score == 60.0
        assert other.match_score == 50.0

    @pytest.mark.parametrize(
        "candidate_level,expected",
        [("staff", 57.5), ("Senior", 57.5), ("mid", 53.33), ("junior", 51.67), ("intern", 50.0), (None, 50.0)],
    )
    def test_level_bonus(self, engine, candidate_level, expected):
        """Test full credit at or above the level and partial credit below it."""
        candidate = Candidate(id=1, name="Ana", level=candidate_level, skills=("Go",))

        match = engine.score_candidate(["Go", "SQL"], [], candidate, level="senior")

        assert match.match_score == expected

    def test_location_bonus(self, engine):
        candidate = Candidate(id=1, name="Ana", location="Buenos Aires", skills=("Go",))

        assert engine.score_candidate(["Go", "SQL"], [], candidate, location="buenos aires").match_score == 55.0
        assert engine.score_candidate(["Go", "SQL"], [], candidate, location="Madrid").match_score == 50.0

    def test_total_clamped_to_scale(self, engine):
        candidate = Candidate(
            id=1, name="Ana", department="Platform", level="principal", location="Lisbon", skills=("Go", "SQL")
        )

        match = engine.score_candidate(
            ["Go", "SQL"], [], candidate, department="Platform", level="senior", location="Lisbon"
        )

        assert match.match_score == 100.0

    def test_bonus_changes_ranking(self, engine):
        pool = [
            Candidate(id=1, name="Ana", department="Data", skills=("Go",)),
            Candidate(id=2, name="Ben", department="Platform", skills=("Go",)),
        ]

        matches = engine.score(["Go", "SQL"], [], pool, min_score=0, department="Platform")

        assert [(m.employee_id, m.match_score) for m in matches] == [(2, 60.0), (1, 50.0)]

    def test_bonus_weights_from_config(self, tmp_path):
        config = {"match_policy": {"department_bonus": 20.0}}
        path = tmp_path / "matching.json"
        path.write_text(json.dumps(config))

        engine = MatchEngine(config_path=str(path))
        candidate = Candidate(id=1, name="Ana", department="Platform", skills=("Go",))

        assert engine.score_candidate(["Go", "SQL"], [], candidate, department="Platform").match_score == 70.0


class TestAbbreviations:
    """Test matching of common skill abbreviations."""

    def test_requested_abbreviation_matches_full_name(self, engine):
        match = engine.score_candidate(["k8s", "JS"], [], Candidate(id=1, name="A", skills=("Kubernetes", "JavaScript")))

        assert match.match_score == 100.0
        assert match.missing_skills == ()

    def test_full_name_matches_candidate_abbreviation(self, engine):
        match = engine.score_candidate(["Golang"], [], Candidate(id=1, name="A", skills=("Go",)))

        assert match.match_score == 100.0

    def test_sql_matches_database_products(self, engine):
        match = engine.score_candidate(["SQL"], [], Candidate(id=1, name="A", skills=("PostgreSQL",)))

        assert match.match_score == 100.0

    def test_unrelated_skill_does_not_match(self, engine):
        match = engine.score_candidate(["k8s"], [], Candidate(id=1, name="A", skills=("Docker",)))

        assert match.match_score == 0.0
        assert match.missing_skills == ("k8s",)
