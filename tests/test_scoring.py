"""Tests for similarity scoring and match classification."""
import pytest

from src.matching.config import MatchingConfig
from src.matching.models import Ambiguous, Confident, NoMatch, PenaltyKind
from src.matching.scoring import Matcher, describe, match

from tests.builders import entry, meeting


def test_identical_after_normalization_scores_one(matcher) -> None:
    # "english" and "advanced" are irrelevant words
    assert matcher.score("English 101", "English 101 - Advanced") == 1.0


def test_disjoint_texts_score_low(matcher, config) -> None:
    assert matcher.score("Math 5", "Art Class") < config.min_score


def test_empty_text_scores_zero(matcher) -> None:
    assert matcher.score("", "Algebra 1") == 0.0
    assert matcher.score("Algebra 1", None) == 0.0


def test_score_ignores_case_accents_and_punctuation(matcher) -> None:
    assert matcher.score("Química 3", "QUIMICA-3") == 1.0


def test_confident_single_candidate_above_threshold(matcher) -> None:
    pool = [meeting("m1", "English 101 - Advanced"), meeting("m2", "Art Class")]
    result = matcher.match(entry(program="English 101"), pool)
    assert isinstance(result, Confident)
    assert result.candidate.meeting_id == "m1"
    assert result.runner_up is None


def test_confident_when_margin_is_clear(matcher) -> None:
    pool = [meeting("b", "Math 5 B"), meeting("a", "Math 5 A")]
    result = matcher.match(entry(program="Math 5 A"), pool)
    assert isinstance(result, Confident)
    assert result.candidate.meeting_id == "a"
    assert result.runner_up.candidate.meeting_id == "b"
    assert result.match.score - result.runner_up.score > 0.05


def test_ties_are_ambiguous_and_sorted_by_meeting_id(matcher) -> None:
    pool = [meeting("m2", "Math 5 A"), meeting("m1", "Math 5 B"), meeting("m3", "Art Class")]
    result = matcher.match(entry(program="Math 5"), pool)
    assert isinstance(result, Ambiguous)
    assert [s.candidate.meeting_id for s in result.candidates] == ["m1", "m2"]
    assert result.candidates[0].score == result.candidates[1].score


def test_wide_tie_margin_turns_clear_winner_ambiguous(config) -> None:
    wide = config.model_copy(update={"tie_margin": 0.5})
    pool = [meeting("b", "Math 5 B"), meeting("a", "Math 5 A")]
    result = Matcher(wide).match(entry(program="Math 5 A"), pool)
    assert isinstance(result, Ambiguous)
    assert [s.candidate.meeting_id for s in result.candidates] == ["a", "b"]


def test_empty_pool_is_no_match(matcher) -> None:
    result = matcher.match(entry(), [])
    assert isinstance(result, NoMatch)
    assert result.reason == "No candidates available"


def test_missing_program_is_no_match(matcher) -> None:
    result = matcher.match(entry(program=""), [meeting("m1", "Algebra 1")])
    assert isinstance(result, NoMatch)
    assert result.reason == "Missing program"


def test_none_entry_is_no_match(matcher) -> None:
    assert isinstance(matcher.match(None, [meeting("m1", "Algebra 1")]), NoMatch)


def test_no_match_reports_closest_miss(matcher) -> None:
    result = matcher.match(entry(program="Chemistry"), [meeting("m1", "Art Class")])
    assert isinstance(result, NoMatch)
    assert "Art Class" in result.detailed_reason
    assert "score=" in result.detailed_reason


def test_candidates_below_threshold_never_returned(matcher, config) -> None:
    pool = [
        meeting("m1", "Math 5 A"),
        meeting("m2", "Math 5 B"),
        meeting("m3", "Math"),
        meeting("m4", "Art Class"),
    ]
    result = matcher.match(entry(program="Math 5"), pool)
    assert isinstance(result, Ambiguous)
    assert all(s.score >= config.min_score for s in result.candidates)
    assert "m4" not in [s.candidate.meeting_id for s in result.candidates]


def test_match_is_deterministic(matcher) -> None:
    pool = [meeting("m2", "Math 5 A"), meeting("m1", "Math 5 B"), meeting("m3", "Math 6")]
    e = entry(program="Math 5")
    assert matcher.match(e, pool) == matcher.match(e, list(pool))


def test_match_topic_without_entry(matcher) -> None:
    result = matcher.match_topic("Algebra 1", [meeting("m1", "Algebra 1"), meeting("m2", "Art")])
    assert isinstance(result, Confident)
    assert result.candidate.meeting_id == "m1"


def test_module_level_match_uses_given_config(config) -> None:
    strict = config.model_copy(update={"min_score": 1.0})
    result = match(entry(program="Math 5"), [meeting("m1", "Math 5 A")], strict)
    assert isinstance(result, NoMatch)


@pytest.mark.parametrize(
    "pool,short",
    [
        ([], "No candidates available"),
        ([meeting("m1", "Algebra 1")], "-"),
        ([meeting("m1", "Algebra 1 A"), meeting("m2", "Algebra 1 B")], "Multiple matches found"),
    ],
)
def test_describe_short_reasons(matcher, pool, short) -> None:
    reason, _ = describe(matcher.match(entry(program="Algebra 1"), pool))
    assert reason == short


def test_weights_only_fuzzy() -> None:
    fuzzy_only = MatchingConfig(_env_file=None, token_weight=0, fuzzy_weight=1)
    assert Matcher(fuzzy_only).score("Algebra 1", "Algebra 1") == 1.0


@pytest.mark.parametrize(
    "program,topic,reason",
    [
        ("English Level 2", "English Level 3", "Level mismatch"),
        ("CH 1", "CH 3", "Group number mismatch"),
        ("TRIO Grupo A L3", "DUO Grupo A L3", "Program type mismatch"),
        ("SCOTIABANK Ingles", "Ingles (HAYDUK)", "Company mismatch"),
    ],
)
def test_lone_conflicting_meeting_is_not_matched(matcher, program, topic, reason) -> None:
    result = matcher.match(entry(program=program), [meeting("m1", topic)])
    assert isinstance(result, NoMatch)
    assert result.reason == reason
    assert topic in result.detailed_reason


def test_conflicting_meeting_rejected_even_without_threshold(config) -> None:
    lenient = Matcher(config.model_copy(update={"min_score": 0.0}))
    result = lenient.match(entry(program="English Level 2"), [meeting("m1", "English Level 3")])
    assert isinstance(result, NoMatch)


def test_right_level_wins_among_siblings(matcher) -> None:
    pool = [
        meeting("m1", "English Level 1"),
        meeting("m3", "English Level 3"),
        meeting("m2", "English Level 2"),
    ]
    result = matcher.match(entry(program="English Level 2"), pool)
    assert isinstance(result, Confident)
    assert result.candidate.meeting_id == "m2"
    assert result.runner_up is None


def test_right_group_wins_among_siblings(matcher) -> None:
    pool = [meeting("m1", "CH 1"), meeting("m2", "CH 2"), meeting("m3", "CH 3")]
    result = matcher.match(entry(program="CH 3"), pool)
    assert isinstance(result, Confident)
    assert result.candidate.meeting_id == "m3"


def test_right_format_wins_among_siblings(matcher) -> None:
    pool = [meeting("m1", "DUO Grupo A L3"), meeting("m2", "TRIO Grupo A L3")]
    result = matcher.match(entry(program="TRIO Grupo A L3"), pool)
    assert isinstance(result, Confident)
    assert result.candidate.meeting_id == "m2"


def test_missing_level_with_siblings_is_ambiguous(matcher) -> None:
    # Without the level rule "Reading L1" would win on margin alone
    pool = [meeting("m1", "Reading L1"), meeting("m2", "Reading Level 10")]
    ranked = matcher.rank("Reading", pool)
    assert ranked[0].score - ranked[1].score > matcher.config.tie_margin

    result = matcher.match(entry(program="Reading"), pool)
    assert isinstance(result, Ambiguous)
    assert [s.candidate.meeting_id for s in result.candidates] == ["m1", "m2"]
    assert describe(result)[0] == "Unspecified level"


def test_missing_level_without_siblings_is_confident(matcher) -> None:
    result = matcher.match(entry(program="Reading"), [meeting("m1", "Reading L1")])
    assert isinstance(result, Confident)


def test_missing_group_number_with_siblings_is_ambiguous(matcher) -> None:
    pool = [meeting("m2", "Conversation 2"), meeting("m1", "Conversation 1")]
    result = matcher.match(entry(program="Conversation"), pool)
    assert isinstance(result, Ambiguous)
    assert [s.candidate.meeting_id for s in result.candidates] == ["m1", "m2"]
    short, detailed = describe(result)
    assert short == "Unspecified group number"
    assert "ORPHAN_NUMBER_WITH_SIBLINGS" in detailed


def test_soft_penalty_lowers_score(matcher) -> None:
    (scored,) = matcher.rank("TRIO Grammar", [meeting("m1", "Grammar")])
    assert [p.kind for p in scored.penalties] == [PenaltyKind.STRUCTURAL_TOKEN_MISSING]
    assert scored.score == round(max(0.0, scored.similarity - 0.3), 4)
    assert not scored.disqualified


def test_penalty_points_are_configurable() -> None:
    forgiving = MatchingConfig(
        _env_file=None,
        penalty_points={"LEVEL_CONFLICT": 0.0, "NUMERIC_CONFLICT": 0.0},
    )
    result = Matcher(forgiving).match(
        entry(program="English Level 2"), [meeting("m1", "English Level 3")]
    )
    assert isinstance(result, Confident)
    assert [p.kind for p in result.match.penalties] == [
        PenaltyKind.LEVEL_CONFLICT,
        PenaltyKind.NUMERIC_CONFLICT,
    ]
    assert "LEVEL_CONFLICT: L2 vs L3" in describe(result)[1]
