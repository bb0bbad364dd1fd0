"""Similarity scoring and candidate selection for schedule entries.

Similarity for a (program, topic) pair, both normalized first:

    similarity = (token_weight * coverage + fuzzy_weight * ratio) / (token_weight + fuzzy_weight)

coverage: share of the program's distinct tokens found in the topic.
ratio:    rapidfuzz token_sort_ratio of the normalized texts, scaled to [0, 1].

A candidate's score is its similarity minus the points of every conflict rule
that fired for it (see penalties.py), floored at 0. Candidates scoring below
``min_score``, or disqualified by a rule, are discarded. The best survivor is
a confident match only if it beats the runner-up by more than ``tie_margin``
and the program does say which numbered or levelled version it wants;
otherwise every survivor is returned as ambiguous, best first, ties broken by
meeting_id.
"""

from typing import Sequence

from rapidfuzz import fuzz

from src.matching.config import MatchingConfig, get_config
from src.matching.logging import get_logger
from src.matching.models import (
    Ambiguous,
    Confident,
    MatchResult,
    MeetingCandidate,
    NoMatch,
    PenaltyKind,
    ScheduleEntry,
    ScoredCandidate,
)
from src.matching.normalizer import normalize
from src.matching.penalties import PenaltyEngine, PoolIndex

log = get_logger(__name__)

# Scores are rounded so that equal-looking scores compare equal
SCORE_PRECISION = 4

_ORPHANS = tuple(kind for kind in PenaltyKind if kind.is_orphan)


class Matcher:
    """Scores meeting candidates against schedule programs.

    Stateless apart from its configuration, so one instance can serve any
    number of sessions or threads.
    """

    def __init__(self, config: MatchingConfig | None = None) -> None:
        self.config = config or get_config()
        self._words = tuple(self.config.irrelevant_words)
        self.penalties = PenaltyEngine(self.config.penalty_points, self._words)

    def score(self, program: str | None, topic: str | None) -> float:
        """Text similarity of a program and a meeting topic in [0, 1], before penalties."""
        return self._score(normalize(program, self._words), topic)

    def _score(self, program_norm: str, topic: str | None) -> float:
        topic_norm = normalize(topic, self._words)
        if not program_norm or not topic_norm:
            return 0.0

        program_tokens = set(program_norm.split())
        topic_tokens = set(topic_norm.split())
        coverage = len(program_tokens & topic_tokens) / len(program_tokens)
        ratio = fuzz.token_sort_ratio(program_norm, topic_norm) / 100.0

        tw, fw = self.config.token_weight, self.config.fuzzy_weight
        return round((tw * coverage + fw * ratio) / (tw + fw), SCORE_PRECISION)

    def rank(
        self, program: str | None, candidates: Sequence[MeetingCandidate]
    ) -> list[ScoredCandidate]:
        """All candidates scored and penalized, best first, ties by meeting_id ascending."""
        program_norm = normalize(program, self._words)
        pool = PoolIndex(candidates)
        scored = []
        for candidate in candidates:
            similarity = self._score(program_norm, candidate.topic)
            penalties = self.penalties.evaluate(program, candidate, pool)
            score = max(0.0, similarity - sum(p.points for p in penalties))
            scored.append(
                ScoredCandidate(
                    candidate=candidate,
                    score=round(score, SCORE_PRECISION),
                    similarity=similarity,
                    penalties=penalties,
                )
            )
        scored.sort(key=lambda s: (-s.score, s.candidate.meeting_id))
        return scored

    def match(
        self, entry: ScheduleEntry | None, candidates: Sequence[MeetingCandidate]
    ) -> MatchResult:
        """Pick the meeting for one schedule entry.

        Never raises for an entry without program text or an empty pool;
        both come back as NoMatch.
        """
        program = getattr(entry, "program", None)
        result = self.match_topic(program, candidates)
        log.debug(
            "entry_matched",
            program=program,
            result=result.kind,
            candidates=len(candidates),
        )
        return result

    def match_topic(
        self, topic: str | None, candidates: Sequence[MeetingCandidate]
    ) -> MatchResult:
        """Match free text against the pool, e.g. to check a meeting already exists."""
        if not candidates:
            return NoMatch(
                reason="No candidates available",
                detailed_reason="The meeting pool is empty.",
            )
        if not normalize(topic, self._words):
            return NoMatch(
                reason="Missing program",
                detailed_reason="The schedule entry has no program text to match.",
            )

        ranked = self.rank(topic, candidates)
        survivors = [
            s for s in ranked if s.score >= self.config.min_score and not s.disqualified
        ]

        if not survivors:
            return _closest_miss(ranked)

        best = survivors[0]
        if best.penalty(*_ORPHANS) is not None:
            # The program fits several versions of the same class equally well
            return Ambiguous(candidates=survivors)
        if len(survivors) == 1:
            return Confident(match=best)

        runner_up = survivors[1]
        margin = round(best.score - runner_up.score, SCORE_PRECISION)
        if margin > self.config.tie_margin:
            return Confident(match=best, runner_up=runner_up)
        return Ambiguous(candidates=survivors)


def _closest_miss(ranked: list[ScoredCandidate]) -> NoMatch:
    # Explain with the textually closest candidate, whatever the rules did to it
    closest = min(ranked, key=lambda s: (-(s.similarity or 0.0), s.candidate.meeting_id))
    detailed = (
        f"best candidate scored below threshold: "
        f"{closest.candidate.topic}, score={closest.score}"
    )
    first = closest.penalty()
    if first is None:
        return NoMatch(reason="No match found", detailed_reason=detailed)
    lines = [detailed] + [str(p) for p in closest.penalties]
    return NoMatch(reason=first.kind.short_reason, detailed_reason="\n".join(lines))


def match(
    entry: ScheduleEntry | None,
    candidates: Sequence[MeetingCandidate],
    config: MatchingConfig | None = None,
) -> MatchResult:
    """Match one entry with a throwaway Matcher built from ``config``."""
    return Matcher(config).match(entry, candidates)


def describe(result: MatchResult) -> tuple[str, str]:
    """Short and detailed human-readable reasons for a match result."""
    if isinstance(result, NoMatch):
        return result.reason, result.detailed_reason
    if isinstance(result, Ambiguous):
        listing = ", ".join(
            f"{s.candidate.topic} ({s.score})" for s in result.candidates
        )
        orphan = result.best.penalty(*_ORPHANS)
        if orphan is not None:
            return (
                orphan.kind.short_reason,
                f"{orphan}. Candidates: {listing}. Select the version this class uses.",
            )
        return (
            "Multiple matches found",
            f"{len(result.candidates)} candidates above threshold, no clear winner: {listing}. "
            "Review the list and select the right meeting.",
        )

    best = result.match
    if result.runner_up is None:
        detailed = f"Only candidate above threshold (score: {best.score})"
    else:
        detailed = (
            f"Score {best.score}, next best "
            f"{result.runner_up.candidate.topic} ({result.runner_up.score})"
        )
    if best.penalties:
        detailed = "\n".join([detailed] + [str(p) for p in best.penalties])
    return "-", detailed
