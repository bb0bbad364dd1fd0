"""Conflict rules that veto or demote textually similar meetings.

Text similarity alone happily pairs "English Level 2" with "English Level 3"
or "TRIO Grupo A" with "DUO Grupo A". Each rule looks at one (program, topic)
pair, plus the rest of the pool where siblings matter, and reports a conflict.
PenaltyEngine prices what fired and the Matcher subtracts it from the
similarity score.

Hard conflicts (class format, level, group number, other numbers, company)
cost a full point by default and disqualify the candidate. The others lower
the score. Orphan penalties mark a program that does not say which of several
numbered or levelled versions it means; the Matcher leaves those to the user.
"""

import re
from collections import Counter
from typing import Callable, Iterable, Mapping, Sequence

from rapidfuzz.distance import Levenshtein

from src.matching.config import DEFAULT_PENALTY_POINTS
from src.matching.models import MeetingCandidate, Penalty, PenaltyKind
from src.matching.normalizer import fold

_LEVEL_RE = re.compile(r"\b(?:l|n|level|nivel)\s*(\d+)\b")
_NUMBER_RE = re.compile(r"\d+")
_PARENS_RE = re.compile(r"\(([^)]+)\)")
# "JUAN GARCIA LOPEZ - KEYNOTES": two to four words, then a dash
_PERSON_RE = re.compile(r"^\s*[^\W\d_]+(?:\s+[^\W\d_]+){1,3}\s+-\s+\S")

# Class formats that exclude each other. Synonyms share a group.
PROGRAM_TYPE_GROUPS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("CH", ("ch",)),
    ("TRIO", ("trio",)),
    ("DUO", ("duo", "bvd")),
    ("PRIVADO", ("privado", "bvp")),
    ("BVS", ("bvs",)),
)
PROGRAM_TYPES = frozenset(word for _, words in PROGRAM_TYPE_GROUPS for word in words)

# A program naming the first word of a group expects the topic to carry one of them
STRUCTURAL_GROUPS: tuple[tuple[str, ...], ...] = (
    ("ch",),
    ("trio",),
    ("duo", "bvd"),
    ("privado", "bvp"),
)

# One-to-one and pair classes: their meetings are named after the students
_PERSON_CLASS_PREFIXES = frozenset({"bvp", "bvd", "bvs"})

_NOT_A_COMPANY = PROGRAM_TYPES | {"group", "grupo", "level", "nivel"}

RuleResult = tuple[PenaltyKind, str] | None


def levels(text: str) -> list[str]:
    """Level numbers in folded text ("l3", "nivel 3", "level 3"), first seen first."""
    return list(dict.fromkeys(_LEVEL_RE.findall(text)))


def group_numbers(text: str) -> list[str]:
    """Numbers in folded text that are not levels."""
    return list(dict.fromkeys(_NUMBER_RE.findall(_LEVEL_RE.sub(" ", text))))


def numbers(text: str) -> list[str]:
    return list(dict.fromkeys(_NUMBER_RE.findall(text)))


def _number_base(topic: str | None) -> str:
    return " ".join(_NUMBER_RE.sub(" ", fold(topic)).split())


def _level_base(topic: str | None) -> str:
    return " ".join(_LEVEL_RE.sub(" ", fold(topic)).split())


class PoolIndex:
    """Sibling lookups over one candidate pool, built once per match.

    Two topics are siblings when they only differ by their numbers (or by
    their levels, for level siblings).
    """

    def __init__(self, candidates: Iterable[MeetingCandidate]) -> None:
        topics = [c.topic for c in candidates]
        self._number_bases = Counter(_number_base(t) for t in topics)
        self._level_bases = Counter(_level_base(t) for t in topics)

    def has_number_siblings(self, topic: str | None) -> bool:
        return self._number_bases[_number_base(topic)] > 1

    def has_level_siblings(self, topic: str | None) -> bool:
        return self._level_bases[_level_base(topic)] > 1


class RuleContext:
    """One (program, candidate) pair as the rules see it."""

    def __init__(
        self,
        program: str | None,
        candidate: MeetingCandidate,
        pool: PoolIndex,
        ignored_words: frozenset[str] = frozenset(),
    ) -> None:
        self.program = fold(program)
        self.topic = fold(candidate.topic)
        self.raw_topic = candidate.topic or ""
        self.candidate = candidate
        self.pool = pool
        self.ignored_words = ignored_words
        self.program_tokens = self.program.split()
        self.program_set = frozenset(self.program_tokens)
        self.topic_set = frozenset(self.topic.split())


def _program_type(tokens: frozenset[str]) -> str | None:
    for name, words in PROGRAM_TYPE_GROUPS:
        if any(word in tokens for word in words):
            return name
    return None


def critical_token_mismatch(ctx: RuleContext) -> RuleResult:
    """CH, TRIO, DUO, PRIVADO and BVS classes never stand in for each other."""
    wanted = _program_type(ctx.program_set)
    offered = _program_type(ctx.topic_set)
    if wanted and offered and wanted != offered:
        return PenaltyKind.CRITICAL_TOKEN_MISMATCH, f"{wanted} vs {offered}"
    return None


def level_conflict(ctx: RuleContext) -> RuleResult:
    wanted, offered = levels(ctx.program), levels(ctx.topic)
    if wanted and offered and not set(wanted) & set(offered):
        return (
            PenaltyKind.LEVEL_CONFLICT,
            f"L{'/'.join(wanted)} vs L{'/'.join(offered)}",
        )
    return None


def _could_be_company(token: str, ignored_words: frozenset[str]) -> bool:
    return (
        len(token) > 2
        and not token.isdigit()
        and token not in _NOT_A_COMPANY
        and token not in ignored_words
    )


def company_conflict(ctx: RuleContext) -> RuleResult:
    """A program led by a company name rejects topics tagged with another one.

    The program's first meaningful word is taken as its company; topics carry
    theirs in parentheses, e.g. "INGLES L4 (HAYDUK)".
    """
    company = next(
        (t for t in ctx.program_tokens if _could_be_company(t, ctx.ignored_words)), None
    )
    if company is None:
        return None

    tagged = [
        token
        for content in _PARENS_RE.findall(ctx.raw_topic)
        for token in fold(content).split()
        if _could_be_company(token, ctx.ignored_words)
    ]
    if not tagged:
        return None
    if any(t == company or Levenshtein.distance(t, company) <= 2 for t in tagged):
        return None

    # "ESPINOZA" against "JUAN ESPINOZA (REPSOL)" names the person, not a company
    name_part = fold(_PARENS_RE.sub(" ", ctx.raw_topic)).split()
    if any(
        t == company or (len(t) > 3 and Levenshtein.distance(t, company) <= 1)
        for t in name_part
    ):
        return None

    return (
        PenaltyKind.COMPANY_CONFLICT,
        f"program company {company.upper()} vs topic {', '.join(tagged).upper()}",
    )


def program_vs_person(ctx: RuleContext) -> RuleResult:
    """A class format program should not land on a meeting named after a person."""
    if not PROGRAM_TYPES & ctx.program_set:
        return None
    if not _PERSON_RE.match(ctx.raw_topic):
        return None
    if PROGRAM_TYPES & ctx.topic_set:
        # "TRIO GRUPO A - L3" looks like a name but is a class
        return None
    if _PERSON_CLASS_PREFIXES & ctx.program_set:
        return None
    return PenaltyKind.PROGRAM_VS_PERSON, "program is a class format, topic names a person"


def structural_token_missing(ctx: RuleContext) -> RuleResult:
    for group in STRUCTURAL_GROUPS:
        if group[0] in ctx.program_set and not any(w in ctx.topic_set for w in group):
            return PenaltyKind.STRUCTURAL_TOKEN_MISSING, f'"{group[0].upper()}" not in topic'
    return None


def group_number_conflict(ctx: RuleContext) -> RuleResult:
    """CH 1 is not CH 3."""
    wanted, offered = group_numbers(ctx.program), group_numbers(ctx.topic)
    if wanted and offered and not set(wanted) & set(offered):
        return (
            PenaltyKind.GROUP_NUMBER_CONFLICT,
            f"group {'/'.join(wanted)} vs {'/'.join(offered)}",
        )
    return None


def numeric_conflict(ctx: RuleContext) -> RuleResult:
    wanted, offered = numbers(ctx.program), numbers(ctx.topic)
    if wanted and offered and not set(wanted) & set(offered):
        return PenaltyKind.NUMERIC_CONFLICT, "numbers do not match"
    return None


def orphan_number_with_siblings(ctx: RuleContext) -> RuleResult:
    wanted = set(group_numbers(ctx.program))
    orphans = [n for n in group_numbers(ctx.topic) if n not in wanted]
    if orphans and ctx.pool.has_number_siblings(ctx.raw_topic):
        return (
            PenaltyKind.ORPHAN_NUMBER_WITH_SIBLINGS,
            f'number "{orphans[0]}" not requested, other versions exist',
        )
    return None


def orphan_level_with_siblings(ctx: RuleContext) -> RuleResult:
    offered = levels(ctx.topic)
    if offered and not levels(ctx.program) and ctx.pool.has_level_siblings(ctx.raw_topic):
        return (
            PenaltyKind.ORPHAN_LEVEL_WITH_SIBLINGS,
            f'level "L{offered[0]}" not requested, other levels exist',
        )
    return None


Rule = Callable[[RuleContext], RuleResult]

# Evaluation order; the first penalty found explains a rejection
ALL_RULES: tuple[Rule, ...] = (
    critical_token_mismatch,
    level_conflict,
    company_conflict,
    program_vs_person,
    structural_token_missing,
    group_number_conflict,
    numeric_conflict,
    orphan_number_with_siblings,
    orphan_level_with_siblings,
)


class PenaltyEngine:
    """Runs the conflict rules for a pair and prices the ones that fire.

    Args:
        points: Points per rule name; rules left out use the defaults.
        irrelevant_words: Words that are never taken for a company name.
        rules: Rules to run, in order.
    """

    def __init__(
        self,
        points: Mapping[str, float] | None = None,
        irrelevant_words: Iterable[str] = (),
        rules: Sequence[Rule] = ALL_RULES,
    ) -> None:
        self.points = {**DEFAULT_PENALTY_POINTS, **(points or {})}
        self.rules = tuple(rules)
        self._ignored = frozenset(t for w in irrelevant_words for t in fold(w).split())

    def evaluate(
        self, program: str | None, candidate: MeetingCandidate, pool: PoolIndex
    ) -> tuple[Penalty, ...]:
        ctx = RuleContext(program, candidate, pool, self._ignored)
        applied = []
        for rule in self.rules:
            found = rule(ctx)
            if found is not None:
                kind, reason = found
                applied.append(Penalty(kind=kind, points=self.points[kind.value], reason=reason))
        return tuple(applied)
