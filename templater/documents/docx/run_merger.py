"""Group adjacent runs of a paragraph into semantic tokens.

Word splits one logical value (a VIN, a date, a customs reference) into
several runs whenever formatting changes mid-token.  The merger walks each
paragraph left to right and, for every following run, asks an ordered list of
named rules whether to EXTEND the open token or CLOSE it.  The first rule that
fires decides; when none fires the token is closed.

Rule order is data: pattern continuation sits above the capitalization rule,
so a run that completes a known shape is merged even when it starts with a
capital letter.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern, Sequence, Tuple

from templater.config import dbg
from .models import Run, Token
from .run_extractor import group_by_paragraph

EXTEND = "extend"
CLOSE = "close"

SHORT_FRAGMENT_MAX = 4
CAPITALIZED_TOKEN_MIN = 5

# Prefixes of values that are routinely split across runs.
PARTIAL_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("mrn", re.compile(r"^\d{2}[A-Z]{2}[A-Z0-9]*$")),
    ("vin", re.compile(r"^[A-HJ-NPR-Z0-9]{1,17}$")),
    ("date", re.compile(r"^\d{1,2}[-./]?\d{0,2}[-./]?\d{0,4}$")),
    ("container", re.compile(r"^[A-Z]{1,4}\d{0,7}$")),
    ("reference", re.compile(r"^[A-Z]{2,4}-?[A-Z0-9]*$")),
)

_UPPER = "A-ZĄĆĘŁŃÓŚŹŻÄÖÜ"
_LOWER = "a-ząćęłńóśźżäöüß"
_NUMBERED_FIELD_RE = re.compile(rf"^\d+\s+[{_UPPER}][{_LOWER}]*")
_NUMBERED_FIELD_MAX = 30
_CAPITAL_START_RE = re.compile(rf"^[{_UPPER}]")
_DIGITS_RE = re.compile(r"^\d+$")
_UPPER_LETTERS_RE = re.compile(rf"^[{_UPPER}]+$")


@dataclass(frozen=True)
class MergeContext:
    accumulated: str
    previous: Run
    candidate: Run
    partial_patterns: Tuple[Tuple[str, Pattern[str]], ...] = PARTIAL_PATTERNS

    @property
    def combined(self) -> str:
        return self.accumulated + self.candidate.text


@dataclass(frozen=True)
class MergeRule:
    name: str
    predicate: Callable[[MergeContext], bool]
    decision: str


def ends_with_label_terminator(ctx: MergeContext) -> bool:
    return ctx.accumulated.rstrip().endswith(":")


def continues_known_pattern(ctx: MergeContext) -> bool:
    combined = ctx.combined
    return any(pattern.match(combined) for _, pattern in ctx.partial_patterns)


def is_short_fragment(ctx: MergeContext) -> bool:
    return (
        len(ctx.previous.text) <= SHORT_FRAGMENT_MAX
        or len(ctx.candidate.text) <= SHORT_FRAGMENT_MAX
    )


def joins_on_hyphen_or_slash(ctx: MergeContext) -> bool:
    left = ctx.previous.text.strip()
    right = ctx.candidate.text.strip()
    return left.endswith(("-", "/")) or right.startswith(("-", "/"))


def is_homogeneous_split(ctx: MergeContext) -> bool:
    left = ctx.previous.text
    right = ctx.candidate.text
    if _DIGITS_RE.match(left) and _DIGITS_RE.match(right):
        return True
    return bool(_UPPER_LETTERS_RE.match(left) and _UPPER_LETTERS_RE.match(right))


def starts_new_capitalized_value(ctx: MergeContext) -> bool:
    return bool(_CAPITAL_START_RE.match(ctx.candidate.text.strip())) and (
        len(ctx.accumulated) > CAPITALIZED_TOKEN_MIN
    )


DEFAULT_RULES: Tuple[MergeRule, ...] = (
    MergeRule("label_terminator", ends_with_label_terminator, CLOSE),
    MergeRule("pattern_continuation", continues_known_pattern, EXTEND),
    MergeRule("short_fragment", is_short_fragment, EXTEND),
    MergeRule("hyphen_or_slash_join", joins_on_hyphen_or_slash, EXTEND),
    MergeRule("homogeneous_split", is_homogeneous_split, EXTEND),
    MergeRule("new_capitalized_value", starts_new_capitalized_value, CLOSE),
)
DEFAULT_DECISION = ("default", CLOSE)


def decide(ctx: MergeContext, rules: Sequence[MergeRule] = DEFAULT_RULES) -> Tuple[str, str]:
    """Return ``(rule_name, decision)`` of the first rule that fires."""
    for rule in rules:
        if rule.predicate(ctx):
            return rule.name, rule.decision
    return DEFAULT_DECISION


class RunMerger:
    """Greedy left-to-right merger with label tracking.

    ``labels`` is the closed label vocabulary (compared case-insensitively);
    ``rules`` and ``partial_patterns`` default to the module constants.
    """

    def __init__(
        self,
        labels: Sequence[str] = (),
        rules: Optional[Sequence[MergeRule]] = None,
        partial_patterns: Optional[Sequence[Tuple[str, Pattern[str]]]] = None,
    ) -> None:
        self.labels = tuple(label.strip().upper() for label in labels if label.strip())
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES
        self.partial_patterns = (
            tuple(partial_patterns) if partial_patterns is not None else PARTIAL_PATTERNS
        )

    @classmethod
    def from_vocabulary(cls, vocabulary, **kwargs) -> "RunMerger":
        return cls(labels=vocabulary.labels, **kwargs)

    def is_label(self, text: str) -> bool:
        trimmed = (text or "").strip()
        if not trimmed:
            return False
        if trimmed.endswith(":"):
            return True
        upper = trimmed.upper()
        for label in self.labels:
            if upper == label or upper.endswith(" " + label):
                return True
        return bool(_NUMBERED_FIELD_RE.match(trimmed)) and len(trimmed) < _NUMBERED_FIELD_MAX

    def merge_paragraph(self, runs: Sequence[Run]) -> List[Token]:
        if not runs:
            return []
        tokens: List[Token] = []
        last_label: Optional[Token] = None
        current = Token(runs=[runs[0]])
        accumulated = runs[0].text

        for previous, candidate in zip(runs, runs[1:]):
            ctx = MergeContext(accumulated, previous, candidate, self.partial_patterns)
            _, decision = decide(ctx, self.rules)
            if decision == EXTEND:
                current.runs.append(candidate)
                accumulated += candidate.text
                continue
            last_label = self._close(current, last_label, tokens)
            current = Token(runs=[candidate])
            accumulated = candidate.text

        self._close(current, last_label, tokens)
        return tokens

    def _close(self, token: Token, last_label: Optional[Token], out: List[Token]) -> Optional[Token]:
        token.preceding_label = last_label
        token.is_label = self.is_label(token.merged_text)
        out.append(token)
        return token if token.is_label else last_label

    def merge(self, runs: Sequence[Run]) -> List[Token]:
        tokens: List[Token] = []
        for paragraph_runs in group_by_paragraph(list(runs)):
            tokens.extend(self.merge_paragraph(paragraph_runs))
        dbg(f"Merged {len(runs)} runs into {len(tokens)} tokens")
        return tokens


def merge_runs(runs: Sequence[Run], labels: Sequence[str] = ()) -> List[Token]:
    return RunMerger(labels=labels).merge(runs)
