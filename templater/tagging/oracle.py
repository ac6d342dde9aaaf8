"""Boundary to the variable-suggestion oracle (an LLM).

The oracle receives token texts with their label context and answers, per
input and in the same order, either the original text or a ``{{tag}}``.  The
answer is untrusted: it is parsed defensively and aligned to the input count
before anything downstream sees it.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from templater.config import FRAMEWORK, MODEL, ORACLE_BATCH_SIZE, dbg, warn
from templater.documents.docx.errors import OracleCountMismatch
from templater.prompts import read_prompt

SuggestionItem = Dict[str, Any]

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_END_RE = re.compile(r"\n?```\s*$")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"')

_DEFAULT_SYSTEM_PROMPT = (
    "Return the same JSON array of document fragments, replacing only variable data "
    "with {{camelCaseTag}} placeholders."
)

# the exclusion list sent with the prompt is capped
MAX_PROMPT_CONSTANTS = 50


class SuggestionOracle(Protocol):
    def suggest(self, items: Sequence[SuggestionItem]) -> List[str]:
        ...


def align_suggestions(
    inputs: Sequence[str],
    outputs: Optional[Sequence[Any]],
    strict: bool = False,
) -> List[str]:
    """Pad or truncate ``outputs`` to ``len(inputs)``.

    Positions without a usable string fall back to the original input text, so
    a misbehaving oracle never shifts suggestions onto the wrong token.
    """
    received = list(outputs or [])
    if len(received) != len(inputs):
        if strict:
            raise OracleCountMismatch(len(inputs), len(received))
        warn(f"Suggestion oracle returned {len(received)} items for {len(inputs)} inputs; using originals for the gap")
    aligned: List[str] = []
    for i, original in enumerate(inputs):
        value = received[i] if i < len(received) else None
        aligned.append(value if isinstance(value, str) else original)
    return aligned


def _repair_truncated_array(cleaned: str) -> Optional[str]:
    start = cleaned.find("[")
    if start == -1:
        return None
    body = cleaned[start:]
    last_quote = body.rfind('"')
    last_comma = body.rfind(",")
    if last_quote > last_comma and body[last_comma + 1:].count('"') % 2 == 1:
        # unterminated trailing string
        body = body[:last_comma]
    body = re.sub(r",\s*$", "", body)
    if not body.endswith("]"):
        body += "]"
    return body


def parse_oracle_response(content: str) -> Optional[List[Any]]:
    """Extract a JSON array from an LLM reply, or None when nothing is usable."""
    if not content:
        return None
    cleaned = _FENCE_START_RE.sub("", content.strip())
    cleaned = _FENCE_END_RE.sub("", cleaned).strip()

    match = _ARRAY_RE.search(cleaned)
    candidate = match.group(0) if match else _repair_truncated_array(cleaned)
    if candidate is not None:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return parsed

    start = cleaned.find("[")
    if start == -1:
        return None
    elements: List[str] = []
    for literal in _STRING_RE.findall(cleaned[start + 1:]):
        try:
            elements.append(json.loads(literal))
        except ValueError:
            continue
    if elements:
        dbg(f"Recovered {len(elements)} elements from a malformed oracle reply")
        return elements
    return None


def constants_prompt(constants: Sequence[str], limit: int = MAX_PROMPT_CONSTANTS) -> str:
    """Prompt section listing known constants that must stay unchanged."""
    values = [c for c in constants if c and len(c) > 2][:limit]
    if not values:
        return ""
    return (
        "Known constant values (never replace these, in any casing):\n"
        + json.dumps(values, ensure_ascii=False, indent=2)
    )


def annotate(item: SuggestionItem) -> str:
    label = item.get("label")
    if label:
        return f'{item["text"]} [after: "{label}"]'
    return item["text"]


class LLMSuggestionOracle:
    """Suggestion oracle backed by a chat-completion model.

    ``call`` receives ``(prompt, system)`` and returns the reply text; it
    defaults to ``templater.llm.completions_client.complete`` for the
    configured framework and model.  ``constants`` (usually
    ``Vocabulary.constants``) are listed in the system prompt as values the
    model must leave unchanged.
    """

    def __init__(
        self,
        framework: str = FRAMEWORK,
        model: str = MODEL,
        batch_size: int = ORACLE_BATCH_SIZE,
        call: Optional[Callable[[str, str], str]] = None,
        strict: bool = False,
        constants: Sequence[str] = (),
    ) -> None:
        self.framework = framework
        self.model = model
        self.batch_size = max(1, batch_size)
        self.strict = strict
        self._call = call or self._default_call
        self.system_prompt = read_prompt("variable_suggestion", _DEFAULT_SYSTEM_PROMPT)
        exclusions = constants_prompt(constants)
        if exclusions:
            self.system_prompt = self.system_prompt.rstrip() + "\n\n" + exclusions + "\n"

    def _default_call(self, prompt: str, system: str) -> str:
        from templater.llm.completions_client import complete

        return complete(prompt, framework=self.framework, model=self.model, system=system)

    def _suggest_batch(self, items: Sequence[SuggestionItem]) -> List[str]:
        texts = [item["text"] for item in items]
        prompt = (
            f"Analyze these {len(items)} fragments and return the JSON array:\n\n"
            + json.dumps([annotate(item) for item in items], ensure_ascii=False, indent=2)
        )
        content = self._call(prompt, self.system_prompt)
        parsed = parse_oracle_response(content)
        if parsed is None:
            warn("Suggestion oracle reply could not be parsed; keeping original texts")
        return align_suggestions(texts, parsed, strict=self.strict)

    def suggest(self, items: Sequence[SuggestionItem]) -> List[str]:
        results: List[str] = []
        for start in range(0, len(items), self.batch_size):
            batch = items[start:start + self.batch_size]
            dbg(f"Oracle batch {start // self.batch_size + 1}: {len(batch)} items")
            results.extend(self._suggest_batch(batch))
        return results
