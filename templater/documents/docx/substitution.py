"""Exactly-once, structure-preserving replacement of text with a ``{{tag}}``.

Only the content of ``<w:t>`` leaves is ever touched; open tags, attributes
and every other byte of the markup are carried over verbatim.  A failed call
returns the input markup unchanged.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from templater.config import dbg
from .errors import AlreadyTagged, TextNotFound
from .models import Field, SubstitutionResult, Token
from .xml_text import (
    contains_tag_delimiter,
    decode_entities,
    decode_with_offsets,
    escape_text,
    find_tags,
    iter_text_nodes,
)


def _reject_existing_tag(markup: str, search_text: str, replacement: str) -> None:
    wanted = set(find_tags(replacement))
    if not wanted:
        return
    for node in iter_text_nodes(markup):
        clash = wanted.intersection(find_tags(node.text))
        if clash:
            raise AlreadyTagged(search_text, sorted(clash)[0])


def safe_substitute(
    markup: str,
    search_text: str,
    replacement: str,
    allow_existing_tag: bool = False,
) -> SubstitutionResult:
    """Replace the first occurrence of ``search_text`` found inside one text leaf.

    Raises ``AlreadyTagged`` before scanning when ``search_text`` carries a tag
    delimiter, or when the tag in ``replacement`` is already placed somewhere
    in the document and ``allow_existing_tag`` is not set.  A first matching
    leaf that already holds a tag is never re-split: that raises
    ``AlreadyTagged`` too.  Leaves holding comments or CDATA are not edited.
    """
    if not search_text:
        raise ValueError("search_text must be a non-empty string")
    if contains_tag_delimiter(search_text):
        raise AlreadyTagged(search_text)
    if not allow_existing_tag:
        _reject_existing_tag(markup, search_text, replacement)

    for node in iter_text_nodes(markup):
        if not node.raw_text:
            continue
        if node.has_markup:
            dbg(f"Skipping text node {node.index}: it holds nested markup")
            continue
        text, offsets = decode_with_offsets(node.raw_text)
        start = text.find(search_text)
        if start == -1:
            continue
        placed = find_tags(text)
        if placed:
            raise AlreadyTagged(search_text, placed[0])
        end = start + len(search_text)
        raw_start = node.content_start + offsets[start][0]
        raw_end = node.content_start + offsets[end - 1][1]
        encoded = escape_text(replacement)
        updated = markup[:raw_start] + encoded + markup[raw_end:]
        dbg(f"Substituted {search_text!r} -> {replacement!r} in text node {node.index}")
        return SubstitutionResult(
            success=True,
            markup=updated,
            node_index=node.index,
            offset=raw_start,
            delta=len(encoded) - (raw_end - raw_start),
        )

    dbg(f"Text {search_text!r} not found in any text node")
    return SubstitutionResult(success=False, markup=markup)


def substitute_or_raise(
    markup: str,
    search_text: str,
    replacement: str,
    allow_existing_tag: bool = False,
) -> str:
    result = safe_substitute(markup, search_text, replacement, allow_existing_tag)
    if not result.success:
        raise TextNotFound(search_text)
    return result.markup


def substitute_token(
    markup: str,
    token: Token,
    replacement: str,
    shift: int = 0,
    allow_existing_tag: bool = False,
) -> SubstitutionResult:
    """Replace the exact text leaves a token was extracted from.

    The token's recorded spans are moved by ``shift`` (the net length change
    of earlier substitutions in the same pass).  The first leaf receives the
    replacement, following leaves of the token are emptied; whitespace around
    the merged value is kept.  Nothing is written when the leaves no longer
    hold the extracted text.
    """
    spans: List[Tuple[int, int]] = []
    for run in token.runs:
        run_spans = [(start + shift, end + shift) for start, end in run.text_spans]
        if not run_spans:
            return SubstitutionResult(success=False, markup=markup)
        current = "".join(decode_entities(markup[start:end]) for start, end in run_spans)
        if contains_tag_delimiter(current):
            raise AlreadyTagged(token.text)
        if current != run.text:
            dbg(f"Stale spans for run {run.text!r}; found {current!r}")
            return SubstitutionResult(success=False, markup=markup)
        spans.extend(run_spans)
    if not allow_existing_tag:
        _reject_existing_tag(markup, token.text, replacement)

    merged = token.merged_text
    lead = merged[: len(merged) - len(merged.lstrip())]
    trail = merged[len(merged.rstrip()):] if merged.strip() else ""
    contents: Dict[int, str] = {i: "" for i in range(len(spans))}
    if len(spans) == 1:
        contents[0] = lead + replacement + trail
    else:
        contents[0] = lead + replacement
        contents[len(spans) - 1] = trail

    updated = markup
    delta = 0
    for i in reversed(range(len(spans))):
        start, end = spans[i]
        encoded = escape_text(contents[i])
        updated = updated[:start] + encoded + updated[end:]
        delta += len(encoded) - (end - start)
    dbg(f"Substituted token {token.text!r} -> {replacement!r} across {len(spans)} text node(s)")
    return SubstitutionResult(success=True, markup=updated, offset=spans[0][0], delta=delta)


def _is_anchored(item: Field) -> bool:
    token = item.source_token
    return token is not None and bool(token.runs) and all(run.text_spans for run in token.runs)


def apply_fields(
    markup: str,
    fields: Sequence[Field],
    allow_existing_tag: bool = False,
) -> Tuple[str, List[Field], List[Tuple[Field, str]]]:
    """Apply fields serially and return ``(markup, applied, skipped)``.

    Fields whose source token carries extraction spans are applied first, in
    document order, each anchored to its own leaves.  The rest fall back to the
    first untagged occurrence of their value.  Every skipped entry carries the
    reason it was skipped.
    """
    anchored = sorted((f for f in fields if _is_anchored(f)), key=lambda f: f.source_token.runs[0].text_spans[0][0])
    loose = [f for f in fields if not _is_anchored(f)]

    applied: List[Field] = []
    skipped: List[Tuple[Field, str]] = []
    shift = 0
    for item in anchored:
        try:
            result = substitute_token(markup, item.source_token, item.placeholder, shift, allow_existing_tag)
        except AlreadyTagged as exc:
            skipped.append((item, str(exc)))
            continue
        if not result.success:
            skipped.append((item, str(TextNotFound(item.original_value))))
            continue
        markup = result.markup
        shift += result.delta
        applied.append(item)

    for item in loose:
        try:
            result = safe_substitute(markup, item.original_value, item.placeholder, allow_existing_tag)
        except AlreadyTagged as exc:
            skipped.append((item, str(exc)))
            continue
        if not result.success:
            skipped.append((item, str(TextNotFound(item.original_value))))
            continue
        markup = result.markup
        applied.append(item)
    return markup, applied, skipped
