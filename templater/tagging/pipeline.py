"""Extract -> merge -> classify -> substitute, for one document.

``tag_markup`` is the automatic path: every variable token found by the rules
(and optionally by the suggestion oracle) is replaced by a unique
``{{tag}}``.  ``add_field`` is the manual operator path for a single selection.
Neither persists anything; ``field_records`` produces the rows a caller stores.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from templater.config import dbg, warn
from templater.documents.docx.classifier import TagAllocator, VariableClassifier, category_for_tag
from templater.documents.docx.errors import TextNotFound
from templater.documents.docx.models import Field, Token
from templater.documents.docx.package_io import read_document_xml, write_document_xml
from templater.documents.docx.run_extractor import extract_runs
from templater.documents.docx.run_merger import RunMerger
from templater.documents.docx.substitution import apply_fields, safe_substitute
from templater.documents.docx.xml_text import format_tag, tags_in_markup
from .oracle import SuggestionOracle, align_suggestions
from .vocabulary import Vocabulary, load_vocabulary

_WHOLE_TAG_RE = re.compile(r"^\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}$")


@dataclass
class TaggingResult:
    markup: str
    fields: List[Field] = field(default_factory=list)
    skipped: List[Tuple[Field, str]] = field(default_factory=list)
    tokens: List[Token] = field(default_factory=list)


def _oracle_fields(
    oracle: SuggestionOracle,
    tokens: Sequence[Token],
    classifier: VariableClassifier,
) -> List[Field]:
    pending = [t for t in tokens if classifier.is_candidate(t) and not classifier.is_constant(t.text)]
    if not pending:
        return []
    items = [
        {"text": t.text, "label": t.label_text, "formatting": t.runs[0].formatting.to_dict()}
        for t in pending
    ]
    suggestions = oracle.suggest(items)
    if len(suggestions) != len(pending):
        suggestions = align_suggestions([t.text for t in pending], suggestions)

    found: List[Field] = []
    for token, suggestion in zip(pending, suggestions):
        if suggestion == token.text:
            continue
        match = _WHOLE_TAG_RE.match(suggestion.strip())
        if not match:
            dbg(f"Ignoring oracle suggestion {suggestion!r} for {token.text!r}")
            continue
        name = match.group(1)
        found.append(
            Field(
                tag=name,
                category=category_for_tag(name),
                original_value=token.text,
                source_token=token,
                formatting=token.runs[0].formatting,
            )
        )
    dbg(f"Oracle suggested {len(found)} additional fields")
    return found


def tag_markup(
    markup: str,
    vocabulary: Optional[Vocabulary] = None,
    oracle: Optional[SuggestionOracle] = None,
    merger: Optional[RunMerger] = None,
    classifier: Optional[VariableClassifier] = None,
) -> TaggingResult:
    """Tag every variable token of ``markup``.

    Tags already present in the markup seed the allocator, so a second pass
    over a tagged document neither re-tags those spans nor reuses their names.
    """
    vocabulary = vocabulary or load_vocabulary()
    merger = merger or RunMerger.from_vocabulary(vocabulary)
    classifier = classifier or VariableClassifier(vocabulary)

    runs = extract_runs(markup)
    tokens = merger.merge(runs)

    detected: Dict[int, Field] = {}
    for index, token in enumerate(tokens):
        found = classifier.classify(token)
        if found is not None:
            detected[index] = found
    if oracle is not None:
        remaining = [t for i, t in enumerate(tokens) if i not in detected]
        positions = {id(t): i for i, t in enumerate(tokens)}
        for suggested in _oracle_fields(oracle, remaining, classifier):
            detected[positions[id(suggested.source_token)]] = suggested

    allocator = TagAllocator(tags_in_markup(markup))
    ordered: List[Field] = []
    for index in sorted(detected):
        base = detected[index]
        ordered.append(
            Field(
                tag=allocator.allocate(base.tag),
                category=base.category,
                original_value=base.original_value,
                source_token=base.source_token,
                formatting=base.formatting,
            )
        )

    updated, applied, skipped = apply_fields(markup, ordered)
    for item, reason in skipped:
        warn(f"Skipped field {item.tag!r}: {reason}")
    dbg(f"Tagged {len(applied)} fields, skipped {len(skipped)}")
    return TaggingResult(markup=updated, fields=applied, skipped=skipped, tokens=tokens)


def add_field(
    markup: str,
    selected_text: str,
    tag_name: str,
    allow_existing_tag: bool = False,
) -> Tuple[str, Field]:
    """Tag the first occurrence of an operator's selection.

    Raises ``TextNotFound`` when the selection is not inside any text node and
    ``AlreadyTagged`` when it (or the tag) is already placed.
    """
    selection = (selected_text or "").strip()
    if not selection:
        raise ValueError("selected_text must not be empty")
    placeholder = format_tag(tag_name)
    result = safe_substitute(markup, selection, placeholder, allow_existing_tag=allow_existing_tag)
    if not result.success:
        raise TextNotFound(selection)
    return result.markup, Field(tag=tag_name, category=category_for_tag(tag_name), original_value=selection)


def field_records(document_id: Optional[str], fields: Sequence[Field]) -> List[Dict[str, Any]]:
    return [item.to_record(document_id) for item in fields]


def tag_docx(
    src: Union[str, Path],
    dst: Union[str, Path],
    vocabulary: Optional[Vocabulary] = None,
    oracle: Optional[SuggestionOracle] = None,
) -> TaggingResult:
    result = tag_markup(read_document_xml(src), vocabulary=vocabulary, oracle=oracle)
    write_document_xml(src, dst, result.markup)
    return result
