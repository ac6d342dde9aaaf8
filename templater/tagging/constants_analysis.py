"""Find values that repeat across a corpus of filled documents.

A value that shows up identically in many documents (agency names, office
codes, fixed tariff codes) is boilerplate and must never become a variable.
The exclusion list produced here is meant to be merged into the vocabulary's
``constants``.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Union

from templater.config import dbg, warn
from templater.documents.docx.errors import TemplaterError
from templater.documents.docx.package_io import read_document_xml
from templater.documents.docx.xml_text import iter_text_nodes

_UPPER = "A-ZĄĆĘŁŃÓŚŹŻÄÖÜ"
_LOWER = "a-ząćęłńóśźżäöü"

# (type, patterns) checked in order; the first hit wins
VALUE_TYPES = (
    ("VIN", (re.compile(r"^[A-HJ-NPR-Z0-9]{17}$", re.IGNORECASE),)),
    (
        "DATE",
        (
            re.compile(r"^\d{1,2}[-./]\d{1,2}[-./]\d{2,4}$"),
            re.compile(r"^\d{4}[-./]\d{1,2}[-./]\d{1,2}$"),
        ),
    ),
    ("MONEY", (re.compile(r"^\d{1,3}(?:[., ]\d{3})*(?:[.,]\d{2})?\s*(?:EUR|PLN|USD)$", re.IGNORECASE),)),
)
_REFERENCE_RE = re.compile(r"^[A-Z0-9]{2,}-[A-Z0-9-]+$", re.IGNORECASE)
_MRN_RE = re.compile(r"^\d{2}[A-Z]{2}[A-Z0-9]{10,}$", re.IGNORECASE)
_CODE_RE = re.compile(r"^\d{8,}$")
_VAT_RE = re.compile(r"^[A-Z]{2}\d{8,12}$", re.IGNORECASE)
_POSTAL_RES = (re.compile(r"^\d{2}-\d{3}$"), re.compile(r"^\d{4}\s?[A-Z]{2}$", re.IGNORECASE))
_PERSON_RE = re.compile(rf"^[{_UPPER}][{_LOWER}]+(?:\s+[{_UPPER}][{_LOWER}]+){{1,2}}$")
_CAPS_RE = re.compile(rf"^[{_UPPER}\s\-.]{{3,}}$")
_DIGIT_RE = re.compile(r"\d")
_LETTER_RE = re.compile(r"[A-Za-z]")


def categorize_value(text: str) -> str:
    """Coarse value type used to report variables; ``TEXT`` when nothing matches."""
    value = text.strip()
    for kind, patterns in VALUE_TYPES:
        if any(p.match(value) for p in patterns):
            return kind
    if _REFERENCE_RE.match(value) and len(value) > 10:
        return "REFERENCE"
    if _MRN_RE.match(value):
        return "MRN"
    if _CODE_RE.match(value):
        return "CODE"
    if _VAT_RE.match(value):
        return "VAT_NUMBER"
    if any(p.match(value) for p in _POSTAL_RES):
        return "POSTAL_CODE"
    if _PERSON_RE.match(value):
        return "PERSON_NAME"
    if _CAPS_RE.match(value) and len(value) > 3:
        return "CAPS_NAME"
    if _DIGIT_RE.search(value) and _LETTER_RE.search(value) and len(value) > 5:
        return "ADDRESS"
    return "TEXT"


def collect_values(markup: str) -> List[str]:
    """Trimmed text of every text node longer than one character, in order."""
    values = []
    for node in iter_text_nodes(markup):
        text = node.text.strip()
        if len(text) > 1:
            values.append(text)
    return values


@dataclass
class ValueStats:
    value: str
    kind: str
    documents: List[str] = field(default_factory=list)

    @property
    def occurrences(self) -> int:
        return len(self.documents)

    def share(self, total: int) -> float:
        return self.occurrences / total if total else 0.0

    def to_dict(self, total: int) -> Dict[str, object]:
        return {
            "value": self.value,
            "type": self.kind,
            "occurrences": self.occurrences,
            "percentage": round(self.share(total) * 100),
            "files": list(self.documents),
        }


@dataclass
class CorpusAnalysis:
    total_documents: int
    constants: List[ValueStats] = field(default_factory=list)
    variables: List[ValueStats] = field(default_factory=list)
    exclusion_list: List[str] = field(default_factory=list)

    def variable_types(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for item in self.variables:
            counts[item.kind] = counts.get(item.kind, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, object]:
        return {
            "analyzedFiles": self.total_documents,
            "totalConstants": len(self.constants),
            "totalVariables": len(self.variables),
            "constants": [c.to_dict(self.total_documents) for c in self.constants],
            "variableTypes": self.variable_types(),
            "exclusionList": list(self.exclusion_list),
        }


def analyze_corpus(
    documents: Mapping[str, str],
    min_docs: int = 3,
    min_share: float = 0.3,
) -> CorpusAnalysis:
    """Split the distinct values of ``documents`` (name -> markup) into constants and variables.

    A value counts once per document.  It is constant when it appears in at
    least ``min_docs`` documents or in at least ``min_share`` of them; a value
    seen in a single document with a recognizable type is a variable.
    """
    stats: "OrderedDict[str, ValueStats]" = OrderedDict()
    for name, markup in documents.items():
        for value in OrderedDict.fromkeys(collect_values(markup)):
            entry = stats.get(value)
            if entry is None:
                entry = stats[value] = ValueStats(value, categorize_value(value))
            entry.documents.append(name)

    total = len(documents)
    constants: List[ValueStats] = []
    variables: List[ValueStats] = []
    for entry in stats.values():
        if entry.occurrences >= min_docs or entry.share(total) >= min_share:
            constants.append(entry)
        elif entry.occurrences == 1 and entry.kind != "TEXT":
            variables.append(entry)

    constants.sort(key=lambda e: e.occurrences, reverse=True)
    variables.sort(key=lambda e: e.kind)
    exclusions = [e.value for e in constants if e.share(total) >= min_share and len(e.value) > 2]
    dbg(f"Analyzed {total} documents: {len(constants)} constants, {len(variables)} variables")
    return CorpusAnalysis(
        total_documents=total,
        constants=constants,
        variables=variables,
        exclusion_list=exclusions,
    )


def load_corpus(paths: Iterable[Union[str, Path]]) -> Dict[str, str]:
    """Read ``word/document.xml`` of every path; unreadable packages are skipped."""
    corpus: Dict[str, str] = {}
    for path in paths:
        p = Path(path)
        try:
            corpus[p.name] = read_document_xml(p)
        except TemplaterError as exc:
            warn(f"Skipping {p.name}: {exc}")
    return corpus


def discover_documents(directory: Union[str, Path], skip_suffix: str = "_szablon") -> List[Path]:
    """List the .docx files of ``directory``, leaving out already-templated ones."""
    return sorted(
        p for p in Path(directory).glob("*.docx") if skip_suffix not in p.stem
    )


def analyze_paths(paths: Sequence[Union[str, Path]], min_docs: int = 3, min_share: float = 0.3) -> CorpusAnalysis:
    return analyze_corpus(load_corpus(paths), min_docs=min_docs, min_share=min_share)
