"""Versioned label and constant vocabularies injected into the merger and classifier."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Pattern, Tuple, Union

from templater.config import dbg, vocabulary_path
from templater.documents.docx.errors import TemplaterError

_WS_RE = re.compile(r"\s+")


def normalize_value(text: str) -> str:
    """Collapse whitespace and casefold so constants compare robustly."""
    return _WS_RE.sub(" ", (text or "").strip()).casefold()


@dataclass(frozen=True)
class LabelRule:
    """Map a preceding label to a tag.

    The rule fires when the lower-cased label contains one of ``label_keywords``
    or matches ``label_pattern`` (search), and the value matches
    ``value_pattern`` (search) when one is given.
    """

    tag: str
    label_keywords: Tuple[str, ...] = ()
    label_pattern: Optional[Pattern[str]] = None
    value_pattern: Optional[Pattern[str]] = None
    category: Optional[str] = None

    def matches(self, label: str, value: str) -> bool:
        lowered = label.lower()
        label_hit = any(keyword in lowered for keyword in self.label_keywords)
        if not label_hit and self.label_pattern is not None:
            label_hit = bool(self.label_pattern.search(label))
        if not label_hit:
            return False
        if self.value_pattern is not None and not self.value_pattern.search(value):
            return False
        return True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LabelRule":
        if not data.get("tag"):
            raise TemplaterError(f"Label rule without a tag: {data!r}")
        label_pattern = data.get("label_pattern")
        value_pattern = data.get("value_pattern")
        return cls(
            tag=data["tag"],
            label_keywords=tuple(k.lower() for k in data.get("label_keywords", ())),
            label_pattern=re.compile(label_pattern) if label_pattern else None,
            value_pattern=re.compile(value_pattern) if value_pattern else None,
            category=data.get("category"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"tag": self.tag}
        if self.label_keywords:
            payload["label_keywords"] = list(self.label_keywords)
        if self.label_pattern is not None:
            payload["label_pattern"] = self.label_pattern.pattern
        if self.value_pattern is not None:
            payload["value_pattern"] = self.value_pattern.pattern
        if self.category:
            payload["category"] = self.category
        return payload


@dataclass(frozen=True)
class Vocabulary:
    version: str = "0"
    labels: Tuple[str, ...] = ()
    label_rules: Tuple[LabelRule, ...] = ()
    constants: Tuple[str, ...] = ()
    person_name_exclusions: Tuple[str, ...] = ()
    _normalized_constants: FrozenSet[str] = field(default=frozenset(), repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_normalized_constants", frozenset(normalize_value(c) for c in self.constants)
        )

    def is_constant(self, text: str) -> bool:
        return normalize_value(text) in self._normalized_constants

    def with_constants(self, values: Iterable[str]) -> "Vocabulary":
        merged = list(self.constants)
        seen = {normalize_value(c) for c in merged}
        for value in values:
            key = normalize_value(value)
            if key and key not in seen:
                merged.append(value.strip())
                seen.add(key)
        return replace(self, constants=tuple(merged))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vocabulary":
        return cls(
            version=str(data.get("version", "0")),
            labels=tuple(data.get("labels", ())),
            label_rules=tuple(LabelRule.from_dict(rule) for rule in data.get("label_rules", ())),
            constants=tuple(data.get("constants", ())),
            person_name_exclusions=tuple(data.get("person_name_exclusions", ())),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "labels": list(self.labels),
            "label_rules": [rule.to_dict() for rule in self.label_rules],
            "constants": list(self.constants),
            "person_name_exclusions": list(self.person_name_exclusions),
        }


def load_vocabulary(path: Optional[Union[str, Path]] = None) -> Vocabulary:
    resolved = vocabulary_path(str(path) if path else None)
    try:
        data = json.loads(resolved.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise TemplaterError(f"Failed to load vocabulary '{resolved}': {exc}") from exc
    vocabulary = Vocabulary.from_dict(data)
    dbg(
        f"Loaded vocabulary v{vocabulary.version} from {resolved}: "
        f"{len(vocabulary.labels)} labels, {len(vocabulary.constants)} constants"
    )
    return vocabulary


def save_vocabulary(vocabulary: Vocabulary, path: Union[str, Path]) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(vocabulary.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")


__all__: List[str] = ["LabelRule", "Vocabulary", "load_vocabulary", "save_vocabulary", "normalize_value"]
