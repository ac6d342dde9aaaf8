"""Run, Token and Field records shared by the tagging engine.

Formatting attributes are tri-state: ``None`` means the attribute is absent
from the run properties, ``False`` means it is present but switched off.  The
rebuilder relies on that distinction and never emits markup for ``None``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

Span = Tuple[int, int]


class Category(str, Enum):
    VEHICLE = "vehicle"
    PERSON = "person"
    ADDRESS = "address"
    DOCUMENTS = "documents"
    DATES = "dates"
    FINANCIAL = "financial"
    TRANSPORT = "transport"
    EXPORTER = "exporter"
    CUSTOMS = "customs"
    OTHER = "other"


_POINTS_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*pt\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class Formatting:
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    underline: Optional[bool] = None
    font_size_half_points: Optional[int] = None
    font_family: Optional[str] = None
    color_hex: Optional[str] = None

    def is_empty(self) -> bool:
        return all(value is None for value in self.__dict__.values())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase ``runs_metadata`` shape, omitting absent keys."""
        payload: Dict[str, Any] = {}
        if self.bold is not None:
            payload["bold"] = self.bold
        if self.italic is not None:
            payload["italic"] = self.italic
        if self.underline is not None:
            payload["underline"] = self.underline
        if self.font_size_half_points is not None:
            payload["fontSizeHalfPoints"] = self.font_size_half_points
        if self.font_family is not None:
            payload["fontFamily"] = self.font_family
        if self.color_hex is not None:
            payload["colorHex"] = self.color_hex
        return payload

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Formatting":
        """Parse stored formatting.

        Accepts the current keys plus the older ``fontSize`` (points, either a
        number or ``"10pt"``) and ``color`` (``"#RRGGBB"``) keys.
        """
        if not data:
            return cls()
        size = data.get("fontSizeHalfPoints")
        if size is None and data.get("fontSize") is not None:
            raw = data["fontSize"]
            if isinstance(raw, str):
                match = _POINTS_RE.match(raw)
                raw = float(match.group(1)) if match else None
            if raw is not None:
                size = int(round(float(raw) * 2))
        color = data.get("colorHex")
        if color is None and data.get("color"):
            color = str(data["color"]).lstrip("#")
        return cls(
            bold=_opt_bool(data.get("bold")),
            italic=_opt_bool(data.get("italic")),
            underline=_opt_bool(data.get("underline")),
            font_size_half_points=int(size) if size is not None else None,
            font_family=data.get("fontFamily"),
            color_hex=color.upper() if color else None,
        )


def _opt_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


@dataclass
class Run:
    """Atomic styled text fragment as it appears in the document body."""

    text: str
    formatting: Formatting = field(default_factory=Formatting)
    paragraph_index: int = 0
    source_span: Optional[Span] = None
    # content span of every <w:t> node of the run, in document order
    text_spans: Tuple[Span, ...] = ()


@dataclass
class Token:
    """Contiguous runs of one paragraph collapsed into one semantic unit."""

    runs: List[Run]
    preceding_label: Optional["Token"] = None
    is_label: bool = False

    @property
    def merged_text(self) -> str:
        return "".join(run.text for run in self.runs)

    @property
    def text(self) -> str:
        return self.merged_text.strip()

    @property
    def paragraph_index(self) -> int:
        return self.runs[0].paragraph_index

    @property
    def has_label(self) -> bool:
        return self.is_label or self.preceding_label is not None

    @property
    def label_text(self) -> Optional[str]:
        if self.preceding_label is None:
            return None
        return self.preceding_label.text

    @property
    def source_span(self) -> Optional[Span]:
        spans = [run.source_span for run in self.runs if run.source_span is not None]
        if not spans:
            return None
        return spans[0][0], spans[-1][1]

    def __repr__(self) -> str:
        label = f", label={self.label_text!r}" if self.preceding_label is not None else ""
        return f"Token({self.merged_text!r}, runs={len(self.runs)}{label}, is_label={self.is_label})"


@dataclass
class Field:
    """A resolved template variable."""

    tag: str
    category: Category
    original_value: str
    source_token: Optional[Token] = None
    formatting: Formatting = field(default_factory=Formatting)

    @property
    def placeholder(self) -> str:
        return "{{" + self.tag + "}}"

    def to_record(self, document_id: Optional[str] = None) -> Dict[str, Any]:
        return {
            "document_id": document_id,
            "field_name": self.tag,
            "field_value": self.original_value,
            "field_tag": self.placeholder,
            "category": self.category.value,
            "formatting": self.formatting.to_dict(),
        }


@dataclass
class SubstitutionResult:
    success: bool
    markup: str
    node_index: Optional[int] = None
    offset: Optional[int] = None
    delta: int = 0
