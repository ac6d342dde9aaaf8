"""Fill ``{{tag}}`` placeholders of a template with concrete values."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from lxml import etree

from templater.config import dbg, warn
from templater.documents.docx.errors import MissingValues
from templater.documents.docx.package_io import read_document_xml, write_document_xml
from templater.documents.docx.run_extractor import W_P, W_T, parse_markup
from templater.documents.docx.xml_text import TAG_CLOSE, TAG_OPEN, TAG_RE

XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"


@dataclass
class FillResult:
    markup: str
    filled: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


def _unclosed(text: str) -> bool:
    opened = text.rfind(TAG_OPEN)
    return opened != -1 and text.find(TAG_CLOSE, opened) == -1


def _set_text(el: etree._Element, text: str) -> None:
    el.text = text
    if text != text.strip():
        el.set(XML_SPACE, "preserve")


def _consolidate(text_els: List[etree._Element]) -> int:
    """Pull placeholders split over adjacent leaves into the leaf they start in."""
    joined = 0
    for i, el in enumerate(text_els):
        text = el.text or ""
        if text.endswith("{") and not _unclosed(text) and i + 1 < len(text_els):
            if not (text_els[i + 1].text or "").startswith("{"):
                continue
        elif not _unclosed(text):
            continue
        j = i + 1
        while j < len(text_els) and (_unclosed(text) or text.endswith("{")):
            following = text_els[j].text or ""
            close = following.find(TAG_CLOSE)
            if close == -1:
                text += following
                _set_text(text_els[j], "")
                j += 1
                continue
            text += following[: close + len(TAG_CLOSE)]
            _set_text(text_els[j], following[close + len(TAG_CLOSE):])
        if text != (el.text or ""):
            _set_text(el, text)
            joined += 1
    return joined


def _paragraph_groups(root: etree._Element) -> List[List[etree._Element]]:
    groups: "OrderedDict[Any, List[etree._Element]]" = OrderedDict()
    for el in root.iter(W_T):
        owner = next(el.iterancestors(W_P), None)
        groups.setdefault(owner if owner is not None else id(el), []).append(el)
    return list(groups.values())


def fill_placeholders(markup: str, values: Mapping[str, Any], strict: bool = False) -> FillResult:
    """Replace every ``{{name}}`` found in a text leaf with ``values[name]``.

    Placeholders without a value are left in place and reported in
    ``missing``; with ``strict`` set they raise ``MissingValues`` instead and
    nothing is returned.
    """
    root = parse_markup(markup)
    joined = sum(_consolidate(group) for group in _paragraph_groups(root))
    if joined:
        dbg(f"Consolidated {joined} split placeholders")

    filled: List[str] = []
    missing: List[str] = []

    def _replace(match) -> str:
        name = match.group(1)
        if name not in values:
            if name not in missing:
                missing.append(name)
            return match.group(0)
        filled.append(name)
        value = values[name]
        return "" if value is None else str(value)

    for el in root.iter(W_T):
        if not el.text or TAG_OPEN not in el.text:
            continue
        _set_text(el, TAG_RE.sub(_replace, el.text))

    if missing:
        if strict:
            raise MissingValues(missing)
        warn(f"No value for placeholders: {', '.join(missing)}")

    with_declaration = markup.lstrip().startswith("<?xml")
    output = etree.tostring(
        root,
        encoding="UTF-8",
        xml_declaration=with_declaration,
        standalone=True if with_declaration else None,
    ).decode("utf-8")
    dbg(f"Filled {len(filled)} placeholders, {len(missing)} without value")
    return FillResult(markup=output, filled=filled, missing=missing)


def fill_docx(
    src: Union[str, Path],
    dst: Union[str, Path],
    values: Mapping[str, Any],
    strict: bool = False,
) -> FillResult:
    result = fill_placeholders(read_document_xml(src), values, strict=strict)
    write_document_xml(src, dst, result.markup)
    return result


def values_from_records(records: List[Dict[str, Any]], overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Map stored field records (``field_name``/``field_value``) to fill values."""
    values = {row["field_name"]: row.get("field_value") for row in records if row.get("field_name")}
    if overrides:
        values.update(overrides)
    return values
