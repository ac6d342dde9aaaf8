"""Serialize an edited run list back into WordprocessingML.

Used when the run list (``runs_metadata``) is the system of record, e.g.
after a batch relabeling pass rewrote run texts.  Formatting properties are
emitted only for attributes that are present; absent attributes produce no
markup at all.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from docx.oxml import OxmlElement
from docx.oxml.ns import nsmap, qn
from lxml import etree

from templater.config import dbg
from .models import Formatting, Run


def default_section_properties() -> etree._Element:
    """A4 portrait, 1" margins."""
    sect_pr = OxmlElement("w:sectPr")
    sect_pr.append(OxmlElement("w:pgSz", {qn("w:w"): "11906", qn("w:h"): "16838"}))
    margins = {"top": "1440", "right": "1440", "bottom": "1440", "left": "1440",
               "header": "708", "footer": "708", "gutter": "0"}
    sect_pr.append(OxmlElement("w:pgMar", {qn(f"w:{k}"): v for k, v in margins.items()}))
    return sect_pr


def _val(tag: str, value: str) -> etree._Element:
    return OxmlElement(tag, {qn("w:val"): value})


def _toggle(tag: str, value: Optional[bool]) -> Optional[etree._Element]:
    if value is None:
        return None
    return OxmlElement(tag) if value else _val(tag, "0")


def build_run_properties(formatting: Formatting) -> Optional[etree._Element]:
    """Return ``<w:rPr>`` for the present attributes, in schema order, or None."""
    children: List[Optional[etree._Element]] = []
    if formatting.font_family is not None:
        family = formatting.font_family
        children.append(OxmlElement("w:rFonts", {qn("w:ascii"): family, qn("w:hAnsi"): family}))
    children.append(_toggle("w:b", formatting.bold))
    children.append(_toggle("w:i", formatting.italic))
    if formatting.color_hex is not None:
        children.append(_val("w:color", formatting.color_hex.lstrip("#")))
    if formatting.font_size_half_points is not None:
        size = str(int(formatting.font_size_half_points))
        children.extend([_val("w:sz", size), _val("w:szCs", size)])
    if formatting.underline is not None:
        children.append(_val("w:u", "single" if formatting.underline else "none"))

    present = [child for child in children if child is not None]
    if not present:
        return None
    rpr = OxmlElement("w:rPr")
    for child in present:
        rpr.append(child)
    return rpr


def build_run(run: Run) -> etree._Element:
    r = OxmlElement("w:r")
    rpr = build_run_properties(run.formatting)
    if rpr is not None:
        r.append(rpr)
    t = OxmlElement("w:t", {qn("xml:space"): "preserve"})
    t.text = run.text
    r.append(t)
    return r


def _paragraphs(runs: Sequence[Run]) -> List[etree._Element]:
    grouped: Dict[int, List[Run]] = {}
    for run in runs:
        if run.paragraph_index < 0:
            raise ValueError(f"Negative paragraph index on run {run.text!r}")
        grouped.setdefault(run.paragraph_index, []).append(run)
    if not grouped:
        return []
    out: List[etree._Element] = []
    for index in range(max(grouped) + 1):
        p = OxmlElement("w:p")
        # empty paragraphs keep numbering stable across a round trip
        for run in grouped.get(index, ()):
            p.append(build_run(run))
        out.append(p)
    return out


def rebuild_body(runs: Sequence[Run]) -> str:
    """Return a standalone ``<w:body>`` element for ``runs``."""
    body = OxmlElement("w:body")
    for p in _paragraphs(runs):
        body.append(p)
    return etree.tostring(body, encoding="unicode")


def rebuild_document(
    runs: Sequence[Run],
    section_properties: Optional[etree._Element] = None,
    include_section: bool = True,
) -> str:
    """Return a complete ``word/document.xml`` for ``runs``.

    ``section_properties`` replaces the default A4 ``<w:sectPr>``;
    ``include_section=False`` leaves the section out entirely.
    """
    document = OxmlElement("w:document", nsdecls={"w": nsmap["w"], "r": nsmap["r"]})
    body = OxmlElement("w:body")
    document.append(body)
    paragraphs = _paragraphs(runs)
    for p in paragraphs:
        body.append(p)
    if include_section:
        body.append(section_properties if section_properties is not None else default_section_properties())
    xml = etree.tostring(document, xml_declaration=True, encoding="UTF-8", standalone=True)
    dbg(f"Rebuilt document from {len(runs)} runs in {len(paragraphs)} paragraphs")
    return xml.decode("utf-8")


def runs_to_metadata(runs: Iterable[Run]) -> List[Dict[str, Any]]:
    return [
        {
            "text": run.text,
            "formatting": run.formatting.to_dict(),
            "paragraphIndex": run.paragraph_index,
        }
        for run in runs
    ]


def runs_from_metadata(rows: Iterable[Mapping[str, Any]]) -> List[Run]:
    runs: List[Run] = []
    for row in rows:
        runs.append(
            Run(
                text=str(row.get("text", "")),
                formatting=Formatting.from_dict(row.get("formatting")),
                paragraph_index=int(row.get("paragraphIndex") or 0),
            )
        )
    return runs
