"""Parse WordprocessingML body markup into an ordered list of ``Run`` records.

The tree (lxml) provides paragraph/run structure and formatting; a raw scan of
the same markup provides the character span of every ``<w:t>`` leaf so later
substitutions can target one specific occurrence.  Both walks visit text
leaves in document order, so they are paired positionally.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from docx.oxml.ns import qn
from lxml import etree

from templater.config import dbg
from .errors import MalformedDocument
from .models import Formatting, Run, Span
from .xml_text import iter_text_nodes

_PARSER = etree.XMLParser(resolve_entities=False, huge_tree=True)
_OFF_VALUES = {"0", "false", "off", "none"}

W_BODY = qn("w:body")
W_P = qn("w:p")
W_R = qn("w:r")
W_T = qn("w:t")
W_RPR = qn("w:rPr")
W_VAL = qn("w:val")


def parse_markup(markup: Union[str, bytes]) -> etree._Element:
    data = markup.encode("utf-8") if isinstance(markup, str) else markup
    try:
        return etree.fromstring(data, _PARSER)
    except etree.XMLSyntaxError as exc:
        raise MalformedDocument(f"Document markup is not well-formed: {exc}") from exc


def find_body(root: etree._Element) -> etree._Element:
    if root.tag == W_BODY:
        return root
    body = root.find(W_BODY)
    if body is None:
        raise MalformedDocument("Document markup has no <w:body> element")
    return body


def _toggle(rpr: etree._Element, name: str) -> Optional[bool]:
    el = rpr.find(qn(name))
    if el is None:
        return None
    val = el.get(W_VAL)
    return val is None or val.lower() not in _OFF_VALUES


def _underline(rpr: etree._Element) -> Optional[bool]:
    el = rpr.find(qn("w:u"))
    if el is None:
        return None
    val = el.get(W_VAL)
    return val is None or val.lower() not in _OFF_VALUES


def _font_size(rpr: etree._Element) -> Optional[int]:
    el = rpr.find(qn("w:sz"))
    if el is None:
        return None
    try:
        return int(el.get(W_VAL, ""))
    except ValueError:
        return None


def _font_family(rpr: etree._Element) -> Optional[str]:
    el = rpr.find(qn("w:rFonts"))
    if el is None:
        return None
    return el.get(qn("w:ascii")) or el.get(qn("w:hAnsi"))


def _color(rpr: etree._Element) -> Optional[str]:
    el = rpr.find(qn("w:color"))
    if el is None:
        return None
    val = el.get(W_VAL)
    if not val or val.lower() == "auto":
        return None
    return val.upper()


def parse_formatting(run_el: etree._Element) -> Formatting:
    rpr = run_el.find(W_RPR)
    if rpr is None:
        return Formatting()
    return Formatting(
        bold=_toggle(rpr, "w:b"),
        italic=_toggle(rpr, "w:i"),
        underline=_underline(rpr),
        font_size_half_points=_font_size(rpr),
        font_family=_font_family(rpr),
        color_hex=_color(rpr),
    )


def _owning_paragraph(el: etree._Element) -> Optional[etree._Element]:
    parent = el.getparent()
    while parent is not None and parent.tag != W_P:
        parent = parent.getparent()
    return parent


def _text_spans(markup: str, root: etree._Element) -> Dict[etree._Element, Span]:
    elements = list(root.iter(W_T))
    nodes = list(iter_text_nodes(markup))
    if len(elements) != len(nodes):
        raise MalformedDocument(
            f"Text node scan found {len(nodes)} <w:t> leaves but the tree has {len(elements)}"
        )
    return {el: (node.content_start, node.content_end) for el, node in zip(elements, nodes)}


def extract_runs(markup: str) -> List[Run]:
    """Return every non-empty run of the document body in document order.

    Raises ``MalformedDocument`` when the markup does not parse or has no body;
    there is no partial extraction.
    """
    if not isinstance(markup, str) or not markup.strip():
        raise MalformedDocument("Document markup is empty")
    root = parse_markup(markup)
    body = find_body(root)
    spans = _text_spans(markup, root)

    runs: List[Run] = []
    # A paragraph resumed after a nested one (text box content) opens a new
    # index, so indexes stay non-decreasing in document order.
    p_index = -1
    current: Optional[etree._Element] = None
    for el in body.iter(W_P, W_R):
        if el.tag == W_P:
            p_index += 1
            current = el
            continue
        owner = _owning_paragraph(el)
        if owner is None:
            continue
        if owner is not current:
            p_index += 1
            current = owner
        text_els = el.findall(W_T)
        text = "".join(t.text or "" for t in text_els)
        if not text:
            continue
        text_spans: Tuple[Span, ...] = tuple(spans[t] for t in text_els if t in spans)
        source_span = (text_spans[0][0], text_spans[-1][1]) if text_spans else None
        runs.append(
            Run(
                text=text,
                formatting=parse_formatting(el),
                paragraph_index=p_index,
                source_span=source_span,
                text_spans=text_spans,
            )
        )
    dbg(f"Extracted {len(runs)} runs from {p_index + 1} paragraph segments")
    return runs


def extract_runs_from_docx(path: Union[str, Path]) -> List[Run]:
    from .package_io import read_document_xml

    return extract_runs(read_document_xml(path))


def group_by_paragraph(runs: List[Run]) -> List[List[Run]]:
    """Split a run list into per-paragraph lists, preserving order."""
    groups: List[List[Run]] = []
    current: Optional[int] = None
    for run in runs:
        if current is None or run.paragraph_index != current:
            groups.append([])
            current = run.paragraph_index
        groups[-1].append(run)
    return groups
