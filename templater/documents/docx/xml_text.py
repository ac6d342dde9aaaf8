"""Low-level helpers for WordprocessingML text nodes and ``{{tag}}`` syntax.

Everything here works on the raw markup string so callers can splice edits
into a single ``<w:t>`` leaf without re-serializing the rest of the document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Set, Tuple

_NAMED_ENTITIES = {
    "lt": "<",
    "gt": ">",
    "amp": "&",
    "quot": '"',
    "apos": "'",
}
_ENTITY_RE = re.compile(r"&(#x[0-9A-Fa-f]+|#[0-9]+|[A-Za-z]+);")

# Comments, CDATA sections and processing instructions are opaque to the scan.
_OPAQUE = r"<!--.*?-->|<!\[CDATA\[.*?\]\]>|<\?.*?\?>"
# Opening tag of a text leaf: <w:t>, <w:t xml:space="preserve">, <w:t/>.
# The lookahead keeps <w:tab/>, <w:tbl>, <w:tc> and friends out.
_TEXT_OPEN_RE = re.compile(_OPAQUE + r"|<w:t(?=[\s/>])([^>]*?)(/?)>", re.S)
_TEXT_CLOSE_RE = re.compile(_OPAQUE + r"|(</w:t>)", re.S)
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.S)
_OPAQUE_RE = re.compile(_OPAQUE, re.S)

TAG_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
TAG_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
TAG_OPEN = "{{"
TAG_CLOSE = "}}"


@dataclass(frozen=True)
class TextNode:
    """A ``<w:t>`` leaf located in the raw markup."""

    index: int
    open_tag: str
    raw_text: str
    content_start: int
    content_end: int

    @property
    def text(self) -> str:
        if not self.has_markup:
            return decode_entities(self.raw_text)
        return _text_with_markup(self.raw_text)

    @property
    def has_markup(self) -> bool:
        """True when the leaf holds a comment, CDATA section or instruction."""
        return "<" in self.raw_text


def _text_with_markup(raw: str) -> str:
    parts: List[str] = []
    pos = 0
    for match in _OPAQUE_RE.finditer(raw):
        parts.append(decode_entities(raw[pos:match.start()]))
        cdata = _CDATA_RE.fullmatch(match.group(0))
        if cdata:
            parts.append(cdata.group(1))
        pos = match.end()
    parts.append(decode_entities(raw[pos:]))
    return "".join(parts)


def _resolve_entity(name: str) -> str:
    if name.startswith("#x"):
        return chr(int(name[2:], 16))
    if name.startswith("#"):
        return chr(int(name[1:]))
    return _NAMED_ENTITIES.get(name, f"&{name};")


def decode_entities(raw: str) -> str:
    return _ENTITY_RE.sub(lambda m: _resolve_entity(m.group(1)), raw)


def decode_with_offsets(raw: str) -> Tuple[str, List[Tuple[int, int]]]:
    """Decode ``raw`` and map every decoded character back to its raw range."""
    chars: List[str] = []
    offsets: List[Tuple[int, int]] = []
    pos = 0
    for match in _ENTITY_RE.finditer(raw):
        for i in range(pos, match.start()):
            chars.append(raw[i])
            offsets.append((i, i + 1))
        resolved = _resolve_entity(match.group(1))
        if resolved.startswith("&") and len(resolved) > 1:
            # unknown entity, kept literally
            for i in range(match.start(), match.end()):
                chars.append(raw[i])
                offsets.append((i, i + 1))
        else:
            chars.append(resolved)
            offsets.append((match.start(), match.end()))
        pos = match.end()
    for i in range(pos, len(raw)):
        chars.append(raw[i])
        offsets.append((i, i + 1))
    return "".join(chars), offsets


def escape_text(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def iter_text_nodes(markup: str) -> Iterator[TextNode]:
    """Yield every ``<w:t>`` leaf of ``markup`` in document order.

    ``<w:t>`` look-alikes inside comments, CDATA sections and processing
    instructions are not leaves and are passed over.
    """
    index = 0
    pos = 0
    while True:
        match = _TEXT_OPEN_RE.search(markup, pos)
        if match is None:
            return
        if match.group(1) is None:
            pos = match.end()
            continue
        if match.group(2) == "/":
            yield TextNode(index, match.group(0), "", match.end(), match.end())
            pos = match.end()
        else:
            close = _TEXT_CLOSE_RE.search(markup, match.end())
            while close is not None and close.group(1) is None:
                close = _TEXT_CLOSE_RE.search(markup, close.end())
            if close is None:
                return
            yield TextNode(index, match.group(0), markup[match.end():close.start()], match.end(), close.start())
            pos = close.end()
        index += 1


def format_tag(name: str) -> str:
    if not TAG_NAME_RE.match(name or ""):
        raise ValueError(f"Invalid tag name: {name!r}")
    return TAG_OPEN + name + TAG_CLOSE


def find_tags(text: str) -> List[str]:
    return [m.group(1) for m in TAG_RE.finditer(text or "")]


def contains_tag_delimiter(text: str) -> bool:
    return TAG_OPEN in text or TAG_CLOSE in text


def tags_in_markup(markup: str) -> Set[str]:
    """Return every tag name already placed in a text node of ``markup``."""
    found: Set[str] = set()
    for node in iter_text_nodes(markup):
        found.update(find_tags(node.text))
    return found
