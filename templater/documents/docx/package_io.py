"""Read and write the main document part of a .docx package with python-docx."""

from __future__ import annotations

from pathlib import Path
from typing import Union

import docx
from docx.oxml import parse_xml

from templater.config import dbg
from .errors import DocumentPackageError, MalformedDocument

PathLike = Union[str, Path]


def open_document(path: PathLike):
    try:
        return docx.Document(str(path))
    except Exception as exc:
        raise DocumentPackageError(f"Failed to open '{path}' as a Word document: {exc}") from exc


def read_document_xml(path: PathLike) -> str:
    """Return ``word/document.xml`` of ``path`` as text."""
    document = open_document(path)
    markup = document.part.blob.decode("utf-8")
    dbg(f"Read {len(markup)} chars of document markup from {path}")
    return markup


def _replace_part_element(part, element) -> None:
    # python-docx exposes no public setter for a part's root element
    part._element = element


def write_document_xml(src: PathLike, dst: PathLike, markup: str) -> Path:
    """Copy ``src`` to ``dst`` with its main document part replaced by ``markup``."""
    document = open_document(src)
    try:
        element = parse_xml(markup.encode("utf-8"))
    except Exception as exc:
        raise MalformedDocument(f"Refusing to write unparseable markup: {exc}") from exc
    _replace_part_element(document.part, element)
    target = Path(dst)
    target.parent.mkdir(parents=True, exist_ok=True)
    document.save(str(target))
    dbg(f"Wrote {target}")
    return target
