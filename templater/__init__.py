"""Convenience exports for the templater package.

The engine lives in ``templater.documents.docx`` (run model, merger,
classifier, substitution, rebuilder) and the document-level workflows in
``templater.tagging``.  The most common entry points are re-exported here.
"""

from .documents.docx import (
    AlreadyTagged,
    Category,
    Field,
    Formatting,
    MalformedDocument,
    Run,
    RunMerger,
    TemplaterError,
    TextNotFound,
    Token,
    VariableClassifier,
    extract_runs,
    rebuild_document,
    safe_substitute,
)
from .tagging.filler import fill_placeholders
from .tagging.pipeline import TaggingResult, add_field, field_records, tag_markup
from .tagging.vocabulary import Vocabulary, load_vocabulary

__version__ = "0.1.0"

__all__ = [
    "AlreadyTagged",
    "Category",
    "Field",
    "Formatting",
    "MalformedDocument",
    "Run",
    "RunMerger",
    "TaggingResult",
    "TemplaterError",
    "TextNotFound",
    "Token",
    "VariableClassifier",
    "Vocabulary",
    "add_field",
    "extract_runs",
    "field_records",
    "fill_placeholders",
    "load_vocabulary",
    "rebuild_document",
    "safe_substitute",
    "tag_markup",
]
