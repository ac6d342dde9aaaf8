"""Run model and variable-tagging engine for WordprocessingML bodies."""

from .classifier import TagAllocator, VariableClassifier, category_for_tag
from .errors import (
    AlreadyTagged,
    DocumentPackageError,
    MalformedDocument,
    MissingValues,
    OracleCountMismatch,
    TemplaterError,
    TextNotFound,
)
from .models import Category, Field, Formatting, Run, SubstitutionResult, Token
from .rebuilder import rebuild_body, rebuild_document, runs_from_metadata, runs_to_metadata
from .run_extractor import extract_runs, extract_runs_from_docx
from .run_merger import RunMerger, merge_runs
from .substitution import apply_fields, safe_substitute, substitute_or_raise, substitute_token

__all__ = [
    "AlreadyTagged",
    "Category",
    "DocumentPackageError",
    "Field",
    "Formatting",
    "MalformedDocument",
    "MissingValues",
    "OracleCountMismatch",
    "Run",
    "RunMerger",
    "SubstitutionResult",
    "TagAllocator",
    "TemplaterError",
    "TextNotFound",
    "Token",
    "VariableClassifier",
    "apply_fields",
    "category_for_tag",
    "extract_runs",
    "extract_runs_from_docx",
    "merge_runs",
    "rebuild_body",
    "rebuild_document",
    "runs_from_metadata",
    "runs_to_metadata",
    "safe_substitute",
    "substitute_or_raise",
    "substitute_token",
]
