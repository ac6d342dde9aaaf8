#!/usr/bin/env python3
"""
docx-templater command line interface.

Subcommands:
- extract:   print the runs of a .docx (or its runs_metadata JSON)
- tag:       turn a filled .docx into a template with {{tags}}
- rebuild:   write word/document.xml from a runs_metadata JSON file
- fill:      fill the {{tags}} of a template with values from JSON
- constants: find values repeated across a corpus of .docx files
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from templater.config import vocabulary_path
from templater.documents.docx.errors import TemplaterError
from templater.documents.docx.rebuilder import rebuild_document, runs_from_metadata, runs_to_metadata
from templater.documents.docx.run_extractor import extract_runs_from_docx
from templater.tagging.constants_analysis import analyze_paths
from templater.tagging.filler import fill_docx, values_from_records
from templater.tagging.pipeline import field_records, tag_docx
from templater.tagging.vocabulary import load_vocabulary, save_vocabulary


def _read_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _write_json(path: str, payload: Any) -> None:
    Path(path).write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def cmd_extract(args: argparse.Namespace) -> int:
    runs = extract_runs_from_docx(args.docx)
    if args.json:
        print(json.dumps(runs_to_metadata(runs), ensure_ascii=False, indent=2))
        return 0
    for run in runs:
        print(f"[p{run.paragraph_index}] {run.text!r} {run.formatting.to_dict()}")
    return 0


def cmd_tag(args: argparse.Namespace) -> int:
    vocabulary = load_vocabulary(vocabulary_path(args.vocabulary))
    oracle = None
    if args.use_llm:
        from templater.tagging.oracle import LLMSuggestionOracle

        oracle = LLMSuggestionOracle(constants=vocabulary.constants)
    result = tag_docx(args.docx, args.out, vocabulary=vocabulary, oracle=oracle)
    records = field_records(args.document_id, result.fields)
    if args.fields_json:
        _write_json(args.fields_json, records)
    for row in records:
        print(f"{row['field_tag']:<28} {row['category']:<10} {row['field_value']}")
    print(f"Tagged {len(result.fields)} fields ({len(result.skipped)} skipped) -> {args.out}")
    return 0


def cmd_rebuild(args: argparse.Namespace) -> int:
    runs = runs_from_metadata(_read_json(args.runs_json))
    Path(args.out_xml).write_text(rebuild_document(runs), encoding="utf-8")
    print(f"Wrote {len(runs)} runs -> {args.out_xml}")
    return 0


def cmd_fill(args: argparse.Namespace) -> int:
    payload = _read_json(args.values_json)
    values = values_from_records(payload) if isinstance(payload, list) else payload
    result = fill_docx(args.template, args.out, values, strict=args.strict)
    print(f"Filled {len(result.filled)} placeholders -> {args.out}")
    if result.missing:
        print("Missing values: " + ", ".join(result.missing))
    return 0


def cmd_constants(args: argparse.Namespace) -> int:
    analysis = analyze_paths(args.docx, min_docs=args.min_docs, min_share=args.min_share)
    if args.out:
        _write_json(args.out, analysis.to_dict())
    if args.merge_into:
        vocabulary = load_vocabulary(args.merge_into)
        save_vocabulary(vocabulary.with_constants(analysis.exclusion_list), args.merge_into)
    print(f"Files analyzed:  {analysis.total_documents}")
    print(f"Constant values: {len(analysis.constants)}")
    print(f"Variable values: {len(analysis.variables)}")
    for value in analysis.exclusion_list:
        print(f"  {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="templater", description="Word document templating CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("extract", help="Print the runs of a .docx")
    p.add_argument("docx")
    p.add_argument("--json", action="store_true", help="Print runs_metadata JSON")
    p.set_defaults(func=cmd_extract)

    p = sub.add_parser("tag", help="Replace variable data with {{tags}}")
    p.add_argument("docx")
    p.add_argument("out", help="Path to write the template .docx")
    p.add_argument("--vocabulary", help="Vocabulary JSON (default: packaged)")
    p.add_argument("--document-id", help="Document id stored on field records")
    p.add_argument("--fields-json", help="Also save field records JSON here")
    p.add_argument("--use-llm", action="store_true", help="Ask the suggestion oracle about unmatched tokens")
    p.set_defaults(func=cmd_tag)

    p = sub.add_parser("rebuild", help="Write document.xml from runs_metadata JSON")
    p.add_argument("runs_json")
    p.add_argument("out_xml")
    p.set_defaults(func=cmd_rebuild)

    p = sub.add_parser("fill", help="Fill a template with values")
    p.add_argument("template")
    p.add_argument("values_json", help="Object of name -> value, or a list of field records")
    p.add_argument("out")
    p.add_argument("--strict", action="store_true", help="Fail when a placeholder has no value")
    p.set_defaults(func=cmd_fill)

    p = sub.add_parser("constants", help="Find values repeated across documents")
    p.add_argument("docx", nargs="+")
    p.add_argument("--min-docs", type=int, default=3)
    p.add_argument("--min-share", type=float, default=0.3)
    p.add_argument("--out", help="Save the analysis JSON here")
    p.add_argument("--merge-into", help="Vocabulary JSON to extend with the exclusion list")
    p.set_defaults(func=cmd_constants)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except TemplaterError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
