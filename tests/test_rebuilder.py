import pytest
from docx.oxml import OxmlElement
from docx.oxml.ns import qn

from templater.documents.docx.models import Formatting, Run
from templater.documents.docx.rebuilder import (
    build_run,
    build_run_properties,
    rebuild_body,
    rebuild_document,
    runs_from_metadata,
    runs_to_metadata,
)
from templater.documents.docx.run_extractor import extract_runs

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

FULL = Formatting(
    bold=True,
    italic=False,
    underline=True,
    font_size_half_points=20,
    font_family="Arial",
    color_hex="FF0000",
)


def _summary(runs):
    return [(r.text, r.formatting, r.paragraph_index) for r in runs]


def _tags(el):
    return [child.tag for child in el]


def test_run_properties_in_schema_order():
    rpr = build_run_properties(FULL)
    assert _tags(rpr) == [
        qn("w:rFonts"),
        qn("w:b"),
        qn("w:i"),
        qn("w:color"),
        qn("w:sz"),
        qn("w:szCs"),
        qn("w:u"),
    ]
    assert rpr[0].get(qn("w:ascii")) == rpr[0].get(qn("w:hAnsi")) == "Arial"
    assert rpr[1].get(qn("w:val")) is None
    assert rpr[2].get(qn("w:val")) == "0"
    assert rpr[3].get(qn("w:val")) == "FF0000"
    assert rpr[5].get(qn("w:val")) == "20"
    assert rpr[6].get(qn("w:val")) == "single"


def test_absent_attributes_emit_nothing():
    assert build_run_properties(Formatting()) is None
    run = build_run(Run("x"))
    assert _tags(run) == [qn("w:t")]
    assert run[0].text == "x"
    assert run[0].get(qn("xml:space")) == "preserve"
    rpr = build_run_properties(Formatting(underline=False))
    assert _tags(rpr) == [qn("w:u")]
    assert rpr[0].get(qn("w:val")) == "none"


def test_text_is_escaped():
    markup = rebuild_body([Run("A & <B>")])
    assert "A &amp; &lt;B&gt;" in markup


def test_round_trip_preserves_text_formatting_and_paragraphs():
    runs = [
        Run("MRN:", FULL, 0),
        Run(" 25NL7PU1EYHFR8FDR4", Formatting(font_size_half_points=18), 0),
        Run("A & <B>", Formatting(underline=False, italic=True), 1),
        Run("  spaced  ", Formatting(), 1),
    ]
    assert _summary(extract_runs(rebuild_document(runs))) == _summary(runs)


def test_paragraph_gaps_are_kept():
    runs = [Run("first", paragraph_index=0), Run("third", paragraph_index=2)]
    markup = rebuild_document(runs)
    assert markup.count("<w:p/>") == 1
    assert [r.paragraph_index for r in extract_runs(markup)] == [0, 2]


def test_negative_paragraph_index_is_rejected():
    with pytest.raises(ValueError):
        rebuild_document([Run("x", paragraph_index=-1)])


def test_document_has_declaration_and_section_properties():
    markup = rebuild_document([Run("x")])
    assert markup.startswith("<?xml version='1.0' encoding='UTF-8' standalone='yes'?>")
    assert '<w:pgSz w:w="11906" w:h="16838"/>' in markup
    assert "w:sectPr" not in rebuild_document([Run("x")], include_section=False)
    custom = rebuild_document([Run("x")], section_properties=OxmlElement("w:sectPr"))
    assert "<w:sectPr/>" in custom


def test_round_trip_of_extracted_runs():
    body = (
        "<w:p>"
        '<w:r><w:rPr><w:b w:val="false"/><w:u w:val="double"/></w:rPr><w:t>Nr &amp; data:</w:t></w:r>'
        '<w:r><w:rPr><w:rFonts w:hAnsi="Calibri"/><w:color w:val="auto"/><w:sz w:val="18"/></w:rPr>'
        '<w:t xml:space="preserve"> 25NL</w:t><w:br/><w:t xml:space="preserve">7PU1 </w:t></w:r>'
        "</w:p>"
        "<w:p/>"
        "<w:tbl><w:tr><w:tc><w:p>"
        '<w:r><w:rPr><w:i/><w:color w:val="1f4e79"/></w:rPr><w:t>&lt;cell&gt; &quot;x&quot; &apos;y&apos;</w:t></w:r>'
        "</w:p></w:tc></w:tr></w:tbl>"
    )
    original = extract_runs(f'<w:document xmlns:w="{W_NS}"><w:body>{body}</w:body></w:document>')
    assert _summary(original) == [
        ("Nr & data:", Formatting(bold=False, underline=True), 0),
        (" 25NL7PU1 ", Formatting(font_size_half_points=18, font_family="Calibri"), 0),
        ("<cell> \"x\" 'y'", Formatting(italic=True, color_hex="1F4E79"), 2),
    ]
    assert _summary(extract_runs(rebuild_document(original))) == _summary(original)
    assert _summary(extract_runs(rebuild_body(original))) == _summary(original)


def test_rebuild_body_is_standalone():
    runs = [Run("x1", Formatting(bold=True), 0)]
    assert _summary(extract_runs(rebuild_body(runs))) == _summary(runs)


def test_runs_metadata_round_trip():
    runs = [Run("MRN:", FULL, 0), Run("value", Formatting(), 3)]
    rows = runs_to_metadata(runs)
    assert rows[1] == {"text": "value", "formatting": {}, "paragraphIndex": 3}
    assert rows[0]["formatting"]["fontSizeHalfPoints"] == 20
    assert _summary(runs_from_metadata(rows)) == _summary(runs)


def test_legacy_formatting_keys():
    fmt = Formatting.from_dict({"fontSize": "10pt", "color": "#ff0000", "bold": True})
    assert fmt == Formatting(bold=True, font_size_half_points=20, color_hex="FF0000")
    assert Formatting.from_dict({"fontSize": 11}).font_size_half_points == 22
