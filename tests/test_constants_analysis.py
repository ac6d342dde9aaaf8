import docx
import pytest

from templater.tagging.constants_analysis import (
    analyze_corpus,
    analyze_paths,
    categorize_value,
    collect_values,
    discover_documents,
)


@pytest.mark.parametrize(
    "value, kind",
    [
        ("WVWZZZ1JZXW000001", "VIN"),
        ("12.03.2025", "DATE"),
        ("1.234,56 EUR", "MONEY"),
        ("ABC-12345-XY", "REFERENCE"),
        ("25NL7PU1EYHFR8FDR4", "MRN"),
        ("87032490", "CODE"),
        ("PL12345678", "VAT_NUMBER"),
        ("00-950", "POSTAL_CODE"),
        ("Jan Kowalski", "PERSON_NAME"),
        ("LEAN CUSTOMS", "CAPS_NAME"),
        ("Marszałkowska 12", "ADDRESS"),
        ("hello", "TEXT"),
    ],
)
def test_categorize_value(value, kind):
    assert categorize_value(value) == kind


def test_collect_values_skips_single_characters(make_document):
    markup = make_document([" LEAN CUSTOMS B.V. ", "x", "A &amp; B"])
    assert collect_values(markup) == ["LEAN CUSTOMS B.V.", "A &amp; B"]


def _corpus(make_document):
    vins = [
        "WVWZZZ1JZXW000001",
        "WVWZZZ1JZXW000002",
        "WVWZZZ1JZXW000003",
        "WVWZZZ1JZXW000004",
        "WVWZZZ1JZXW000005",
    ]
    docs = {}
    for i, vin in enumerate(vins):
        paragraphs = [["LEAN CUSTOMS B.V."], ["VIN:", vin], ["LEAN CUSTOMS B.V."]]
        if i < 2:
            paragraphs.append(["Hamburg Hafen"])
        if i == 0:
            paragraphs.append(["only once"])
        docs[f"doc{i}.docx"] = make_document(*paragraphs)
    return docs


def test_analyze_corpus(make_document):
    analysis = analyze_corpus(_corpus(make_document))
    assert analysis.total_documents == 5

    constants = {c.value: c for c in analysis.constants}
    assert constants["LEAN CUSTOMS B.V."].occurrences == 5
    assert constants["VIN:"].occurrences == 5
    # 2 of 5 documents is above the share threshold
    assert "Hamburg Hafen" in constants
    assert analysis.constants[0].occurrences == 5

    assert sorted(v.value for v in analysis.variables) == sorted(
        f"WVWZZZ1JZXW00000{i}" for i in range(1, 6)
    )
    assert analysis.variable_types() == {"VIN": 5}
    assert "only once" not in constants
    assert analysis.exclusion_list[:2] == ["LEAN CUSTOMS B.V.", "VIN:"]


def test_analysis_dict_shape(make_document):
    payload = analyze_corpus(_corpus(make_document)).to_dict()
    assert payload["analyzedFiles"] == 5
    assert payload["totalVariables"] == 5
    assert payload["constants"][0]["percentage"] == 100
    assert "LEAN CUSTOMS B.V." in payload["exclusionList"]


def test_thresholds_are_configurable(make_document):
    analysis = analyze_corpus(_corpus(make_document), min_docs=10, min_share=0.9)
    assert [c.value for c in analysis.constants] == ["LEAN CUSTOMS B.V.", "VIN:"]


def test_analyze_paths_reads_docx_and_skips_broken(tmp_path, capsys):
    for i in range(2):
        document = docx.Document()
        document.add_paragraph("LEAN CUSTOMS B.V.")
        document.add_paragraph(f"WVWZZZ1JZXW00000{i}")
        document.save(tmp_path / f"doc{i}.docx")
    docx.Document().save(tmp_path / "doc0_szablon.docx")
    (tmp_path / "broken.docx").write_text("not a zip", encoding="utf-8")

    paths = discover_documents(tmp_path)
    assert [p.name for p in paths] == ["broken.docx", "doc0.docx", "doc1.docx"]

    analysis = analyze_paths(paths)
    assert analysis.total_documents == 2
    assert "broken.docx" in capsys.readouterr().err
    assert "LEAN CUSTOMS B.V." in analysis.exclusion_list
