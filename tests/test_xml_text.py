import pytest

from templater.documents.docx.xml_text import (
    contains_tag_delimiter,
    decode_entities,
    decode_with_offsets,
    escape_text,
    find_tags,
    format_tag,
    iter_text_nodes,
    tags_in_markup,
)


def test_iter_text_nodes_skips_lookalike_elements():
    markup = (
        '<w:p><w:r><w:tab/><w:t xml:space="preserve"> a </w:t><w:t/></w:r>'
        "<w:tbl><w:tr><w:tc><w:p><w:r><w:t>b</w:t></w:r></w:p></w:tc></w:tr></w:tbl></w:p>"
    )
    nodes = list(iter_text_nodes(markup))
    assert [n.text for n in nodes] == [" a ", "", "b"]
    assert [n.index for n in nodes] == [0, 1, 2]
    assert markup[nodes[0].content_start:nodes[0].content_end] == " a "


def test_decode_with_offsets_maps_to_raw_ranges():
    raw = "A&amp;B&#x41;&unknown;"
    text, offsets = decode_with_offsets(raw)
    assert text == "A&BA&unknown;"
    assert raw[offsets[1][0]:offsets[1][1]] == "&amp;"
    assert raw[offsets[3][0]:offsets[3][1]] == "&#x41;"
    assert decode_entities("&lt;&#65;&gt;") == "<A>"


def test_escape_text():
    assert escape_text("""<a href="x">&'""") == "&lt;a href=&quot;x&quot;&gt;&amp;&apos;"


def test_tag_syntax():
    assert format_tag("vinNumber") == "{{vinNumber}}"
    with pytest.raises(ValueError):
        format_tag("1abc")
    assert find_tags("{{a}} and {{ b_2 }} but not {{c d}}") == ["a", "b_2"]
    assert contains_tag_delimiter("x}}")
    assert not contains_tag_delimiter("{x}")


def test_tags_in_markup(make_document):
    markup = make_document(["{{vinNumber}}", "x"], ["{{amount}} {{amount_2}}"])
    assert tags_in_markup(markup) == {"vinNumber", "amount", "amount_2"}


def test_iter_text_nodes_passes_over_comments_cdata_and_instructions():
    markup = (
        '<?xml version="1.0"?><!-- <w:t>old</w:t> -->'
        "<w:p><w:r><w:t>a<!-- x --><![CDATA[<b> & </w:t>]]></w:t></w:r>"
        "<?note <w:t>skip</w:t>?><w:r><w:t>c&amp;d</w:t></w:r></w:p>"
    )
    nodes = list(iter_text_nodes(markup))
    assert [n.text for n in nodes] == ["a<b> & </w:t>", "c&d"]
    assert [n.has_markup for n in nodes] == [True, False]
    assert markup[nodes[1].content_start:nodes[1].content_end] == "c&amp;d"
