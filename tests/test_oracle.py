import json

import pytest

from templater.documents.docx.errors import OracleCountMismatch
from templater.tagging.oracle import (
    LLMSuggestionOracle,
    align_suggestions,
    annotate,
    constants_prompt,
    parse_oracle_response,
)


def test_parse_fenced_reply():
    content = '```json\n["Data:", "{{issueDate}}"]\n```'
    assert parse_oracle_response(content) == ["Data:", "{{issueDate}}"]


def test_parse_truncated_reply():
    assert parse_oracle_response('["a", "b", "unterminat') == ["a", "b"]


def test_parse_falls_back_to_string_literals():
    assert parse_oracle_response('["a", "b" oops]') == ["a", "b"]


@pytest.mark.parametrize("content", ["", "no array here", "[]  trailing"])
def test_parse_unusable_reply(content):
    parsed = parse_oracle_response(content)
    assert parsed in (None, [])


def test_align_pads_with_originals_and_warns(capsys):
    assert align_suggestions(["a", "b", "c"], ["x"]) == ["x", "b", "c"]
    assert "[TEMPLATER-WARN]" in capsys.readouterr().err


def test_align_truncates_and_ignores_non_strings():
    assert align_suggestions(["a", "b"], ["x", "y", "z"]) == ["x", "y"]
    assert align_suggestions(["a", "b", "c"], ["x", 5, None]) == ["x", "b", "c"]
    assert align_suggestions(["a"], None) == ["a"]


def test_align_strict_mode_raises():
    with pytest.raises(OracleCountMismatch) as excinfo:
        align_suggestions(["a", "b"], ["x"], strict=True)
    assert excinfo.value.expected == 2
    assert excinfo.value.received == 1


def test_annotate_adds_label_context():
    assert annotate({"text": "1500 kg", "label": "Masa:"}) == '1500 kg [after: "Masa:"]'
    assert annotate({"text": "1500 kg", "label": None}) == "1500 kg"


def test_oracle_batches_and_aligns():
    calls = []
    replies = [json.dumps(["{{a}}", "two"]), "```json\n[\"{{c}}\"]\n```"]

    def fake_call(prompt, system):
        calls.append((prompt, system))
        return replies[len(calls) - 1]

    oracle = LLMSuggestionOracle(batch_size=2, call=fake_call)
    items = [{"text": t, "label": None} for t in ("one", "two", "three")]
    assert oracle.suggest(items) == ["{{a}}", "two", "{{c}}"]
    assert len(calls) == 2
    assert '"one"' in calls[0][0]
    assert "camelCaseTag" in calls[0][1]


def test_oracle_unparseable_reply_keeps_originals():
    oracle = LLMSuggestionOracle(call=lambda prompt, system: "sorry, I cannot help")
    assert oracle.suggest([{"text": "one"}, {"text": "two"}]) == ["one", "two"]


def test_oracle_strict_mode():
    oracle = LLMSuggestionOracle(call=lambda prompt, system: '["only one"]', strict=True)
    with pytest.raises(OracleCountMismatch):
        oracle.suggest([{"text": "one"}, {"text": "two"}])


def test_constants_are_listed_in_the_system_prompt(vocabulary):
    seen = []

    def fake_call(prompt, system):
        seen.append(system)
        return '["LEAN CUSTOMS B.V."]'

    oracle = LLMSuggestionOracle(call=fake_call, constants=vocabulary.constants)
    oracle.suggest([{"text": "LEAN CUSTOMS B.V."}])
    assert "Known constant values" in seen[0]
    assert '"MARLOG CAR HANDLING BV"' in seen[0]


def test_constants_prompt_is_capped_and_skips_short_values():
    values = ["NL"] + [f"CONSTANT {i}" for i in range(80)]
    section = constants_prompt(values)
    assert '"NL"' not in section
    assert '"CONSTANT 0"' in section
    assert '"CONSTANT 49"' in section
    assert '"CONSTANT 50"' not in section
    assert constants_prompt([]) == ""
    assert "Known constant values" not in LLMSuggestionOracle(call=lambda p, s: "[]").system_prompt
