import pytest

from templater.documents.docx.classifier import TagAllocator, VariableClassifier, category_for_tag
from templater.documents.docx.models import Category, Formatting, Run, Token


def _token(text, label=None, bold=None):
    preceding = Token(runs=[Run(label)], is_label=True) if label else None
    return Token(runs=[Run(text, Formatting(bold=bold))], preceding_label=preceding)


@pytest.mark.parametrize(
    "text, tag",
    [
        ("WVWZZZ1JZXW000001", "vinNumber"),
        ("25NL7PU1EYHFR8FDR4", "mrnNumber"),
        ("12.03.2025", "issueDate"),
        ("2025-03-12", "issueDate"),
        ("1.234,56 EUR", "amount"),
        ("EUR 1500", "amount"),
        ("00-950", "postalCode"),
        ("3011 AB", "postalCode"),
        ("MSCU1234567", "containerNumber"),
        ("MSCU1234567 / WVWZZZ1JZXW000001", "containerVin"),
        ("PL1234567890", "eoriNumber"),
        ("JAN KOWALSKI", "personName"),
        ("ul. Marszałkowska 12", "address"),
    ],
)
def test_direct_shapes(vocabulary, text, tag):
    field = VariableClassifier(vocabulary).classify(_token(text))
    assert field is not None
    assert field.tag == tag
    assert field.original_value == text


def test_person_name_exclusions(vocabulary):
    assert VariableClassifier(vocabulary).classify(_token("STANY ZJEDNOCZONE")) is None


def test_plain_text_is_not_a_variable(vocabulary):
    assert VariableClassifier(vocabulary).classify(_token("Zgłoszenie celne")) is None


def test_label_rule(vocabulary):
    field = VariableClassifier(vocabulary).classify(_token("1500 kg", label="Masa brutto:"))
    assert field.tag == "grossWeight"
    assert field.category is Category.TRANSPORT


def test_label_rule_without_direct_shapes(vocabulary):
    classifier = VariableClassifier(vocabulary, direct_shapes=False)
    assert classifier.classify(_token("WMZ83BR06P3R14626")) is None
    field = classifier.classify(_token("WMZ83BR06P3R14626", label="VIN:"))
    assert field.tag == "vinNumber"
    assert field.category is Category.VEHICLE


def test_constants_are_never_variables(vocabulary):
    classifier = VariableClassifier(vocabulary)
    assert classifier.classify(_token("87032490", label="Wartość:")) is None
    assert classifier.classify(_token("marlog  car handling bv")) is None


def test_labels_and_tagged_text_are_not_candidates(vocabulary):
    classifier = VariableClassifier(vocabulary)
    assert classifier.classify(Token(runs=[Run("12.03.2025")], is_label=True)) is None
    assert classifier.classify(_token("{{vinNumber}}")) is None
    assert classifier.classify(_token("WVWZZZ1JZXW000001 }}")) is None


def test_formatting_comes_from_first_run(vocabulary):
    field = VariableClassifier(vocabulary).classify(_token("12.03.2025", bold=True))
    assert field.formatting.bold is True


def test_classify_tokens_allocates_unique_tags(vocabulary):
    tokens = [_token("1.234,56 EUR"), _token("hello"), _token("99,00 PLN")]
    fields = VariableClassifier(vocabulary).classify_tokens(tokens)
    assert [f.tag for f in fields] == ["amount", "amount_2"]
    assert fields[1].placeholder == "{{amount_2}}"


def test_allocator_skips_existing_names():
    allocator = TagAllocator({"amount", "amount_2"})
    assert allocator.allocate("amount") == "amount_3"
    assert allocator.allocate("vinNumber") == "vinNumber"
    assert allocator.allocate("vinNumber") == "vinNumber_2"


@pytest.mark.parametrize(
    "tag, category",
    [
        ("amount_3", Category.FINANCIAL),
        ("vatAmount", Category.FINANCIAL),
        ("vesselName", Category.TRANSPORT),
        ("ownerName", Category.PERSON),
        ("mrnNumber", Category.CUSTOMS),
        ("somethingElse", Category.OTHER),
    ],
)
def test_category_for_tag(tag, category):
    assert category_for_tag(tag) is category
