import pathlib
import sys

import pytest
from dotenv import load_dotenv

load_dotenv(override=False)

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from templater.config import DEFAULT_VOCABULARY_PATH
from templater.documents.docx.xml_text import escape_text
from templater.tagging.vocabulary import load_vocabulary

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"


def run_xml(item) -> str:
    """``"text"`` or ``("text", "<w:rPr>...</w:rPr>")`` -> ``<w:r>`` markup."""
    if isinstance(item, str):
        text, rpr = item, ""
    else:
        text, rpr = item
    return f'<w:r>{rpr}<w:t xml:space="preserve">{escape_text(text)}</w:t></w:r>'


def build_document(*paragraphs) -> str:
    """One argument per paragraph, each a list of run specs."""
    body = "".join("<w:p>" + "".join(run_xml(r) for r in runs) + "</w:p>" for runs in paragraphs)
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        f'<w:document xmlns:w="{W_NS}"><w:body>{body}</w:body></w:document>'
    )


@pytest.fixture
def make_document():
    return build_document


@pytest.fixture(scope="session")
def vocabulary():
    return load_vocabulary(DEFAULT_VOCABULARY_PATH)
