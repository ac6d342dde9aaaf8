"""Decide which merged tokens are template variables.

Two detection paths run in order, first match wins:

1. direct shape: the token text alone matches a known value shape
   (VIN, MRN, dates, money, postal codes, containers, EORI, names, addresses);
2. label guided: the token's preceding label maps to a tag through the
   vocabulary's ordered label rules.

Constants from the vocabulary are never variables, whichever path matched.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Iterable, List, Optional, Pattern, Sequence, Set, Tuple

from templater.config import dbg
from templater.tagging.vocabulary import Vocabulary
from .models import Category, Field, Token
from .xml_text import contains_tag_delimiter

_UPPER = "A-ZĄĆĘŁŃÓŚŹŻÄÖÜ"
_LOWER = "a-ząćęłńóśźżäöüß"
_VIN = r"[A-HJ-NPR-Z0-9]{17}"

DIRECT_SHAPES: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("vinNumber", re.compile(rf"^{_VIN}$")),
    ("mrnNumber", re.compile(r"^\d{2}[A-Z]{2}[A-Z0-9]{14,}$")),
    ("issueDate", re.compile(r"^\d{2}[-./]\d{2}[-./]\d{4}$")),
    ("issueDate", re.compile(r"^\d{4}[-./]\d{2}[-./]\d{2}$")),
    ("amount", re.compile(r"^\d{1,3}(?:\.\d{3})*,\d{2}\s*(?:EUR|PLN|USD)?$")),
    ("amount", re.compile(r"^(?:EUR|PLN|USD)\s*\d")),
    ("postalCode", re.compile(r"^\d{2}-\d{3}$")),
    ("postalCode", re.compile(r"^\d{4}\s?[A-Z]{2}$")),
    ("containerVin", re.compile(rf"^[A-Z]{{4}}\d{{7}}\s*/\s*{_VIN}$")),
    ("containerNumber", re.compile(r"^[A-Z]{4}\d{7}$")),
    ("eoriNumber", re.compile(r"^[A-Z]{2}\d{10,15}$")),
)
PERSON_NAME_RE = re.compile(rf"^[{_UPPER}]{{2,}}(?:\s+[{_UPPER}]{{2,}}){{1,2}}$")
ADDRESS_SHAPES: Tuple[Pattern[str], ...] = (
    re.compile(rf"^(?:ul\.|UL\.)?\s*[{_UPPER}][{_LOWER}]+\s+\d+"),
    re.compile(rf"^[{_UPPER}]+\s+\d+[A-Z]?/?\d*$"),
)
ADDRESS_MAX = 25

TAG_CATEGORIES = {
    "vinNumber": Category.VEHICLE,
    "mrnNumber": Category.CUSTOMS,
    "issueDate": Category.DATES,
    "amount": Category.FINANCIAL,
    "postalCode": Category.ADDRESS,
    "containerVin": Category.TRANSPORT,
    "containerNumber": Category.TRANSPORT,
    "eoriNumber": Category.CUSTOMS,
    "personName": Category.PERSON,
    "address": Category.ADDRESS,
    "grossWeight": Category.TRANSPORT,
    "exporterName": Category.EXPORTER,
    "referenceNumber": Category.DOCUMENTS,
}

# keyword fallback for tags coming from the suggestion oracle, checked in order
_KEYWORD_CATEGORIES: Tuple[Tuple[Tuple[str, ...], Category], ...] = (
    (("exporter", "sender", "consignor"), Category.EXPORTER),
    (("vin", "vehicle", "car"), Category.VEHICLE),
    (("mrn", "eori", "customs", "tariff", "declaration"), Category.CUSTOMS),
    (("date",), Category.DATES),
    (("amount", "value", "price", "vat", "duty", "total"), Category.FINANCIAL),
    (("container", "vessel", "booking", "shipment", "transport", "weight"), Category.TRANSPORT),
    (("address", "city", "postal", "street", "country"), Category.ADDRESS),
    (("name", "owner", "buyer", "declarant", "person"), Category.PERSON),
    (("number", "reference", "permit", "invoice"), Category.DOCUMENTS),
)
_SUFFIX_RE = re.compile(r"_\d+$")


def category_for_tag(tag: str) -> Category:
    base = _SUFFIX_RE.sub("", tag)
    if base in TAG_CATEGORIES:
        return TAG_CATEGORIES[base]
    lowered = base.lower()
    for keywords, category in _KEYWORD_CATEGORIES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return Category.OTHER


class TagAllocator:
    """Hand out unique tag names: ``amount``, ``amount_2``, ``amount_3`` ..."""

    def __init__(self, existing: Iterable[str] = ()) -> None:
        self.used: Set[str] = set(existing)

    def allocate(self, base: str) -> str:
        if base not in self.used:
            self.used.add(base)
            return base
        n = 2
        while f"{base}_{n}" in self.used:
            n += 1
        tag = f"{base}_{n}"
        self.used.add(tag)
        return tag


class VariableClassifier:
    def __init__(
        self,
        vocabulary: Optional[Vocabulary] = None,
        direct_shapes: bool = True,
        label_rules: bool = True,
    ) -> None:
        self.vocabulary = vocabulary or Vocabulary()
        self.use_direct_shapes = direct_shapes
        self.use_label_rules = label_rules

    def is_constant(self, text: str) -> bool:
        return self.vocabulary.is_constant(text)

    def is_candidate(self, token: Token) -> bool:
        text = token.text
        return bool(text) and not token.is_label and not contains_tag_delimiter(text)

    def _excluded_name(self, text: str) -> bool:
        return any(excluded in text for excluded in self.vocabulary.person_name_exclusions)

    def match_shape(self, text: str) -> Optional[str]:
        for tag, pattern in DIRECT_SHAPES:
            if pattern.match(text):
                return tag
        if PERSON_NAME_RE.match(text) and not self._excluded_name(text):
            return "personName"
        if ADDRESS_SHAPES[0].match(text):
            return "address"
        if ADDRESS_SHAPES[1].match(text) and len(text) < ADDRESS_MAX:
            return "address"
        return None

    def match_label(self, text: str, label: Optional[str]) -> Optional[Tuple[str, Category]]:
        if not label:
            return None
        for rule in self.vocabulary.label_rules:
            if rule.matches(label, text):
                category = Category(rule.category) if rule.category else category_for_tag(rule.tag)
                return rule.tag, category
        return None

    def classify(self, token: Token) -> Optional[Field]:
        """Return a Field carrying the *base* tag, or None when not a variable."""
        if not self.is_candidate(token):
            return None
        text = token.text
        if self.is_constant(text):
            return None

        resolved: Optional[Tuple[str, Category]] = None
        if self.use_direct_shapes:
            tag = self.match_shape(text)
            if tag:
                resolved = (tag, category_for_tag(tag))
        if resolved is None and self.use_label_rules:
            resolved = self.match_label(text, token.label_text)
        if resolved is None:
            return None

        tag, category = resolved
        return Field(
            tag=tag,
            category=category,
            original_value=text,
            source_token=token,
            formatting=token.runs[0].formatting,
        )

    def classify_tokens(
        self,
        tokens: Sequence[Token],
        allocator: Optional[TagAllocator] = None,
    ) -> List[Field]:
        allocator = allocator or TagAllocator()
        fields: List[Field] = []
        for token in tokens:
            found = self.classify(token)
            if found is None:
                continue
            fields.append(replace(found, tag=allocator.allocate(found.tag)))
        dbg(f"Classified {len(fields)} of {len(tokens)} tokens as variables")
        return fields
