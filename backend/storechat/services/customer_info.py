# /storechat/services/customer_info.py

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern

# Best-effort extraction of a customer's name, phone and address from the free
# text they type into the chat (Iraqi Arabic). Each field is resolved by an
# ordered list of rules, first match wins. Nothing here raises on odd input;
# unresolved fields come back as empty strings.

SEGMENT_SEPARATORS = re.compile(r"[،,\n]")

LOCAL_PHONE = r"07\d{8,9}"
INTERNATIONAL_PHONE = r"\+964\s*7\d{8,9}"

# "من"/"في" must start a word (optionally after the conjunction "و"),
# otherwise names such as "أيمن" would be read as an address.
WORD_START = r"(?<![^\s،,و])"

CITY_NAMES = (
    "بغداد", "البصرة", "أربيل", "موصل", "نجف", "كربلاء", "ديالى", "الأنبار",
    "واسط", "ذي قار", "ميسان", "المثنى", "القادسية", "صلاح الدين", "كركوك",
)


@dataclass(frozen=True)
class ExtractionRule:
    name: str
    pattern: Pattern[str]

    def apply(self, text: str) -> str:
        match = self.pattern.search(text)
        return match.group(1).strip() if match else ""


@dataclass(frozen=True)
class CustomerInfo:
    name: str = ""
    phone: str = ""
    address: str = ""


def _rule(name: str, pattern: str) -> ExtractionRule:
    return ExtractionRule(name, re.compile(pattern))


NAME_RULES = (
    _rule("my_name_is", r"اسمي\s+([^،,\n]+)"),
    _rule("name_label", r"الاسم\s*:?\s*([^،,\n]+)"),
    _rule("leading_text", r"^([^،,\n0-9]+?)(?:\s*[،,]|\s*رقم|\s*هاتف|\s*عنوان|\s*(?=\+?\d)|$)"),
)

PHONE_RULES = (
    _rule("my_number", rf"رقمي?\s*:?\s*({LOCAL_PHONE})"),
    _rule("my_phone", rf"هاتفي?\s*:?\s*({LOCAL_PHONE})"),
    _rule("phone_number_label", rf"رقم\s*الهاتف\s*:?\s*({LOCAL_PHONE})"),
    _rule("bare_local", rf"({LOCAL_PHONE})"),
    _rule("bare_international", rf"({INTERNATIONAL_PHONE})"),
)

ADDRESS_RULES = (
    _rule("my_address_is", r"عنواني\s+([^،,\n]+)"),
    _rule("address_label", r"العنوان\s*:?\s*([^،,\n]+)"),
    _rule("i_live_in", r"أسكن\s+في\s+([^،,\n]+)"),
    _rule("from_place", WORD_START + r"من\s+([^،,\n]+)"),
    _rule("in_place", WORD_START + r"في\s+([^،,\n]+)"),
)

CITY_RULES = tuple(
    _rule(f"city:{city}", rf"({re.escape(city)}[^،,\n]*)") for city in CITY_NAMES
)

_LOCAL_PHONE_RE = re.compile(LOCAL_PHONE)
_ANY_PHONE_RE = re.compile(rf"{LOCAL_PHONE}|{INTERNATIONAL_PHONE}")
_CITY_RE = re.compile("|".join(re.escape(city) for city in CITY_NAMES))


def first_match(rules: Iterable[ExtractionRule], text: str) -> str:
    for rule in rules:
        value = rule.apply(text)
        if value:
            return value
    return ""


def split_segments(text: str) -> List[str]:
    return [part.strip() for part in SEGMENT_SEPARATORS.split(text) if part.strip()]


def _fallback_name(segments: List[str]) -> str:
    for segment in segments:
        if not _LOCAL_PHONE_RE.search(segment) and not _CITY_RE.search(segment):
            return segment
    return ""


def _fallback_address(segments: List[str], name: str) -> str:
    for segment in segments:
        if segment != name and not _ANY_PHONE_RE.search(segment) and len(segment) > 3:
            return segment
    return ""


def parse_customer_info(text: Optional[str]) -> CustomerInfo:
    """
    Parses free-form customer details into name, phone and address.

    Example:
        "اسمي أحمد، رقمي 0791234567، وعنواني بغداد الكرادة"
        -> CustomerInfo(name="أحمد", phone="0791234567", address="بغداد الكرادة")
    """
    if not text or not text.strip():
        return CustomerInfo()

    text = text.strip()
    segments = split_segments(text)

    name = first_match(NAME_RULES, text) or _fallback_name(segments)
    phone = first_match(PHONE_RULES, text)
    address = (
        first_match(ADDRESS_RULES, text)
        or first_match(CITY_RULES, text)
        or _fallback_address(segments, name)
    )

    return CustomerInfo(name=name, phone=phone, address=address)
