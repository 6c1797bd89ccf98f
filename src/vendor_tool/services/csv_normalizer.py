"""CSV normalization utilities: header mapping and cell value parsing"""
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


ACCEPTED_DATE_FORMATS = ("YYYY-MM-DD", "DD/MM/YYYY")

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_LOCAL_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_GROUPED_NUMBER_RE = re.compile(r"^[-+]?\d{1,3}(,\d{3})+(\.\d+)?$")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class HeaderMapResult:
    mapping: Dict[str, str] = field(default_factory=dict)
    unmapped: List[str] = field(default_factory=list)
    missing_required: List[str] = field(default_factory=list)


def normalize_to_halfwidth(text: str) -> str:
    return unicodedata.normalize("NFKC", text)


def normalize_column_name(name: str) -> str:
    normalized = normalize_to_halfwidth(name)
    normalized = normalized.casefold()
    normalized = re.sub(r"[\W_]+", "", normalized)
    return normalized


def build_alias_index(fields: Iterable) -> Dict[str, str]:
    """Normalized header text -> canonical key, for a rule set's fields.

    The canonical key itself always counts as an alias.
    """
    index: Dict[str, str] = {}
    for spec in fields:
        for alias in (spec.key, *spec.aliases):
            index.setdefault(normalize_column_name(alias), spec.key)
    return index


def map_column_name(raw_name: str, alias_index: Mapping[str, str]) -> Optional[str]:
    normalized = normalize_column_name(raw_name)
    if not normalized:
        return None
    return alias_index.get(normalized)


def map_headers(headers: List[str], schema) -> HeaderMapResult:
    """Map original headers to canonical keys and report missing required ones.

    Unrecognized headers map to themselves. When two headers resolve to the
    same canonical key the first one wins.
    """
    alias_index = build_alias_index(schema.fields)
    result = HeaderMapResult()
    taken = set()

    for header in headers:
        canonical = map_column_name(header, alias_index)
        if canonical and canonical not in taken:
            result.mapping[header] = canonical
            taken.add(canonical)
        else:
            result.mapping[header] = header
            result.unmapped.append(header)

    for spec in schema.fields:
        if spec.required and spec.key not in taken:
            result.missing_required.append(spec.key)

    for group in schema.required_any:
        if not any(key in taken for key in group):
            result.missing_required.append(" or ".join(group))

    return result


def normalize_email(email: str) -> str:
    email = normalize_to_halfwidth(email)
    return email.strip().lower()


def normalize_space(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", normalize_to_halfwidth(text)).strip()


def name_key(name: Optional[str]) -> str:
    """Comparison form of a person's name: collapsed whitespace, case-folded."""
    if not name:
        return ""
    return normalize_space(name).casefold()


def names_match(candidate: Optional[str], stored: Optional[str], mode: str = "fuzzy") -> bool:
    """Compare two person names under a strictness mode.

    ``exact`` needs equal normalized names; ``fuzzy`` also accepts substring
    containment in either direction; ``off`` never matches.
    """
    a, b = name_key(candidate), name_key(stored)
    if mode == "off" or not a or not b:
        return False
    if a == b:
        return True
    return mode == "fuzzy" and (a in b or b in a)


def normalize_text(text: str) -> str:
    return normalize_to_halfwidth(text).strip()


def parse_date(value: str) -> Optional[date]:
    """Parse ISO YYYY-MM-DD, then DD/MM/YYYY. Returns None if neither fits."""
    value = normalize_text(value)
    if not value:
        return None

    match = _ISO_DATE_RE.match(value)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    match = _LOCAL_DATE_RE.match(value)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    return None


def parse_decimal(value: str) -> Optional[Decimal]:
    value = normalize_text(value)
    if not value:
        return None
    if "," in value:
        # only thousands separators; "450,50" is not read as 45050
        if not _GROUPED_NUMBER_RE.match(value):
            return None
        value = value.replace(",", "")
    try:
        number = Decimal(value)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def normalize_choice(
    value: str,
    choices: Iterable[str],
    aliases: Optional[Mapping[str, str]] = None,
    case: str = "lower"
) -> Tuple[Optional[str], bool]:
    """Resolve a cell to one of ``choices``.

    Returns (canonical, via_alias). ``via_alias`` is True when the value was
    only recognized through the alias table.
    """
    cleaned = normalize_space(value)
    cleaned = cleaned.upper() if case == "upper" else cleaned.lower()
    cleaned = cleaned.replace(" ", "_").replace("-", "_")

    if cleaned in choices:
        return cleaned, False

    if aliases and cleaned in aliases:
        return aliases[cleaned], True

    return None, False


def format_accepted_dates() -> str:
    return " or ".join(ACCEPTED_DATE_FORMATS)
