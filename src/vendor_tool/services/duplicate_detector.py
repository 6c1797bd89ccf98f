"""Duplicate detection within an upload and against persisted records"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from src.vendor_tool.schemas.csv_import import DuplicateInfo, DuplicateType
from src.vendor_tool.services.csv_normalizer import name_key, names_match
from src.vendor_tool.services.import_rules import Identity

logger = logging.getLogger(__name__)

NAME_MATCH_MODES = ("fuzzy", "exact", "off")


@dataclass(frozen=True)
class StoredRecord:
    id: int
    email: Optional[str] = None
    name: Optional[str] = None
    key: Optional[str] = None


class StoreIndex:
    """Lookup over existing records, built once per preview run."""

    def __init__(self, records: Iterable[StoredRecord]):
        self.by_email: Dict[str, StoredRecord] = {}
        self.by_key: Dict[str, StoredRecord] = {}
        self.by_name: List[Tuple[str, StoredRecord]] = []

        for record in records:
            if record.email:
                self.by_email.setdefault(record.email.lower(), record)
            if record.key:
                self.by_key.setdefault(record.key, record)
            if record.name:
                self.by_name.append((name_key(record.name), record))

    def __len__(self) -> int:
        return len(self.by_email) + len(self.by_key) + len(self.by_name)

    def match(self, identity: Identity, name_mode: str = "fuzzy") -> Tuple[Optional[StoredRecord], Optional[str]]:
        """Return (record, match_kind) for an identity, or (None, None).

        Email and composite keys are authoritative. The name fallback takes
        an exact normalized match before any substring candidate.
        """
        if identity.email:
            record = self.by_email.get(identity.email.lower())
            if record:
                return record, "email"

        if identity.key:
            record = self.by_key.get(identity.key)
            if record:
                return record, "key"

        if identity.name and name_mode != "off":
            target = name_key(identity.name)
            for stored_name, record in self.by_name:
                if stored_name == target:
                    return record, "name"
            if name_mode == "fuzzy":
                for stored_name, record in self.by_name:
                    if names_match(target, stored_name, "fuzzy"):
                        return record, "name_fuzzy"

        return None, None


def detect_duplicates(
    rows: List[Tuple[int, Dict]],
    identify: Callable[[Dict], Identity],
    scope_key: str,
    index: Optional[StoreIndex] = None,
    name_mode: str = "fuzzy"
) -> Dict[int, DuplicateInfo]:
    """Classify duplicate rows.

    ``rows`` are ``(row_number, canonical_data)`` pairs in file order. The
    first pass attributes every repeat to the first row carrying the same
    ``(identity, scope)`` key; the second looks the remaining rows up in the
    store index. Returns duplicate info keyed by row number.
    """
    if name_mode not in NAME_MATCH_MODES:
        raise ValueError(f"name_mode must be one of: {NAME_MATCH_MODES}")

    found: Dict[int, DuplicateInfo] = {}
    identities: Dict[int, Identity] = {}
    seen: Dict[Tuple[str, str], Tuple[int, Identity]] = {}

    for row_number, data in rows:
        identity = identify(data)
        identities[row_number] = identity
        file_key = identity.file_key
        if not file_key:
            continue

        first = seen.get((file_key, scope_key))
        if first is None:
            seen[(file_key, scope_key)] = (row_number, identity)
            continue

        first_row_number, first_identity = first
        found[row_number] = DuplicateInfo(
            type=DuplicateType.FILE,
            matched_row_number=first_row_number,
            matched_email=first_identity.contact_email,
            match_kind="key" if identity.key else "email",
        )

    if index is None:
        return found

    for row_number, _ in rows:
        if row_number in found:
            continue
        record, kind = index.match(identities[row_number], name_mode)
        if record is None:
            continue
        found[row_number] = DuplicateInfo(
            type=DuplicateType.DATABASE,
            matched_id=record.id,
            matched_email=record.email,
            match_kind=kind,
        )

    logger.debug(f"Duplicate detection: {len(found)} of {len(rows)} rows flagged")
    return found
