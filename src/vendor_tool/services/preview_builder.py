"""Preview aggregation: final row status and stats, no I/O"""
from typing import Dict, List, Optional

from src.vendor_tool.schemas.csv_import import (
    DuplicateInfo,
    FieldIssue,
    ImportPreview,
    ImportPreviewStats,
    ImportRow,
    ImportRowStatus,
    RawRow,
)
from src.vendor_tool.services.csv_normalizer import HeaderMapResult
from src.vendor_tool.services.import_rules import EntitySchema
from src.vendor_tool.services.row_validator import RowValidation


def resolve_status(
    errors: List[FieldIssue],
    warnings: List[FieldIssue],
    duplicate_info: Optional[DuplicateInfo]
) -> ImportRowStatus:
    if errors:
        return ImportRowStatus.INVALID
    if duplicate_info is not None:
        return ImportRowStatus.DUPLICATE
    if warnings:
        return ImportRowStatus.WARNING
    return ImportRowStatus.VALID


def compute_stats(rows: List[ImportRow]) -> ImportPreviewStats:
    stats = ImportPreviewStats(total=len(rows))
    for row in rows:
        if row.status == ImportRowStatus.VALID:
            stats.valid += 1
        elif row.status == ImportRowStatus.WARNING:
            stats.warnings += 1
        elif row.status == ImportRowStatus.INVALID:
            stats.invalid += 1
        else:
            stats.duplicates += 1
    return stats


def build_preview(
    schema: EntitySchema,
    file_name: str,
    headers: List[str],
    header_map: HeaderMapResult,
    raw_rows: List[RawRow],
    validations: Dict[int, RowValidation],
    duplicates: Dict[int, DuplicateInfo]
) -> ImportPreview:
    rows: List[ImportRow] = []

    if not header_map.missing_required:
        for raw in raw_rows:
            validation = validations[raw.row_number]
            duplicate_info = duplicates.get(raw.row_number)
            rows.append(ImportRow(
                row_number=raw.row_number,
                original_data=raw.values,
                canonical_data=validation.canonical_data,
                status=resolve_status(validation.errors, validation.warnings, duplicate_info),
                errors=validation.errors,
                warnings=validation.warnings,
                duplicate_info=duplicate_info,
            ))

    return ImportPreview(
        entity_type=schema.entity_type,
        file_name=file_name,
        headers=headers,
        expected_headers=schema.expected_headers,
        header_mappings=header_map.mapping,
        unmapped_headers=header_map.unmapped,
        missing_required_headers=header_map.missing_required,
        rows=rows,
        stats=compute_stats(rows),
    )
