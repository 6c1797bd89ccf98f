"""Commit phase: write the eligible subset of a preview, row by row"""
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.vendor_tool.schemas.csv_import import (
    DuplicateType,
    ImportPolicy,
    ImportPreview,
    ImportResult,
    ImportRow,
    ImportRowStatus,
    RowFailure,
)
from src.vendor_tool.services.import_errors import ImportCommitAborted, ImportRowError

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"


def is_infrastructure_error(exc: BaseException) -> bool:
    """Store failures that make row-level attribution meaningless."""
    if isinstance(exc, (OperationalError, DisconnectionError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def is_eligible(row: ImportRow, policy: ImportPolicy) -> bool:
    if policy.row_numbers is not None and row.row_number not in policy.row_numbers:
        return False
    if row.status == ImportRowStatus.INVALID:
        return False
    if row.status == ImportRowStatus.DUPLICATE:
        return not policy.skip_duplicates
    return True


def select_eligible(preview: ImportPreview, policy: ImportPolicy) -> List[ImportRow]:
    if preview.is_blocked:
        return []
    return [row for row in preview.rows if is_eligible(row, policy)]


def _apply_row(
    db: Session,
    row: ImportRow,
    policy: ImportPolicy,
    writer,
    written: Dict[int, int]
) -> Tuple[str, Optional[int]]:
    if row.status != ImportRowStatus.DUPLICATE:
        return CREATED, writer.create(db, row.canonical_data)

    info = row.duplicate_info
    if not policy.update_existing or info is None:
        return SKIPPED, None

    if info.type == DuplicateType.DATABASE and info.matched_id is not None:
        return UPDATED, writer.update(db, info.matched_id, row.canonical_data)

    if info.type == DuplicateType.FILE and info.matched_row_number in written:
        return UPDATED, writer.update(db, written[info.matched_row_number], row.canonical_data)

    return SKIPPED, None


def execute_commit(
    db: Session,
    preview: ImportPreview,
    policy: ImportPolicy,
    writer
) -> ImportResult:
    """Persist eligible rows and report per-row outcomes.

    Each row is written inside its own SAVEPOINT, so a failing row leaves no
    partial record and does not stop the batch. Store-level failures roll the
    whole batch back and raise ``ImportCommitAborted``.
    """
    result = ImportResult()
    eligible = select_eligible(preview, policy)
    written: Dict[int, int] = {}

    try:
        for row in eligible:
            try:
                with db.begin_nested():
                    outcome, record_id = _apply_row(db, row, policy, writer, written)
            except (ImportRowError, SQLAlchemyError) as e:
                if is_infrastructure_error(e):
                    raise
                message = getattr(e, "orig", None) or e
                logger.warning(f"Import row {row.row_number} failed: {message}")
                result.failed += 1
                result.errors.append(RowFailure(row_number=row.row_number, error=str(message)))
                continue

            if outcome == CREATED:
                result.created += 1
                result.created_ids.append(record_id)
                written[row.row_number] = record_id
            elif outcome == UPDATED:
                result.updated += 1
                written[row.row_number] = record_id
            else:
                result.skipped += 1

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Import commit for {preview.entity_type} aborted")
        raise ImportCommitAborted(f"Import aborted, no rows were saved: {e}") from e
    except Exception:
        db.rollback()
        raise

    result.success = result.failed == 0
    logger.info(
        f"Import commit for {preview.entity_type}: eligible={len(eligible)}, created={result.created}, "
        f"updated={result.updated}, skipped={result.skipped}, failed={result.failed}"
    )
    return result
