"""CSV import service with validation, duplicate detection, preview and confirm"""
import csv
import io
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.vendor_tool.config import get_settings
from src.vendor_tool.models.user import User
from src.vendor_tool.schemas.csv_import import (
    ImportPolicy,
    ImportPreview,
    ImportResult,
    ImportSessionState,
    RawRow,
)
from src.vendor_tool.services.audit import log_action
from src.vendor_tool.services.commit_executor import execute_commit
from src.vendor_tool.services.csv_normalizer import map_headers
from src.vendor_tool.services.duplicate_detector import detect_duplicates
from src.vendor_tool.services.import_errors import (
    ImportCommitAborted,
    ImportFileError,
    ImportSessionError,
    ImportStateError,
)
from src.vendor_tool.services.import_orchestrator import (
    Closed,
    CommitFailed,
    CommitFinished,
    ConfirmRequested,
    ImportState,
    ImportStep,
    PolicyChanged,
    PreviewReady,
    can_confirm,
    transition,
)
from src.vendor_tool.services.import_rules import EntitySchema, ImportContext, get_schema
from src.vendor_tool.services.import_store import build_store_index, get_writer, load_import_context
from src.vendor_tool.services.preview_builder import build_preview
from src.vendor_tool.services.row_validator import validate_row

logger = logging.getLogger(__name__)


@dataclass
class ImportSession:
    session_id: str
    entity_type: str
    csv_content: str
    file_name: str
    vendor_id: Optional[int]
    month: Optional[int]
    year: Optional[int]
    state: ImportState
    preview: ImportPreview
    created_at: datetime


IMPORT_SESSIONS: Dict[str, ImportSession] = {}
_SESSIONS_GUARD = threading.Lock()

_SCOPE_LOCKS: Dict[str, threading.Lock] = {}
_SCOPE_LOCKS_GUARD = threading.Lock()


def decode_csv_content(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ImportFileError("Unable to decode CSV file. Save it as UTF-8 and upload it again.") from e


def parse_csv(csv_content: str) -> Tuple[List[str], List[RawRow]]:
    """Split CSV text into trimmed headers and raw rows.

    Row numbers follow spreadsheet numbering: the header is row 1, blank
    records are skipped but still counted.
    """
    if not csv_content.strip():
        raise ImportFileError("CSV file is empty")

    try:
        records = list(csv.reader(io.StringIO(csv_content)))
    except csv.Error as e:
        raise ImportFileError(f"Unable to parse CSV file: {e}") from e

    headers = [h.strip() or f"Column {i + 1}" for i, h in enumerate(records[0])]
    if not any(h.strip() for h in records[0]):
        raise ImportFileError("CSV file has no header row")

    seen = set()
    for header in headers:
        if header.lower() in seen:
            raise ImportFileError(f"Duplicate column header '{header}'")
        seen.add(header.lower())

    rows = []
    for idx, record in enumerate(records[1:]):
        if not any(cell.strip() for cell in record):
            continue
        values = {
            header: record[col].strip() if col < len(record) else ""
            for col, header in enumerate(headers)
        }
        extra = [cell.strip() for cell in record[len(headers):] if cell.strip()]
        rows.append(RawRow(row_number=idx + 2, values=values, extra_cells=extra))

    if not rows:
        raise ImportFileError("CSV file must have a header row and at least one data row")

    return headers, rows


def _run_preview(
    db: Session,
    csv_content: str,
    entity_type: str,
    vendor_id: Optional[int],
    month: Optional[int] = None,
    year: Optional[int] = None,
    file_name: str = "import.csv",
    name_match_mode: Optional[str] = None
) -> Tuple[EntitySchema, ImportContext, ImportPreview]:
    schema = get_schema(entity_type)
    headers, raw_rows = parse_csv(csv_content)
    context = load_import_context(db, schema, vendor_id, month, year, name_match_mode)
    header_map = map_headers(headers, schema)

    if header_map.missing_required:
        logger.info(f"Import preview blocked for {file_name}: missing {header_map.missing_required}")
        preview = build_preview(schema, file_name, headers, header_map, raw_rows, {}, {})
        return schema, context, preview

    validations = {
        row.row_number: validate_row(row, header_map.mapping, schema, context)
        for row in raw_rows
    }
    index = build_store_index(db, schema, context)
    duplicates = detect_duplicates(
        [(row_number, v.canonical_data) for row_number, v in validations.items()],
        schema.identity,
        context.scope_key,
        index,
        context.name_match_mode,
    )
    preview = build_preview(schema, file_name, headers, header_map, raw_rows, validations, duplicates)

    stats = preview.stats
    logger.info(
        f"Import preview {entity_type} {file_name}: total={stats.total}, valid={stats.valid}, "
        f"warnings={stats.warnings}, invalid={stats.invalid}, duplicates={stats.duplicates}"
    )
    return schema, context, preview


def build_import_preview(
    db: Session,
    csv_content: str,
    entity_type: str,
    vendor_id: Optional[int],
    month: Optional[int] = None,
    year: Optional[int] = None,
    file_name: str = "import.csv",
    name_match_mode: Optional[str] = None
) -> ImportPreview:
    """Validate and classify an upload without touching stored data."""
    _, _, preview = _run_preview(db, csv_content, entity_type, vendor_id, month, year, file_name, name_match_mode)
    return preview


def _purge_expired_sessions() -> None:
    ttl = timedelta(minutes=get_settings().IMPORT_SESSION_TTL_MINUTES)
    cutoff = datetime.now() - ttl
    with _SESSIONS_GUARD:
        expired = [sid for sid, s in IMPORT_SESSIONS.items() if s.created_at < cutoff]
        for sid in expired:
            del IMPORT_SESSIONS[sid]
    if expired:
        logger.info(f"Discarded {len(expired)} expired import session(s)")


def start_import_session(
    db: Session,
    csv_content: str,
    entity_type: str,
    vendor_id: Optional[int],
    month: Optional[int] = None,
    year: Optional[int] = None,
    file_name: str = "import.csv"
) -> ImportPreview:
    _purge_expired_sessions()

    preview = build_import_preview(db, csv_content, entity_type, vendor_id, month, year, file_name)
    session_id = str(uuid.uuid4())
    preview.session_id = session_id

    state = transition(ImportState(), PreviewReady(file_name=file_name, vendor_id=vendor_id, preview=preview))
    session = ImportSession(
        session_id=session_id,
        entity_type=entity_type,
        csv_content=csv_content,
        file_name=file_name,
        vendor_id=vendor_id,
        month=month,
        year=year,
        state=state,
        preview=preview,
        created_at=datetime.now(),
    )
    with _SESSIONS_GUARD:
        IMPORT_SESSIONS[session_id] = session

    return preview


def get_import_session(session_id: str) -> ImportSession:
    _purge_expired_sessions()
    with _SESSIONS_GUARD:
        session = IMPORT_SESSIONS.get(session_id)
    if session is None:
        raise ImportSessionError("Invalid or expired session ID. Please upload the file again.")
    return session


def close_import_session(session_id: str) -> None:
    session = get_import_session(session_id)
    session.state = transition(session.state, Closed())
    with _SESSIONS_GUARD:
        IMPORT_SESSIONS.pop(session_id, None)


def describe_session(session: ImportSession) -> ImportSessionState:
    state = session.state
    return ImportSessionState(
        session_id=session.session_id,
        entity_type=session.entity_type,
        step=state.step.value,
        error=state.error,
        file_name=session.file_name,
        vendor_id=session.vendor_id,
        can_confirm=can_confirm(state),
        stats=session.preview.stats,
        missing_required_headers=session.preview.missing_required_headers,
        result=state.result,
    )


def _scope_lock(key: str) -> threading.Lock:
    with _SCOPE_LOCKS_GUARD:
        return _SCOPE_LOCKS.setdefault(key, threading.Lock())


def confirm_import(
    db: Session,
    session_id: str,
    policy: ImportPolicy,
    actor: User
) -> ImportResult:
    """Commit a previewed upload.

    The stored file is validated again against current data, so stale
    previews cannot push rows that have since become invalid or duplicate.
    """
    session = get_import_session(session_id)

    row_numbers = tuple(policy.row_numbers) if policy.row_numbers is not None else None
    state = transition(session.state, PolicyChanged(
        skip_duplicates=policy.skip_duplicates,
        update_existing=policy.update_existing,
        row_numbers=row_numbers,
    ))
    state = transition(state, ConfirmRequested())
    session.state = state
    if state.step != ImportStep.IMPORTING:
        raise ImportStateError(state.error or "Import cannot be confirmed")

    schema = get_schema(session.entity_type)
    lock = _scope_lock(f"{session.entity_type}:{session.vendor_id}")
    with lock:
        try:
            _, context, preview = _run_preview(
                db,
                session.csv_content,
                session.entity_type,
                session.vendor_id,
                session.month,
                session.year,
                session.file_name,
            )
            session.preview = preview
            result = execute_commit(db, preview, state.policy, get_writer(schema, context))
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Import session {session_id} aborted before commit")
            aborted = ImportCommitAborted(f"Import aborted, no rows were saved: {e}")
            session.state = transition(state, CommitFailed(error=str(aborted)))
            raise aborted from e
        except Exception as e:
            session.state = transition(state, CommitFailed(error=str(e)))
            raise

    session.state = transition(state, CommitFinished(result=result))

    log_action(
        db=db,
        actor=actor,
        action=f"{schema.entity_type.upper().replace('-', '_')}_IMPORTED",
        target_type="vendor",
        target_id=session.vendor_id,
        import_session_id=session_id,
        meta={
            "file_name": session.file_name,
            "created": result.created,
            "updated": result.updated,
            "skipped": result.skipped,
            "failed": result.failed,
        }
    )

    return result


def generate_template(entity_type: str) -> str:
    schema = get_schema(entity_type)
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(schema.expected_headers)
    return output.getvalue()


def generate_error_csv(session: ImportSession) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["row_number", "field", "value", "error"])

    for row in session.preview.rows:
        for issue in row.errors:
            writer.writerow([row.row_number, issue.field, issue.value or "", issue.message])

    result = session.state.result
    if result:
        for failure in result.errors:
            writer.writerow([failure.row_number, "", "", failure.error])

    return output.getvalue()
