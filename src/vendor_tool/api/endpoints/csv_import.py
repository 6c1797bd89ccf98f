"""CSV import endpoints with preview and confirmation workflow"""
from typing import Optional

from fastapi import APIRouter, UploadFile, File, Form, HTTPException
from fastapi.responses import Response

from src.vendor_tool.api.deps import DbSession, WriteUser, CurrentUser
from src.vendor_tool.config import settings
from src.vendor_tool.schemas.csv_import import (
    ImportConfirmRequest,
    ImportPolicy,
    ImportPreview,
    ImportResult,
    ImportSessionState,
)
from src.vendor_tool.services.csv_import import (
    close_import_session,
    confirm_import,
    decode_csv_content,
    describe_session,
    generate_error_csv,
    generate_template,
    get_import_session,
    start_import_session,
)
from src.vendor_tool.services.import_errors import (
    ImportCommitAborted,
    ImportContextError,
    ImportFileError,
    ImportPipelineError,
    ImportSessionError,
    ImportStateError,
)
from src.vendor_tool.services.import_rules import get_schema

router = APIRouter(prefix="/import")

ERROR_STATUS = {
    ImportFileError: 400,
    ImportContextError: 400,
    ImportSessionError: 404,
    ImportStateError: 409,
    ImportCommitAborted: 503,
}


def to_http_error(error: ImportPipelineError) -> HTTPException:
    status = ERROR_STATUS.get(type(error), 400)
    return HTTPException(status_code=status, detail=str(error))


@router.get("/sessions/{session_id}", response_model=ImportSessionState)
async def get_session_state(session_id: str, current_user: CurrentUser):
    try:
        session = get_import_session(session_id)
    except ImportSessionError as e:
        raise to_http_error(e)
    return describe_session(session)


@router.get("/sessions/{session_id}/errors.csv")
async def download_error_csv(session_id: str, current_user: CurrentUser):
    """
    Download the row errors of a preview, plus commit failures once confirmed.
    """
    try:
        session = get_import_session(session_id)
    except ImportSessionError as e:
        raise to_http_error(e)

    return Response(
        content=generate_error_csv(session).encode("utf-8-sig"),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{session.entity_type}-import-errors.csv"'
        }
    )


@router.delete("/sessions/{session_id}", status_code=204)
async def discard_session(session_id: str, current_user: CurrentUser):
    try:
        close_import_session(session_id)
    except ImportSessionError as e:
        raise to_http_error(e)
    return Response(status_code=204)


@router.post("/{entity_type}/preview", response_model=ImportPreview)
async def preview_csv_import(
    entity_type: str,
    db: DbSession,
    current_user: WriteUser,
    file: UploadFile = File(...),
    vendor_id: Optional[int] = Form(None),
    month: Optional[int] = Form(None),
    year: Optional[int] = Form(None)
):
    """
    Validate an upload and classify every row without saving anything.
    Returns header mappings, per-row status and a session_id for confirm.
    """
    if not file.filename or not (file.filename.lower().endswith(".csv") or file.content_type == "text/csv"):
        raise HTTPException(status_code=400, detail="File must be a CSV")

    content = await file.read()
    if len(content) > settings.csv_max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File is too large (limit: {settings.CSV_MAX_UPLOAD_MB}MB). Split it and upload again."
        )

    try:
        csv_content = decode_csv_content(content)
        return start_import_session(
            db,
            csv_content,
            entity_type,
            vendor_id,
            month=month,
            year=year,
            file_name=file.filename,
        )
    except ImportPipelineError as e:
        raise to_http_error(e)


@router.post("/{entity_type}/confirm", response_model=ImportResult)
async def confirm_csv_import(
    entity_type: str,
    db: DbSession,
    current_user: WriteUser,
    request: ImportConfirmRequest
):
    """
    Execute the import for a previewed session.
    Duplicates are skipped unless skip_duplicates is false.
    """
    try:
        session = get_import_session(request.session_id)
        if session.entity_type != entity_type:
            raise ImportStateError(
                f"Session {request.session_id} is a {session.entity_type} import, not {entity_type}"
            )
        policy = ImportPolicy(
            skip_duplicates=request.skip_duplicates,
            update_existing=request.update_existing,
            row_numbers=request.row_numbers,
        )
        return confirm_import(db, request.session_id, policy, current_user)
    except ImportPipelineError as e:
        raise to_http_error(e)


@router.get("/{entity_type}/template")
async def download_template(entity_type: str, current_user: CurrentUser):
    """CSV file holding only the canonical header row"""
    try:
        schema = get_schema(entity_type)
    except ImportContextError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return Response(
        content=generate_template(entity_type).encode("utf-8-sig"),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{schema.template_filename}"'
        }
    )
