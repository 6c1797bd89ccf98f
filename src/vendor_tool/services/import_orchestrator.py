"""Import workflow state machine: upload -> preview -> importing -> complete.

Every transition is a pure function of the current snapshot and an event;
snapshots are immutable and a new one is returned for each step.
"""
import enum
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from src.vendor_tool.schemas.csv_import import ImportPolicy, ImportPreview, ImportResult
from src.vendor_tool.services.import_errors import ImportStateError


class ImportStep(str, enum.Enum):
    UPLOAD = "upload"
    PREVIEW = "preview"
    IMPORTING = "importing"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ImportState:
    step: ImportStep = ImportStep.UPLOAD
    error: Optional[str] = None
    vendor_id: Optional[int] = None
    file_name: Optional[str] = None
    preview: Optional[ImportPreview] = None
    policy: ImportPolicy = field(default_factory=ImportPolicy)
    result: Optional[ImportResult] = None


@dataclass(frozen=True)
class PreviewReady:
    file_name: Optional[str]
    vendor_id: Optional[int]
    preview: ImportPreview


@dataclass(frozen=True)
class UploadFailed:
    error: str


@dataclass(frozen=True)
class PolicyChanged:
    skip_duplicates: bool = True
    update_existing: bool = False
    row_numbers: Optional[Tuple[int, ...]] = None


@dataclass(frozen=True)
class BackToUpload:
    pass


@dataclass(frozen=True)
class ConfirmRequested:
    pass


@dataclass(frozen=True)
class CommitFinished:
    result: ImportResult


@dataclass(frozen=True)
class CommitFailed:
    error: str


@dataclass(frozen=True)
class Closed:
    pass


def importable_count(preview: Optional[ImportPreview], policy: ImportPolicy) -> int:
    if preview is None or preview.is_blocked:
        return 0
    return sum(
        1 for row in preview.rows
        if row.is_importable and (policy.row_numbers is None or row.row_number in policy.row_numbers)
    )


def can_confirm(state: ImportState) -> bool:
    return state.step == ImportStep.PREVIEW and importable_count(state.preview, state.policy) > 0


def _reject(state: ImportState, event) -> None:
    raise ImportStateError(f"Cannot handle {type(event).__name__} while in '{state.step.value}'")


def transition(state: ImportState, event) -> ImportState:
    if isinstance(event, Closed):
        return ImportState()

    if state.step == ImportStep.UPLOAD:
        if isinstance(event, UploadFailed):
            return replace(state, error=event.error)
        if isinstance(event, PreviewReady):
            if not event.file_name or event.vendor_id is None:
                return replace(state, error="Please select a vendor and upload a CSV file")
            if event.preview.is_blocked:
                missing = ", ".join(event.preview.missing_required_headers)
                return replace(
                    state,
                    error=f"Missing required columns: {missing}. Fix the headers and upload the file again.",
                    vendor_id=event.vendor_id,
                    file_name=event.file_name,
                    preview=None,
                )
            return ImportState(
                step=ImportStep.PREVIEW,
                vendor_id=event.vendor_id,
                file_name=event.file_name,
                preview=event.preview,
            )
        _reject(state, event)

    if state.step == ImportStep.PREVIEW:
        if isinstance(event, PolicyChanged):
            policy = ImportPolicy(
                skip_duplicates=event.skip_duplicates,
                update_existing=event.update_existing,
                row_numbers=list(event.row_numbers) if event.row_numbers is not None else None,
            )
            return replace(state, policy=policy, error=None)
        if isinstance(event, BackToUpload):
            return ImportState(vendor_id=state.vendor_id)
        if isinstance(event, ConfirmRequested):
            if not can_confirm(state):
                return replace(state, error="No valid rows to import")
            return replace(state, step=ImportStep.IMPORTING, error=None)
        _reject(state, event)

    if state.step == ImportStep.IMPORTING:
        if isinstance(event, CommitFinished):
            return replace(state, step=ImportStep.COMPLETE, result=event.result, error=None)
        if isinstance(event, CommitFailed):
            return replace(state, step=ImportStep.PREVIEW, error=event.error)
        _reject(state, event)

    _reject(state, event)
