"""CSV import schemas with preview and confirmation support"""
import enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class ImportRowStatus(str, enum.Enum):
    VALID = "valid"
    WARNING = "warning"
    INVALID = "invalid"
    DUPLICATE = "duplicate"


class DuplicateType(str, enum.Enum):
    DATABASE = "database"
    FILE = "file"


class RawRow(BaseModel):
    row_number: int
    values: Dict[str, str]
    extra_cells: List[str] = []


class FieldIssue(BaseModel):
    field: str
    message: str
    value: Optional[str] = None


class DuplicateInfo(BaseModel):
    type: DuplicateType
    matched_email: Optional[str] = None
    matched_row_number: Optional[int] = None
    matched_id: Optional[int] = None
    match_kind: Optional[str] = None


class ImportRow(BaseModel):
    row_number: int
    original_data: Dict[str, str]
    canonical_data: Dict[str, Any]
    status: ImportRowStatus
    errors: List[FieldIssue] = []
    warnings: List[FieldIssue] = []
    duplicate_info: Optional[DuplicateInfo] = None

    @property
    def is_importable(self) -> bool:
        return self.status in (ImportRowStatus.VALID, ImportRowStatus.WARNING)


class ImportPreviewStats(BaseModel):
    total: int = 0
    valid: int = 0
    invalid: int = 0
    warnings: int = 0
    duplicates: int = 0


class ImportPreview(BaseModel):
    session_id: Optional[str] = None
    entity_type: str
    file_name: str
    headers: List[str]
    expected_headers: List[str]
    header_mappings: Dict[str, str]
    unmapped_headers: List[str] = []
    missing_required_headers: List[str] = []
    rows: List[ImportRow] = []
    stats: ImportPreviewStats = Field(default_factory=ImportPreviewStats)

    @property
    def is_blocked(self) -> bool:
        return bool(self.missing_required_headers)


class ImportPolicy(BaseModel):
    skip_duplicates: bool = True
    update_existing: bool = False
    row_numbers: Optional[List[int]] = None


class ImportConfirmRequest(ImportPolicy):
    session_id: str


class RowFailure(BaseModel):
    row_number: int
    error: str


class ImportResult(BaseModel):
    success: bool = False
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[RowFailure] = []
    created_ids: List[int] = []

    @property
    def total_processed(self) -> int:
        return self.created + self.updated + self.skipped + self.failed


class ImportSessionState(BaseModel):
    session_id: str
    entity_type: str
    step: str
    error: Optional[str] = None
    file_name: Optional[str] = None
    vendor_id: Optional[int] = None
    can_confirm: bool = False
    stats: Optional[ImportPreviewStats] = None
    missing_required_headers: List[str] = []
    result: Optional[ImportResult] = None
