"""Exceptions raised by the CSV import pipeline"""


class ImportPipelineError(Exception):
    """Base class for import failures surfaced to the caller"""


class ImportFileError(ImportPipelineError):
    """The uploaded file cannot be read as a CSV with a header row"""


class ImportContextError(ImportPipelineError):
    """The scoping context (vendor, reporting period) is missing or unknown"""


class ImportSessionError(ImportPipelineError):
    """Unknown or expired import session"""


class ImportStateError(ImportPipelineError):
    """The requested step is not allowed from the session's current state"""


class ImportRowError(ImportPipelineError):
    """A single row could not be written; the rest of the batch continues"""


class ImportCommitAborted(ImportPipelineError):
    """The store failed underneath the commit; nothing from this batch was kept"""
