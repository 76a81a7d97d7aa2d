"""
errors.py - Exception types for the offline submission queue
"""


class ReliefSyncError(Exception):
    """Base class for all queue and submission errors."""


class StoreUnavailableError(ReliefSyncError):
    """The local store could not be read at all."""


class PayloadValidationError(ReliefSyncError, ValueError):
    """A submission payload failed validation before being queued."""


class BackendNotConfiguredError(ReliefSyncError):
    """Backend URL or API key is missing."""


class SubmissionError(ReliefSyncError):
    """A remote submission step failed."""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status


class TransientRemoteError(SubmissionError):
    """Network error, timeout or 5xx; worth retrying on the next drain."""


class UploadError(SubmissionError):
    """The media store rejected a binary upload."""


class DuplicateObjectError(UploadError):
    """An object already exists at the requested upload path."""


class RecordInsertError(SubmissionError):
    """The record service rejected an insert."""
