"""Custom exception classes for the estimate import service."""


class EstimateImportError(Exception):
    """Base exception for all estimate import errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class MalformedDocumentError(EstimateImportError):
    """Raised when content cannot be interpreted as the expected format at all."""

    def __init__(self, message: str, file_type: str = None, original_error: Exception = None):
        super().__init__(message, original_error)
        self.file_type = file_type


class UnsupportedFileTypeError(EstimateImportError):
    """Raised when a file type or extension names neither supported format."""

    pass


class TenantScopeError(EstimateImportError):
    """Raised when a shop identifier is required but missing."""

    pass


class ReconciliationError(EstimateImportError):
    """Raised when a customer, vehicle or job store operation fails."""

    def __init__(self, message: str, stage: str, original_error: Exception = None):
        super().__init__(message, original_error)
        self.stage = stage


class DuplicateImportError(EstimateImportError):
    """Raised when a caller-supplied import id is already in the ledger."""

    pass
