"""
Upload Errors

Base exception for the upload module. Every collaborator error carries an
ErrorKind so the pipeline can turn it into item state without guessing.
"""

from upload.constants import ErrorKind


class UploadError(Exception):
    """
    Base exception for upload-related errors.

    Attributes:
        kind: Classification used for the item's error_kind
    """

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.TRANSFER_FAILED):
        super().__init__(message)
        self.kind = kind


class AuthRequiredError(UploadError):
    """Raised synchronously by enqueue when there is no session or token"""

    def __init__(self, message: str = "Must be authenticated to upload"):
        super().__init__(message, kind=ErrorKind.AUTH_REQUIRED)


class InvalidFileError(UploadError):
    """Source file missing, unreadable or empty"""

    def __init__(self, message: str):
        super().__init__(message, kind=ErrorKind.INVALID_FILE)
