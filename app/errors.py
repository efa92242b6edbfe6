class ReportError(Exception):
    """Base error carrying the HTTP status it should be rendered with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReportValidationError(ReportError):
    status_code = 400


class UnsupportedContentType(ReportValidationError):
    status_code = 415


class MediaStorageError(ReportError):
    status_code = 500


class StoreError(ReportError):
    status_code = 500


def describe(exc: BaseException) -> str:
    """str(exc), or the class name for exceptions without a message (e.g. timeouts)."""
    return str(exc) or type(exc).__name__
