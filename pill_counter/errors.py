"""Error taxonomy shared by the detection pipeline and the HTTP layer."""

from typing import Optional


class PillCountError(Exception):
    """Base class; ``status_code`` is what the HTTP layer reports."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(PillCountError):
    """Missing or malformed image; raised before any backend is contacted."""

    status_code = 400


class ConfigurationError(PillCountError):
    """Required credentials are missing. Fatal for the request."""

    status_code = 500


class BackendUnavailable(PillCountError):
    """
    Transient backend failure: rate limit, quota, network error.

    ``retryable`` tells the caller whether backing off and retrying can help
    (429, network) or not (402 quota/billing).
    """

    status_code = 503

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message, status_code)
        self.retryable = retryable


class BackendError(PillCountError):
    """Backend answered with a structured failure."""

    status_code = 500


class ParseError(PillCountError):
    """Backend answered, but not in the expected shape."""

    status_code = 500
