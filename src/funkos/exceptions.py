"""Custom exceptions for backend interaction errors."""

from typing import Any, Dict, Optional


class BackendError(Exception):
    """Error raised when the REST backend rejects or fails a request."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
