from __future__ import annotations


class ApiError(Exception):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        error_class: str,
        retryable: bool,
        http_status: int,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error_class = error_class
        self.retryable = retryable
        self.http_status = http_status


class BackendError(Exception):
    """Raised by backend clients when the storage service rejects or fails a call."""

    def __init__(self, message: str, *, code: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class ConfigError(RuntimeError):
    pass


def validation_error(message: str, *, code: str = "REQ_VALIDATION_FAILED") -> ApiError:
    return ApiError(
        code=code,
        message=message,
        error_class="validation",
        retryable=False,
        http_status=400,
    )
