"""Application error taxonomy.

Every error carries the HTTP status and a stable ``error_code`` the API layer
reports, so callers can tell "try again later" apart from "misconfigured".
"""


class AppError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class ConfigurationError(AppError):
    """The service is misconfigured (e.g. no API credentials). Never retried."""

    status_code = 500
    error_code = "misconfigured"


class RemoteServiceError(AppError):
    """A call to the upstream AI provider failed."""

    status_code = 502
    error_code = "remote_error"

    def __init__(self, message: str, upstream_status: int = 0):
        super().__init__(message)
        self.upstream_status = upstream_status


class NonRetryableRemoteError(RemoteServiceError):
    """The provider rejected the credential or authorization (HTTP 401-class)."""

    status_code = 502
    error_code = "credentials_rejected"


class RetryableRemoteError(RemoteServiceError):
    """Transient provider failure: timeout, 5xx, 429, or a network error."""

    status_code = 503
    error_code = "temporarily_unavailable"


class ServiceBusyError(AppError):
    """The throttle signal is raised; new work is refused until load drops."""

    status_code = 503
    error_code = "system_busy"


class InvalidInputError(AppError):
    """The caller's input cannot be processed (e.g. empty audio or a blank transcript)."""

    status_code = 400
    error_code = "invalid_input"
