"""Error taxonomy for provider access.

Request clients raise these; the resilience resolver is the only layer that
turns them into degraded data.
"""


class IndicatorHubError(Exception):
    """Base class for all indicator hub errors."""


class CredentialMissingError(IndicatorHubError):
    """A required provider credential is not configured.

    Raised at startup. Not recoverable without operator intervention.
    """

    def __init__(self, variable: str, hint: str = "") -> None:
        self.variable = variable
        message = f"{variable} not set"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class ProviderError(IndicatorHubError):
    """Recoverable failure talking to an upstream provider."""


class ProviderRequestError(ProviderError):
    """Provider answered with a non-2xx status, or the transport failed.

    A status code of 0 means the request never got a response.
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code} {message}" if status_code else message)


class RequestTimeout(ProviderError):
    """Request exceeded its wall-clock bound."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Request timed out after {timeout_seconds:g}s")


class DataUnusableError(ProviderError):
    """Parsed response lacked the fields we need."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)
