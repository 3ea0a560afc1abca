"""
Error taxonomy for the gateway.

Every user-visible failure is a GatewayError carrying a stable message and an
HTTP status code. The API layer renders them; components raise them.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for all errors surfaced by the gateway."""

    status_code: int = 500
    error_type: str = "server_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        is_operational: bool = True,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.is_operational = is_operational


class AuthenticationMissing(GatewayError):
    """No credential at all was supplied."""

    status_code = 401
    error_type = "authentication_missing"


class InvalidCredential(GatewayError):
    """A credential was supplied but does not resolve to an identity."""

    status_code = 401
    error_type = "invalid_credential"


class ValidationFailed(GatewayError):
    """Malformed request input, with itemized field errors."""

    status_code = 400
    error_type = "validation_failed"

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class RateLimitExceeded(GatewayError):
    """The caller exhausted its request window."""

    status_code = 429
    error_type = "rate_limit_exceeded"

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderError(GatewayError):
    """Base class for classified LLM backend failures."""

    status_code = 502
    error_type = "provider_error"

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class ProviderNotConfigured(ProviderError):
    status_code = 400
    error_type = "provider_not_configured"


class ProviderAuthFailed(ProviderError):
    status_code = 502
    error_type = "provider_auth_failed"


class ProviderRateLimited(ProviderError):
    status_code = 429
    error_type = "provider_rate_limited"


class ProviderBadRequest(ProviderError):
    status_code = 400
    error_type = "provider_bad_request"


class ProviderServiceError(ProviderError):
    status_code = 503
    error_type = "provider_service_error"


class ToolExecutionFailed(GatewayError):
    """A tool server call failed. Usually captured in-band, not raised."""

    status_code = 502
    error_type = "tool_execution_failed"

    def __init__(self, tool_name: str, message: str, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        self.tool_name = tool_name


class ToolListUnavailable(GatewayError):
    """The tool server could not produce a tool listing."""

    status_code = 503
    error_type = "tool_list_unavailable"


class StoreUnavailable(GatewayError):
    """The shared key-value store could not be reached."""

    status_code = 503
    error_type = "store_unavailable"
