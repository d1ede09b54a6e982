from typing import Any, Optional, Tuple


class ErrorCodes:
    """Stable (code, message) pairs surfaced in error envelopes."""

    SYSTEM_ERROR = (-1000, "System exception")
    SYSTEM_REQUEST_VALIDATION_ERROR = (-1001, "Request parameter verification error")
    API_REQUEST_PARAMS_INVALID = (-2000, "The request parameter is illegal")
    API_REQUEST_FAILED = (-2001, "Request failed")
    API_TOKEN_EXPIRES = (-2002, "Token has expired")
    API_CONTENT_FILTERED = (-2006, "Content has been blocked due to compliance issues")


class APIException(Exception):
    """Base error carrying a numeric code for the response envelope."""

    error = ErrorCodes.SYSTEM_ERROR
    http_status_code = 500

    def __init__(
        self,
        message: Optional[str] = None,
        data: Any = None,
        error: Optional[Tuple[int, str]] = None,
    ):
        errcode, default_message = error or self.error
        self.errcode = errcode
        self.errmsg = message or default_message
        self.data = data
        super().__init__(self.errmsg)

    def compare(self, error: Tuple[int, str]) -> bool:
        return self.errcode == error[0]

    def to_dict(self):
        return {"code": self.errcode, "message": self.errmsg, "data": self.data}


class RequestInvalidError(APIException):
    error = ErrorCodes.API_REQUEST_PARAMS_INVALID
    http_status_code = 400


class ContentFilteredError(APIException):
    error = ErrorCodes.API_CONTENT_FILTERED
    http_status_code = 400


class UpstreamAuthError(APIException):
    """The upstream rejected the refresh token."""

    error = ErrorCodes.API_TOKEN_EXPIRES
    http_status_code = 401


class UpstreamRequestError(APIException):
    """The upstream call failed; retryable."""

    error = ErrorCodes.API_REQUEST_FAILED
    http_status_code = 502


class UpstreamProtocolError(UpstreamRequestError):
    """The upstream answered with something other than a valid event stream."""


class UpstreamTransportError(UpstreamRequestError):
    """Timeout or connection failure talking to the upstream."""

    http_status_code = 504


RETRYABLE_ERRORS = (UpstreamRequestError, UpstreamAuthError)
