"""
Error kinds raised by the proxy modules and their HTTP status mapping.
"""
from enum import Enum

import openai


class ErrorKind(Enum):
    INVALID_REQUEST = "invalid_request"
    MISCONFIGURED = "misconfigured"
    AUTH_FAILURE = "auth_failure"
    UPSTREAM_FAILURE = "upstream_failure"


STATUS_BY_KIND = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.MISCONFIGURED: 500,
    ErrorKind.AUTH_FAILURE: 401,
    ErrorKind.UPSTREAM_FAILURE: 500,
}


class ProxyError(Exception):
    def __init__(self, kind: ErrorKind, message: str, request_id: str = None,
                 upstream_status: int = None, upstream_code: str = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.request_id = request_id
        self.upstream_status = upstream_status
        self.upstream_code = upstream_code

    @property
    def status(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_body(self) -> dict:
        body = {"error": self.message}
        if self.request_id:
            body["requestId"] = self.request_id
        return body


def invalid_request(message, request_id=None) -> ProxyError:
    return ProxyError(ErrorKind.INVALID_REQUEST, message, request_id)


def misconfigured(message, request_id=None) -> ProxyError:
    return ProxyError(ErrorKind.MISCONFIGURED, message, request_id)


def upstream_details(exc: Exception) -> tuple:
    """(status, code) reported by the OpenAI SDK, or (None, None)."""
    if isinstance(exc, openai.APIStatusError):
        body = exc.body if isinstance(exc.body, dict) else {}
        return exc.status_code, getattr(exc, "code", None) or body.get("code")
    return None, getattr(exc, "code", None)


def from_upstream(exc: Exception, default_message: str, request_id=None, allow_auth=False) -> ProxyError:
    """Classify an exception raised while calling OpenAI."""
    status, code = upstream_details(exc)
    if allow_auth and status == 401:
        return ProxyError(
            ErrorKind.AUTH_FAILURE,
            "Invalid OpenAI API key. Please check your credentials.",
            request_id, status, code,
        )
    message = getattr(exc, "message", None) or str(exc) or default_message
    return ProxyError(ErrorKind.UPSTREAM_FAILURE, message, request_id, status, code)
