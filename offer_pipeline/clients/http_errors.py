"""Translate httpx failures into the pipeline's exception hierarchy."""

from http import HTTPStatus
from typing import Any, NoReturn

import httpx

from offer_pipeline.core.config import ERROR_BODY_MAX_CHARS
from offer_pipeline.core.exceptions import (
    AuthenticationError,
    ExternalServiceError,
    MalformedResponseError,
)

_AUTH_STATUSES = {HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN}


def _read_error_body(response: httpx.Response) -> str:
    try:
        return response.text[:ERROR_BODY_MAX_CHARS]
    except Exception:
        return ""


def check_response(response: httpx.Response, service_name: str) -> None:
    """Raise the matching pipeline error for a non-2xx response."""
    if response.is_success:
        return

    status = response.status_code
    if status in _AUTH_STATUSES:
        raise AuthenticationError(service_name, status_code=status)

    error_type = "rate_limit" if status == HTTPStatus.TOO_MANY_REQUESTS else "error"
    raise ExternalServiceError(
        service_name=service_name,
        error_type=error_type,
        details={
            "http_code": status,
            "body": _read_error_body(response),
        },
    )


def raise_transport_error(exc: httpx.HTTPError, service_name: str) -> NoReturn:
    """Map an httpx transport exception to a transient service error."""
    if isinstance(exc, httpx.TimeoutException):
        error_type = "timeout"
    elif isinstance(exc, (httpx.NetworkError, httpx.RemoteProtocolError)):
        error_type = "unavailable"
    else:
        error_type = "error"
    raise ExternalServiceError(
        service_name=service_name,
        error_type=error_type,
        details={"reason": str(exc) or type(exc).__name__},
    ) from exc


def read_json_object(response: httpx.Response, service_name: str) -> dict[str, Any]:
    """Decode a JSON object body or raise MalformedResponseError."""
    try:
        data = response.json()
    except ValueError as e:
        raise MalformedResponseError(service_name, "body is not valid JSON") from e
    if not isinstance(data, dict):
        raise MalformedResponseError(service_name, "body is not a JSON object")
    return data
