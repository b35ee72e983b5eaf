"""Classify HTTP results into success, business rejection or network failure.

The order is fixed: anything that is not an authoritative answer from the
backend is a network failure and must be retried; an explicit refusal is a
business rejection and must never be retried; everything else succeeded.
Structured signals (exception types, status codes, JSON-RPC members) decide;
message text is only consulted to spot an expired backend session.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx

from services.upload_types import RemoteOperationResult


AUTH_STATUS = {401, 403}
RETRYABLE_STATUS = {408, 425, 429}
SESSION_EXPIRED_MARKERS = ("sessionexpired", "session expired", "session_expired")


class InvalidBody:
    """Marker for a response body that is not a JSON object."""

    def __init__(self, text: str = "") -> None:
        self.text = text


def network_code(exc: BaseException) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    if isinstance(exc, httpx.ConnectError):
        return "connect"
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.LocalProtocolError)):
        return "protocol"
    if isinstance(exc, httpx.DecodingError):
        return "invalid_body"
    if isinstance(exc, httpx.TooManyRedirects):
        return "redirect"
    return "transport"


def classify_exception(exc: httpx.RequestError) -> RemoteOperationResult:
    return RemoteOperationResult.network(
        f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__,
        code=network_code(exc),
    )


def parse_body(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return InvalidBody(response.text[:200])
    if not isinstance(body, dict):
        return InvalidBody(str(body)[:200])
    return body


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def extract_server_id(result: Mapping[str, Any], id_key: Optional[str] = None) -> Optional[int]:
    candidates = [result.get("id")]
    record = result.get("record")
    if isinstance(record, Mapping):
        candidates.append(record.get("id"))
    elif record is not None:
        candidates.append(record)
    candidates.extend([result.get("record_id"), result.get("res_id")])
    if id_key and id_key != "id":
        candidates.append(result.get(id_key))
    for candidate in candidates:
        value = _as_int(candidate)
        if value is not None:
            return value
    return None


def _rpc_error_text(error: Any) -> str:
    if isinstance(error, Mapping):
        data = error.get("data")
        if isinstance(data, Mapping) and data.get("message"):
            return str(data["message"])
        return str(error.get("message") or "Server error")
    return str(error)


def _is_session_expiry(error: Any) -> bool:
    parts = [_rpc_error_text(error)]
    if isinstance(error, Mapping):
        data = error.get("data")
        if isinstance(data, Mapping):
            parts.append(str(data.get("name") or ""))
    blob = " ".join(parts).lower()
    return any(marker in blob for marker in SESSION_EXPIRED_MARKERS)


def classify_response(status: int, body: Any, *, id_key: Optional[str] = None) -> RemoteOperationResult:
    if status in AUTH_STATUS:
        return RemoteOperationResult.network(f"Not authorised ({status})", code="auth", status=status)
    if status in RETRYABLE_STATUS or status >= 500:
        return RemoteOperationResult.network(f"Server unavailable ({status})", code="http_status", status=status)

    if isinstance(body, InvalidBody):
        if 400 <= status < 500:
            return RemoteOperationResult.rejection(
                f"Request refused ({status})", payload={"body": body.text}, code="http_status", status=status
            )
        return RemoteOperationResult.network(
            "Response body is not a JSON object", code="invalid_body", status=status
        )

    error = body.get("error")
    if error:
        if _is_session_expiry(error):
            return RemoteOperationResult.network(_rpc_error_text(error), code="auth", status=status)
        return RemoteOperationResult.rejection(
            _rpc_error_text(error), payload={"error": error}, code="rpc_error", status=status
        )

    result = body.get("result", body)
    if not isinstance(result, dict):
        result = {"result": result}

    if 400 <= status < 500:
        return RemoteOperationResult.rejection(
            str(result.get("message") or f"Request refused ({status})"),
            payload=result,
            code="http_status",
            status=status,
        )

    if result.get("success") is False or result.get("message_type") == "error":
        return RemoteOperationResult.rejection(
            str(result.get("message") or "Rejected by server"),
            payload=result,
            code="rejected",
            status=status,
        )

    return RemoteOperationResult.success(
        server_id=extract_server_id(result, id_key),
        payload=result,
        message=str(result.get("message") or ""),
        status=status,
    )


def classify(response: httpx.Response, *, id_key: Optional[str] = None) -> RemoteOperationResult:
    return classify_response(response.status_code, parse_body(response), id_key=id_key)


__all__ = [
    "InvalidBody",
    "classify",
    "classify_exception",
    "classify_response",
    "extract_server_id",
    "network_code",
    "parse_body",
]
