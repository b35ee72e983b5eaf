"""Exchange stored session material for a short-lived sync token."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from core.errors import CredentialUnavailable, NetworkFailure
from core.settings import UPLOAD, UploadSettings
from services.outcomes import network_code


def normalize_server_url(url: Optional[str]) -> str:
    if not url:
        return ""
    value = url.strip().rstrip("/")
    if not value:
        return ""
    if value.startswith(("http://", "https://")):
        return value
    return f"https://{value}"


@dataclass
class SessionMaterial:
    """Long-lived identity stored on the device at login."""

    server_url: Optional[str] = None
    sync_endpoint: Optional[str] = None
    session_cookie: Optional[str] = None
    device_token: Optional[str] = None
    employee_id: Optional[int] = None

    @property
    def base_url(self) -> str:
        return normalize_server_url(self.server_url)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionMaterial":
        employee = data.get("employee_id")
        return cls(
            server_url=data.get("server_url"),
            sync_endpoint=data.get("sync_endpoint"),
            session_cookie=data.get("session_cookie"),
            device_token=data.get("device_token"),
            employee_id=int(employee) if employee not in (None, "") else None,
        )


@dataclass(frozen=True)
class Credentials:
    endpoint: str
    token: str


def request_headers(material: SessionMaterial, settings: UploadSettings = UPLOAD) -> Dict[str, str]:
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if material.session_cookie:
        headers["Cookie"] = material.session_cookie
    if material.device_token:
        headers[settings.token_header] = material.device_token
    return headers


class CredentialExchange:
    def __init__(self, client: httpx.AsyncClient, settings: UploadSettings = UPLOAD) -> None:
        self.client = client
        self.settings = settings

    async def fetch_credentials(self, material: SessionMaterial) -> Credentials:
        """Return ``{endpoint, token}`` for the sync transport.

        Raises:
            CredentialUnavailable: no server address, or the backend refused
                the stored session.
            NetworkFailure: no authoritative answer from the token endpoint.
        """
        server = material.base_url
        if not server:
            raise CredentialUnavailable("No server address configured")

        url = f"{server}{self.settings.token_path}"
        try:
            response = await self.client.post(url, headers=request_headers(material, self.settings), json={})
        except httpx.RequestError as exc:
            raise NetworkFailure(f"Token exchange failed: {exc}", code=network_code(exc)) from exc

        status = response.status_code
        if status in (401, 403):
            raise CredentialUnavailable(f"Stored session was rejected ({status})")
        if status >= 500 or status in (408, 429):
            raise NetworkFailure(f"Token endpoint unavailable ({status})", code="http_status", status=status)

        try:
            body = response.json()
        except ValueError as exc:
            raise NetworkFailure("Token endpoint returned a non JSON body", code="invalid_body", status=status) from exc

        result = body.get("result") if isinstance(body, dict) else None
        if not isinstance(result, dict) or not result.get("success") or not result.get("token"):
            message = result.get("message") if isinstance(result, dict) else None
            raise CredentialUnavailable(message or "Token exchange was refused")

        return Credentials(endpoint=normalize_server_url(material.sync_endpoint) or server, token=str(result["token"]))


__all__ = [
    "CredentialExchange",
    "Credentials",
    "SessionMaterial",
    "normalize_server_url",
    "request_headers",
]
