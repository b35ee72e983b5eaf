"""Send mapped calls to the unified endpoints and classify what comes back."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from core.settings import UPLOAD, UploadSettings
from services.outcomes import classify, classify_exception
from services.upload_types import CallKind, RemoteCall, RemoteOperationResult


logger = logging.getLogger(__name__)


def envelope(call: RemoteCall) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "method": "call",
        "params": {"type": call.operation, "data": call.payload},
    }


class UnifiedTransport:
    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        settings: UploadSettings = UPLOAD,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self.settings = settings

    def endpoint_for(self, call: RemoteCall) -> Tuple[str, Dict[str, str]]:
        if call.kind is CallKind.UPDATE:
            path = self.settings.update_path.format(record_id=call.record_id)
            return f"{self.base_url}{path}", {"entity_type": call.entity_type}
        if call.kind is CallKind.LOCAL:
            raise ValueError("Local calls are never sent")
        return f"{self.base_url}{self.settings.create_path}", {}

    async def submit(self, call: RemoteCall) -> RemoteOperationResult:
        """Perform one request; every failure comes back as a classified result."""

        url, params = self.endpoint_for(call)
        try:
            response = await self.client.post(url, params=params or None, json=envelope(call), headers=self.headers)
        except httpx.RequestError as exc:
            logger.warning("%s %s: %s", call.operation, call.record_id, exc)
            return classify_exception(exc)
        return classify(response, id_key=call.id_key)


__all__ = ["UnifiedTransport", "envelope"]
