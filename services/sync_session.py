"""Explicit connection object handed to the uploader.

A ``SyncSession`` is created on login and torn down on logout. It owns the
session material, the HTTP client and, once connected, the short-lived
credentials used by the transport.
"""
from __future__ import annotations

from typing import Optional

import httpx

from core.errors import CredentialUnavailable
from core.settings import UPLOAD, UploadSettings
from services.credentials import CredentialExchange, Credentials, SessionMaterial, request_headers
from services.session_store import SessionStore
from services.transport import UnifiedTransport


class SyncSession:
    def __init__(
        self,
        material: SessionMaterial,
        *,
        client: Optional[httpx.AsyncClient] = None,
        settings: UploadSettings = UPLOAD,
        store: Optional[SessionStore] = None,
    ) -> None:
        self.material = material
        self.settings = settings
        self.store = store
        self._owns_client = client is None
        if client is None:
            if settings.request_timeout_sec is not None:
                client = httpx.AsyncClient(timeout=settings.request_timeout_sec)
            else:
                client = httpx.AsyncClient()
        self.client = client
        self.credentials: Optional[Credentials] = None

    # ------------------------------------------------------------------
    # Lifecycle
    @classmethod
    def login(cls, material: SessionMaterial, store: SessionStore, **kwargs) -> "SyncSession":
        store.save_material(material)
        return cls(material, store=store, **kwargs)

    @classmethod
    def restore(cls, store: SessionStore, **kwargs) -> Optional["SyncSession"]:
        material = store.load_material()
        if material is None:
            return None
        return cls(material, store=store, **kwargs)

    def require_server(self) -> str:
        server = self.material.base_url
        if not server:
            raise CredentialUnavailable("No server address configured")
        return server

    async def connect(self) -> Credentials:
        self.require_server()
        exchange = CredentialExchange(self.client, self.settings)
        self.credentials = await exchange.fetch_credentials(self.material)
        return self.credentials

    @property
    def connected(self) -> bool:
        return self.credentials is not None

    def transport(self) -> UnifiedTransport:
        if self.credentials is None:
            raise CredentialUnavailable("Session is not connected")
        headers = request_headers(self.material, self.settings)
        headers["Authorization"] = f"Bearer {self.credentials.token}"
        # the sync endpoint only serves the change stream
        return UnifiedTransport(self.client, self.require_server(), headers=headers, settings=self.settings)

    def disconnect(self) -> None:
        self.credentials = None

    async def close(self) -> None:
        self.credentials = None
        if self._owns_client:
            await self.client.aclose()

    async def logout(self) -> None:
        await self.close()
        if self.store is not None:
            self.store.clear_material()

    async def __aenter__(self) -> "SyncSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


__all__ = ["SyncSession"]
