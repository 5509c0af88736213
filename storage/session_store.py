"""Read-only access to the stored portal session."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from config.settings import settings
from models.record import RequestContext, Session
from storage.blob_store import BlobStore


class SessionStore:
    """
    Loads the serialized cookie set of the portal account.

    The blob is written by a separate login job and is only ever read here.
    A missing blob is a normal outcome (``None``), not an error.
    """

    def __init__(
        self,
        backend: BlobStore,
        key: Optional[str] = None,
        ctx: Optional[RequestContext] = None,
    ) -> None:
        self._backend = backend
        self._key = key or settings.session_key
        self._log = logger.bind(**(ctx or RequestContext()).log_extra())

    @property
    def key(self) -> str:
        return self._key

    def for_request(self, ctx: RequestContext) -> "SessionStore":
        """Same backend and key, logging under another request's ids."""
        return SessionStore(self._backend, key=self._key, ctx=ctx)

    async def load(self, key: Optional[str] = None) -> Optional[Session]:
        key = key or self._key
        self._log.debug(f"Retrieving session '{key}'...")
        raw = await self._backend.get(key)
        if not raw:
            self._log.error(f"No session stored under '{key}'.")
            return None
        self._log.debug("Session retrieved successfully.")
        return Session(key=key, raw=raw)

    async def close(self) -> None:
        """Release the backend's connections."""
        await self._backend.close()
