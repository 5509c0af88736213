"""Async client for the external image-CAPTCHA solving service."""

from __future__ import annotations

import asyncio
import base64
from typing import Any, Optional

import httpx
from loguru import logger

from config.settings import Settings, settings as default_settings
from models.errors import CaptchaServiceUnavailable
from models.record import (
    CaptchaChallenge,
    CaptchaResolution,
    CaptchaStatus,
    RequestContext,
)


class CaptchaSolverClient:
    """
    Submits challenge images to the solver and fetches their answers.

    The solver is a black box: ``submit`` returns a challenge id, ``resolve``
    reports its status.  Transport failures and non-2xx answers raise
    :class:`CaptchaServiceUnavailable`; a challenge the solver could not
    read is a normal, non-exceptional ``failed`` resolution.
    """

    DEFAULT_HEADERS = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }

    def __init__(
        self,
        config: Optional[Settings] = None,
        ctx: Optional[RequestContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or default_settings
        self._base_url = self._config.captcha_api_url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._log = logger.bind(**(ctx or RequestContext()).log_extra())

    async def __aenter__(self) -> "CaptchaSolverClient":
        self._client = httpx.AsyncClient(
            headers=self.DEFAULT_HEADERS,
            timeout=self._config.captcha_timeout_seconds,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict:
        assert self._client is not None, "Use as async context manager."
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise CaptchaServiceUnavailable(
                url, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise CaptchaServiceUnavailable(url, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise CaptchaServiceUnavailable(url, "response is not JSON") from exc

    async def submit(self, image: bytes) -> str:
        """Upload a challenge image and return the solver's challenge id."""
        url = f"{self._base_url}captcha/image"
        body = {
            "b64image": base64.b64encode(image).decode("ascii"),
            "access_token": self._config.captcha_access_token,
            "alphanumeric": self._config.captcha_alphanumeric,
        }
        data = await self._request("POST", url, json=body)
        challenge_id = data.get("id") if isinstance(data, dict) else None
        if not challenge_id:
            raise CaptchaServiceUnavailable(url, "no challenge id in response")
        self._log.debug(f"CAPTCHA submitted, id={challenge_id}")
        return str(challenge_id)

    async def resolve(self, challenge_id: str) -> CaptchaResolution:
        """Fetch the current status (and answer, once completed) of a challenge."""
        url = f"{self._base_url}captcha/{challenge_id}"
        data = await self._request(
            "GET", url, params={"access_token": self._config.captcha_access_token}
        )
        if not isinstance(data, dict):
            data = {}
        # Numeric-only answers may arrive as JSON numbers.
        text = data.get("text")
        if text is not None:
            text = str(text).strip() or None
        return CaptchaResolution(status=CaptchaStatus.parse(data.get("status")), text=text)

    async def poll(self, challenge_id: str) -> CaptchaResolution:
        """Resolve until the challenge leaves ``pending`` or attempts run out."""
        attempts = self._config.captcha_poll_attempts
        resolution = CaptchaResolution(status=CaptchaStatus.PENDING)
        for attempt in range(1, attempts + 1):
            resolution = await self.resolve(challenge_id)
            if resolution.status != CaptchaStatus.PENDING:
                break
            self._log.debug(f"[attempt {attempt}/{attempts}] CAPTCHA {challenge_id} still pending")
            if attempt < attempts:
                await asyncio.sleep(self._config.captcha_poll_interval_seconds)
        return resolution

    async def solve(self, image: bytes) -> CaptchaChallenge:
        """Submit ``image`` and poll for its answer."""
        challenge_id = await self.submit(image)
        challenge = CaptchaChallenge(id=challenge_id, image=image)
        resolution = await self.poll(challenge_id)
        challenge.status = resolution.status
        challenge.solved_text = resolution.text
        return challenge
