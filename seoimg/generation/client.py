"""Image-generation webhook client (async httpx)."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from seoimg.errors import GenerationCallError

logger = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = "No image data received from the server"


class ImageGenerator(Protocol):
    """Anything that turns a webhook payload into a base64 image."""

    async def generate(self, payload: dict[str, Any]) -> str:
        """Return the base64 image or raise GenerationCallError."""
        ...


class WebhookClient:
    """POSTs ``{image_type, image_detail}`` to the webhook and returns ``image``."""

    def __init__(
        self,
        url: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def generate(self, payload: dict[str, Any]) -> str:
        logger.debug("Sending %s request to webhook", payload.get("image_type"))
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=payload)
        except httpx.TimeoutException as e:
            raise GenerationCallError(f"Request timed out after {self._timeout:g}s") from e
        except httpx.HTTPError as e:
            raise GenerationCallError(f"Network error: {e}") from e

        if not response.is_success:
            raise GenerationCallError(
                f"HTTP error! status: {response.status_code} {response.reason_phrase}".rstrip(),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationCallError(f"Invalid JSON in webhook response: {e}") from e

        image = data.get("image") if isinstance(data, dict) else None
        if not isinstance(image, str) or not image:
            raise GenerationCallError(NO_IMAGE_MESSAGE)
        return image
