import base64
import logging
from typing import Optional

import httpx

from .config import Settings

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

# Roughly 500 KB once base64-encoded.
MAX_IMAGE_BYTES = 375_000


class CompletionProviderUnavailable(Exception):
    """Raised when the hosted model could not produce a completion."""


class CompletionProvider:
    """Thin client for the Anthropic Messages API."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    def _build_content(self, prompt: str, image: Optional[bytes], media_type: str):
        if not image:
            return prompt
        if len(image) > MAX_IMAGE_BYTES:
            logger.warning(
                "Dropping %d byte screenshot (limit %d)", len(image), MAX_IMAGE_BYTES
            )
            return prompt
        return [
            {"type": "text", "text": prompt},
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": base64.b64encode(image).decode("utf-8"),
                },
            },
        ]

    async def complete(
        self,
        prompt: str,
        image: Optional[bytes] = None,
        *,
        media_type: str = "image/jpeg",
    ) -> str:
        if not self.settings.anthropic_api_key:
            raise CompletionProviderUnavailable("ANTHROPIC_API_KEY is not configured.")

        payload = {
            "model": self.settings.anthropic_model,
            "max_tokens": self.settings.anthropic_max_tokens,
            "temperature": self.settings.anthropic_temperature,
            "messages": [
                {
                    "role": "user",
                    "content": self._build_content(prompt, image, media_type),
                }
            ],
        }
        headers = {
            "x-api-key": self.settings.anthropic_api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.completion_timeout, transport=self._transport
            ) as client:
                response = await client.post(ANTHROPIC_URL, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            # Surface the actual API error message
            try:
                detail = exc.response.json()
                msg = detail.get("error", {}).get("message", str(exc))
            except (ValueError, AttributeError):
                msg = str(exc)
            raise CompletionProviderUnavailable(
                f"Anthropic API error ({exc.response.status_code}): {msg}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CompletionProviderUnavailable(
                f"Anthropic API request failed: {exc!r}"
            ) from exc

        try:
            data = response.json()
            text = "".join(
                block["text"]
                for block in data["content"]
                if block.get("type") == "text"
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise CompletionProviderUnavailable(
                f"Unexpected response from Anthropic API: {exc!r}"
            ) from exc

        if not text.strip():
            raise CompletionProviderUnavailable("Anthropic API returned no text.")

        logger.info(
            "Completion received from %s (%d chars)", self.settings.anthropic_model, len(text)
        )
        return text
