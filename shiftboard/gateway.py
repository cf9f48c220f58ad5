"""
HTTP calls to the hosted AI gateway (chat completions and transcription).

Both calls speak the OpenAI-compatible wire format the gateway exposes.
"""

import base64
import binascii
import logging
from typing import Any

import httpx

from shiftboard.config import Settings
from shiftboard.errors import (
    GatewayError,
    GatewayPaymentRequired,
    GatewayRateLimited,
)

logger = logging.getLogger(__name__)


def _check_response(response: httpx.Response) -> None:
    if response.status_code == 429:
        raise GatewayRateLimited("rate limit exceeded, try again later")
    if response.status_code == 402:
        raise GatewayPaymentRequired("gateway credits exhausted")
    if response.is_error:
        logger.error(
            "gateway error %s: %s", response.status_code, response.text[:500]
        )
        raise GatewayError("gateway request failed")


async def _post(
    settings: Settings,
    path: str,
    transport: httpx.AsyncBaseTransport | None = None,
    **kwargs: Any,
) -> dict:
    if not settings.gateway_api_key:
        raise GatewayError("gateway API key is not configured")
    headers = {"Authorization": f"Bearer {settings.gateway_api_key}"}

    try:
        async with httpx.AsyncClient(
            base_url=settings.gateway_url,
            timeout=settings.gateway_timeout,
            transport=transport,
        ) as client:
            response = await client.post(path, headers=headers, **kwargs)
    except httpx.HTTPError as exc:
        logger.exception("gateway unreachable")
        raise GatewayError("gateway unreachable") from exc

    _check_response(response)
    try:
        return response.json()
    except ValueError as exc:
        raise GatewayError("gateway returned invalid JSON") from exc


async def complete_chat(
    messages: list[dict[str, str]],
    settings: Settings,
    *,
    temperature: float = 0.3,
    max_tokens: int = 1000,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Return the first choice's message content."""
    data = await _post(
        settings,
        "/chat/completions",
        transport,
        json={
            "model": settings.gateway_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        },
    )
    choices = data.get("choices") or [{}]
    content = (choices[0].get("message") or {}).get("content")
    if not content:
        raise GatewayError("empty response from gateway")
    logger.debug("gateway content: %s", content)
    return content


async def transcribe_audio(
    audio_b64: str,
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Speech to text for a base64-encoded audio clip (webm)."""
    try:
        audio = base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise GatewayError("audio payload is not valid base64") from exc
    if not audio:
        raise GatewayError("audio payload is empty")

    data = await _post(
        settings,
        "/audio/transcriptions",
        transport,
        data={"model": settings.transcription_model},
        files={"file": ("audio.webm", audio, "audio/webm")},
    )
    text = (data.get("text") or "").strip()
    if not text:
        raise GatewayError("no speech recognised")
    return text
