import base64
import json

import httpx
import pytest

from shiftboard.config import Settings
from shiftboard.errors import (
    GatewayError,
    GatewayPaymentRequired,
    GatewayRateLimited,
)
from shiftboard.gateway import complete_chat, transcribe_audio

SETTINGS = Settings(gateway_url="https://gateway.test/v1", gateway_api_key="k")
MESSAGES = [{"role": "user", "content": "田中・明日休み"}]


def _transport(status: int, body: dict, seen: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_complete_chat_returns_first_choice() -> None:
    seen: list[httpx.Request] = []
    body = {"choices": [{"message": {"content": '{"ok": true}'}}]}

    content = await complete_chat(
        MESSAGES, SETTINGS, transport=_transport(200, body, seen)
    )

    assert content == '{"ok": true}'
    request = seen[0]
    assert str(request.url) == "https://gateway.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer k"
    sent = json.loads(request.content)
    assert sent["model"] == SETTINGS.gateway_model
    assert sent["temperature"] == 0.3
    assert sent["messages"] == MESSAGES


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "error"),
    [
        (429, GatewayRateLimited),
        (402, GatewayPaymentRequired),
        (500, GatewayError),
    ],
)
async def test_complete_chat_maps_status_codes(status: int, error) -> None:
    with pytest.raises(error):
        await complete_chat(
            MESSAGES, SETTINGS, transport=_transport(status, {"error": "x"})
        )


@pytest.mark.asyncio
async def test_complete_chat_empty_content() -> None:
    with pytest.raises(GatewayError):
        await complete_chat(
            MESSAGES, SETTINGS, transport=_transport(200, {"choices": []})
        )


@pytest.mark.asyncio
async def test_missing_api_key() -> None:
    with pytest.raises(GatewayError):
        await complete_chat(
            MESSAGES,
            Settings(gateway_api_key=None),
            transport=_transport(200, {}),
        )


@pytest.mark.asyncio
async def test_transcribe_audio() -> None:
    seen: list[httpx.Request] = []
    audio = base64.b64encode(b"\x1a\x45\xdf\xa3 fake webm").decode()

    text = await transcribe_audio(
        audio, SETTINGS, transport=_transport(200, {"text": " 中川・明日 "}, seen)
    )

    assert text == "中川・明日"
    assert seen[0].url.path == "/v1/audio/transcriptions"


@pytest.mark.asyncio
@pytest.mark.parametrize("audio", ["", "not base64!!"])
async def test_transcribe_rejects_bad_audio(audio: str) -> None:
    with pytest.raises(GatewayError):
        await transcribe_audio(audio, SETTINGS, transport=_transport(200, {}))
