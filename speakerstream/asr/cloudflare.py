"""
CloudflareWhisperEngine: Whisper via Cloudflare Workers AI.

Accepts float32 audio; converts to PCM bytes for API.
Runs HTTP call in executor to avoid blocking event loop.
Response words ({"word", "start", "end"}) become Word objects; non-2xx responses raise.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
import numpy as np

from speakerstream.asr.base import ASREngine, ASRResult
from speakerstream.asr.local_whisper import float32_to_pcm_bytes
from speakerstream.asr.markers import join_split_bracketed_markers
from speakerstream.config import get_settings
from speakerstream.diarization.models import Word

logger = logging.getLogger(__name__)

API_URL = "https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/run/@cf/openai/whisper"


def parse_whisper_response(data: Any) -> ASRResult:
    """Build an ASRResult from the Workers AI JSON body (with or without the "result" envelope)."""
    result = data.get("result", data) if isinstance(data, dict) else data
    if isinstance(result, str):
        return ASRResult(text=result.strip())
    if not isinstance(result, dict):
        return ASRResult(text="")

    text = (result.get("text") or result.get("transcript") or "").strip()
    words: list[Word] = []
    for item in result.get("words") or []:
        token = item.get("word", item.get("text", ""))
        if not token:
            continue
        start = item.get("start")
        end = item.get("end")
        # API tokens carry no leading space; add one so phrase text joins cleanly
        words.append(
            Word(
                text=" " + token.strip(),
                start=float(start) if start is not None else None,
                end=float(end) if end is not None else None,
            )
        )
    return ASRResult(text=text, words=join_split_bracketed_markers(words))


class CloudflareWhisperEngine(ASREngine):
    """
    Remote Whisper via Cloudflare Workers AI.
    transport is forwarded to httpx.Client (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        account_id: str | None = None,
        api_token: str | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        settings = get_settings()
        self._account_id = account_id or settings.CLOUDFLARE_ACCOUNT_ID
        self._api_token = api_token or settings.CLOUDFLARE_API_TOKEN
        self._transport = transport
        self._timeout = timeout

    def _transcribe_sync(self, pcm_bytes: bytes) -> ASRResult:
        """Blocking HTTP call; run in executor."""
        if not self._account_id or not self._api_token:
            logger.warning("Cloudflare credentials missing; returning empty transcript")
            return ASRResult(text="")

        url = API_URL.format(account_id=self._account_id)
        headers = {"Authorization": f"Bearer {self._api_token}"}
        body = {"audio": list(pcm_bytes)}

        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            resp = client.post(url, headers=headers, json=body)
        resp.raise_for_status()
        return parse_whisper_response(resp.json())

    async def transcribe(self, audio: np.ndarray) -> ASRResult:
        """Convert audio to PCM, run HTTP in executor."""
        pcm_bytes = float32_to_pcm_bytes(audio)
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._transcribe_sync, pcm_bytes)

    @property
    def sample_rate(self) -> int:
        return get_settings().SAMPLE_RATE
