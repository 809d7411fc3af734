from __future__ import annotations

from collections.abc import Callable

import httpx

from app.client.stream_reassembler import StreamReassembler
from app.core.logging import DOMAIN_STREAM, get_domain_logger
from app.core.settings import settings
from app.schemas.homework import AIResultDocument, Subject

logger = get_domain_logger(__name__, DOMAIN_STREAM)

STREAM_PATH = "/api/gemini"


class GatewayConnectionError(RuntimeError):
    def __init__(self, message: str = "Connection failed", status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GatewayClient:
    """Client half of the pipeline: post the request, read the event stream to the end."""

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.gateway_base_url).rstrip("/")
        self.transport = transport
        configured = settings.gateway_timeout_seconds if timeout is None else timeout
        self.timeout = configured or None

    @staticmethod
    def build_payload(subject: Subject, image: str | None, voice_text: str | None) -> dict:
        payload: dict = {"subject": subject.value, "voiceText": voice_text or ""}
        if image:
            payload["image"] = image
        return payload

    async def stream_solution(
        self,
        subject: Subject,
        image: str | None = None,
        voice_text: str | None = None,
        on_fragment: Callable[[str], None] | None = None,
    ) -> AIResultDocument:
        reassembler = StreamReassembler(on_fragment=on_fragment)
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            async with client.stream("POST", STREAM_PATH, json=self.build_payload(subject, image, voice_text)) as resp:
                if resp.status_code != 200:
                    body = (await resp.aread()).decode("utf-8", errors="ignore")
                    logger.warning("Gateway rejected request | status=%s", resp.status_code)
                    raise GatewayConnectionError(status_code=resp.status_code, body=body)
                async for chunk in resp.aiter_bytes():
                    reassembler.feed(chunk)
        document = reassembler.finish()
        logger.info("Stream reassembled | fragments=%d chars=%d", reassembler.fragments, len(reassembler.text))
        return document
