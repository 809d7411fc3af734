from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app.core.json_parser import parse_result_document
from app.core.llm_provider import BaseLLMProvider, UpstreamStream, get_llm_provider
from app.core.logging import DOMAIN_GATEWAY, get_domain_logger, request_id_var
from app.core.prompting import build_parts
from app.schemas.homework import AIResultDocument, SolveRequest

router = APIRouter(prefix="/api", tags=["gateway"])
logger = get_domain_logger(__name__, DOMAIN_GATEWAY)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class UpstreamRelayResponse(StreamingResponse):
    """Event-stream response that always closes its upstream.

    Starlette leaves the body iterator suspended when the client goes away,
    so the close also runs when the response call itself ends. The request
    id is bound for the whole relay because the request-id middleware has
    already returned by the time the body is sent.
    """

    def __init__(self, upstream: UpstreamStream, request_id: str = "-"):
        self.upstream = upstream
        self.request_id = request_id
        super().__init__(self._relay(), media_type="text/event-stream", headers=STREAM_HEADERS)

    async def _relay(self):
        relayed = 0
        try:
            async for chunk in self.upstream.aiter_bytes():
                relayed += len(chunk)
                yield chunk
            logger.info("Stream relayed | bytes=%s", relayed)
        finally:
            await self.upstream.aclose()

    async def __call__(self, scope, receive, send):
        token = request_id_var.set(self.request_id)
        try:
            await super().__call__(scope, receive, send)
        finally:
            request_id_var.reset(token)
            await asyncio.shield(self.upstream.aclose())


@router.post("/gemini")
async def stream_solution(
    payload: SolveRequest,
    request: Request,
    provider: BaseLLMProvider = Depends(get_llm_provider),
):
    """Relay the provider's event stream to the caller byte for byte.

    Provider failures raise before any byte is sent and are turned into the
    error envelope by the handlers in ``app.core.errors``.
    """
    logger.info(
        "Stream requested | subject=%s has_image=%s has_text=%s",
        payload.subject.value,
        bool(payload.image),
        bool(payload.user_text),
    )
    upstream = await provider.open_stream(build_parts(payload))
    return UpstreamRelayResponse(upstream, getattr(request.state, "request_id", request_id_var.get()))


@router.post("/gemini/complete", response_model=AIResultDocument)
async def complete_solution(payload: SolveRequest, provider: BaseLLMProvider = Depends(get_llm_provider)):
    logger.info("Buffered solve requested | subject=%s has_image=%s", payload.subject.value, bool(payload.image))
    text = await provider.generate(build_parts(payload))
    return parse_result_document(text)
