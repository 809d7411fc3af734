from abc import ABC, abstractmethod
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx

from app.core.logging import DOMAIN_GATEWAY, get_domain_logger
from app.core.settings import settings

logger = get_domain_logger(__name__, DOMAIN_GATEWAY)


class ProviderError(Exception):
    """Base class for failures talking to the generative-AI provider."""


class MissingAPIKeyError(ProviderError):
    pass


class UpstreamError(ProviderError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"Upstream returned {status_code}")
        self.status_code = status_code
        self.body = body


class EmptyResponseError(ProviderError):
    pass


class UpstreamStream:
    """An open streamed upstream response; the owner must call ``aclose``."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response):
        self.client = client
        self.response = response
        self.closed = False

    async def aiter_bytes(self):
        async for chunk in self.response.aiter_bytes():
            yield chunk

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.response.aclose()
        await self.client.aclose()


class BaseLLMProvider(ABC):
    provider_name: str

    @abstractmethod
    async def open_stream(self, parts: list[dict]) -> UpstreamStream:
        raise NotImplementedError

    @abstractmethod
    async def generate(self, parts: list[dict]) -> str:
        raise NotImplementedError


class GeminiLLMProvider(BaseLLMProvider):
    provider_name = "gemini"

    def __init__(
        self,
        model_name: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.model_name = model_name or settings.llm_model
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.transport = transport

    @staticmethod
    def _sanitize_url(raw_url: str) -> str:
        parsed = urlparse(raw_url)
        if not parsed.query:
            return raw_url
        filtered = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k.lower() != "key"]
        return urlunparse(parsed._replace(query=urlencode(filtered)))

    def endpoint(self, method: str) -> str:
        parsed = urlparse(self._sanitize_url(settings.gemini_api_base.strip()))
        path = f"{parsed.path.rstrip('/')}/models/{self.model_name}:{method}"
        return urlunparse(parsed._replace(path=path))

    @staticmethod
    def build_payload(parts: list[dict]) -> dict:
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": settings.llm_temperature,
            },
        }

    def _client(self) -> httpx.AsyncClient:
        timeout = settings.upstream_timeout_seconds or None
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    def _headers(self) -> dict:
        if not self.api_key:
            raise MissingAPIKeyError("GEMINI_API_KEY is not configured")
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    async def open_stream(self, parts: list[dict]) -> UpstreamStream:
        headers = self._headers()
        client = self._client()
        try:
            request = client.build_request(
                "POST",
                self.endpoint("streamGenerateContent"),
                params={"alt": "sse"},
                json=self.build_payload(parts),
                headers=headers,
            )
            response = await client.send(request, stream=True)
        except BaseException:
            await client.aclose()
            raise

        if not response.is_success:
            body = (await response.aread()).decode("utf-8", errors="replace")
            await response.aclose()
            await client.aclose()
            logger.warning("Upstream stream rejected | model=%s status=%s", self.model_name, response.status_code)
            raise UpstreamError(response.status_code, body)

        logger.info("Upstream stream opened | model=%s parts=%d", self.model_name, len(parts))
        return UpstreamStream(client, response)

    async def generate(self, parts: list[dict]) -> str:
        headers = self._headers()
        async with self._client() as client:
            response = await client.post(
                self.endpoint("generateContent"),
                json=self.build_payload(parts),
                headers=headers,
            )
            if not response.is_success:
                logger.warning("Upstream call rejected | model=%s status=%s", self.model_name, response.status_code)
                raise UpstreamError(response.status_code, response.text)
            data = response.json()

        candidates = data.get("candidates") or []
        if not candidates:
            raise EmptyResponseError("AI did not respond")
        content_parts = (candidates[0].get("content") or {}).get("parts") or []
        if not content_parts or not isinstance(content_parts[0], dict):
            raise EmptyResponseError("AI did not respond")
        return content_parts[0].get("text", "")


def get_llm_provider() -> BaseLLMProvider:
    return GeminiLLMProvider()
