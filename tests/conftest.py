from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
API_DIR = ROOT / "API"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Test-mode runtime guards:
# - no external provider traffic (every upstream call goes through a MockTransport)
# - no diary writes outside tmp_path
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("GEMINI_API_KEY", "")
os.environ.setdefault("DIARY_FILE", str(ROOT / ".pytest_cache" / "diary.json"))

from app.core.llm_provider import GeminiLLMProvider, get_llm_provider  # noqa: E402
from app.main import app  # noqa: E402


def sse_body(*texts: str) -> bytes:
    """Provider-style event stream carrying the given text fragments."""
    lines = []
    for text in texts:
        chunk = {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}
        lines.append(f"data: {json.dumps(chunk)}\r\n\r\n")
    return "".join(lines).encode("utf-8")


class FakeUpstream:
    """Records provider calls and answers them with a canned response."""

    def __init__(self):
        self.calls: list[httpx.Request] = []
        self.status_code = 200
        self.body = b""
        self.content_type = "text/event-stream"
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, content=self.body, headers={"content-type": self.content_type})

    def last_json(self) -> dict:
        return json.loads(self.calls[-1].content)


@pytest.fixture(scope="session")
def client() -> TestClient:
    with TestClient(app) as tc:
        yield tc


@pytest.fixture
def upstream(monkeypatch):
    from app.core.settings import settings

    fake = FakeUpstream()
    monkeypatch.setattr(settings, "gemini_api_key", "test-gemini-key")
    app.dependency_overrides[get_llm_provider] = lambda: GeminiLLMProvider(
        transport=httpx.MockTransport(fake.handler)
    )
    yield fake
    app.dependency_overrides.pop(get_llm_provider, None)
