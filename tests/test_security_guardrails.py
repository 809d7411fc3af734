from app.core.llm_provider import GeminiLLMProvider
from app.core.logging import redact_secrets


def test_redact_secrets_masks_sensitive_values():
    raw = (
        "authorization=Bearer abc123 "
        "x-goog-api-key=AIzaSySecret "
        "api_key=my-api-key "
        "password=my-password "
        "https://generativelanguage.googleapis.com/v1beta/models/m:streamGenerateContent?alt=sse&key=AIzaQuery"
    )
    masked = redact_secrets(raw)
    assert "abc123" not in masked
    assert "AIzaSySecret" not in masked
    assert "my-api-key" not in masked
    assert "my-password" not in masked
    assert "AIzaQuery" not in masked
    assert "alt=sse" in masked
    assert masked.count("[REDACTED]") >= 5


def test_configured_base_url_never_carries_key(monkeypatch):
    from app.core.settings import settings

    monkeypatch.setattr(settings, "gemini_api_base", "https://example.test/v1beta?key=leaked&x=1")
    url = GeminiLLMProvider(model_name="gemini-1.5-flash", api_key="k").endpoint("generateContent")
    assert "leaked" not in url
    assert url == "https://example.test/v1beta/models/gemini-1.5-flash:generateContent?x=1"


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"x-request-id": "req-123"})
    assert response.headers["x-request-id"] == "req-123"
