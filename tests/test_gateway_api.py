from __future__ import annotations

import httpx

from conftest import sse_body

RESULT_TEXT = (
    '{"solution":{"ans":"x = 3","steps":["Subtract 2","Divide by 2"]},'
    '"quiz":{"q":"2x = 8?","opt":["2","3","4","5"],"correct":2,"reason":"8 / 2 = 4"}}'
)


def test_health_reports_provider_configuration(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == "smas-api"
    assert "provider_configured" in body


def test_stream_relays_upstream_body_unmodified(client, upstream):
    upstream.body = sse_body(RESULT_TEXT[:40], RESULT_TEXT[40:])

    response = client.post("/api/gemini", json={"subject": "Math", "voiceText": "2x + 2 = 8"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.content == upstream.body


def test_stream_request_shape_sent_to_provider(client, upstream):
    upstream.body = sse_body(RESULT_TEXT)

    client.post(
        "/api/gemini",
        json={"subject": "Physics", "voiceText": "How fast does it fall?", "image": "data:image/png;base64,iVBORw0K"},
    )

    assert len(upstream.calls) == 1
    request = upstream.calls[0]
    assert request.url.path.endswith(":streamGenerateContent")
    assert request.url.params["alt"] == "sse"
    assert "key" not in request.url.params
    assert request.headers["x-goog-api-key"] == "test-gemini-key"

    payload = upstream.last_json()
    parts = payload["contents"][0]["parts"]
    assert "Subject: Physics." in parts[0]["text"]
    assert "How fast does it fall?" in parts[0]["text"]
    assert parts[1] == {"inlineData": {"mimeType": "image/png", "data": "iVBORw0K"}}
    assert payload["generationConfig"] == {"responseMimeType": "application/json", "temperature": 0.1}


def test_text_only_request_has_no_image_part(client, upstream):
    upstream.body = sse_body(RESULT_TEXT)

    client.post("/api/gemini", json={"subject": "Chemistry", "voiceText": "Balance H2 + O2"})

    parts = upstream.last_json()["contents"][0]["parts"]
    assert len(parts) == 1


def test_missing_api_key_returns_500_without_calling_provider(client, upstream, monkeypatch):
    from app.core.settings import settings

    monkeypatch.setattr(settings, "gemini_api_key", "")

    response = client.post("/api/gemini", json={"subject": "Math", "voiceText": "2+2=?"})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "missing_api_key"
    assert "GEMINI_API_KEY" in body["error"]["message"]
    assert upstream.calls == []


def test_upstream_error_status_and_body_are_relayed(client, upstream):
    upstream.status_code = 429
    upstream.content_type = "application/json"
    upstream.body = b'{"error": {"message": "quota exhausted"}}'

    response = client.post("/api/gemini", json={"subject": "Math", "voiceText": "2+2=?"})

    assert response.status_code == 429
    body = response.json()
    assert body["error"]["code"] == "upstream_error"
    assert "quota exhausted" in body["error"]["details"]


def test_network_failure_is_reported_as_internal_error(client, upstream):
    upstream.error = httpx.ConnectError("connection refused")

    response = client.post("/api/gemini", json={"subject": "Math", "voiceText": "2+2=?"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"]["code"] == "internal_error"
    assert "connection refused" in body["error"]["details"]


def test_get_is_not_allowed(client):
    response = client.get("/api/gemini")
    assert response.status_code == 405
    assert response.json()["success"] is False


def test_diary_is_not_a_valid_request_subject(client, upstream):
    response = client.post("/api/gemini", json={"subject": "Diary", "voiceText": "hello"})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"
    assert upstream.calls == []


def test_buffered_variant_returns_result_document(client, upstream):
    upstream.content_type = "application/json"
    upstream.body = httpx.Response(
        200, json={"candidates": [{"content": {"parts": [{"text": RESULT_TEXT}]}}]}
    ).content

    response = client.post("/api/gemini/complete", json={"subject": "Math", "prompt": "2x + 2 = 8", "image": "QUJD"})

    assert response.status_code == 200
    assert response.json() == {
        "finalAnswer": "x = 3",
        "steps": ["Subtract 2", "Divide by 2"],
        "quiz": {"question": "2x = 8?", "options": ["2", "3", "4", "5"], "correctIndex": 2, "explanation": "8 / 2 = 4"},
    }
    request = upstream.calls[0]
    assert request.url.path.endswith(":generateContent")
    parts = upstream.last_json()["contents"][0]["parts"]
    assert "2x + 2 = 8" in parts[0]["text"]
    assert parts[1]["inlineData"] == {"mimeType": "image/jpeg", "data": "QUJD"}


def test_buffered_variant_without_candidates(client, upstream):
    upstream.content_type = "application/json"
    upstream.body = b'{"candidates": []}'

    response = client.post("/api/gemini/complete", json={"subject": "Math", "prompt": "1+1"})

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "empty_response"


def test_buffered_variant_rejects_malformed_generation(client, upstream):
    upstream.content_type = "application/json"
    upstream.body = httpx.Response(
        200, json={"candidates": [{"content": {"parts": [{"text": '{"solution": {"ans": "4"'}]}}]}
    ).content

    response = client.post("/api/gemini/complete", json={"subject": "Math", "prompt": "2+2"})

    assert response.status_code == 502
    assert response.json()["error"]["message"] == "AI returned an invalid format"
