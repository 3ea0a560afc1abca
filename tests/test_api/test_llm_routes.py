"""Tests for the direct LLM endpoints under /api/llm."""

import json
from datetime import datetime, timezone

from src.errors import ProviderServiceError

CHAT_BODY = {
    "provider": "openai",
    "model": "gpt-4",
    "messages": [{"role": "user", "content": "What is 2+2?"}],
    "temperature": 0,
}


class TestChatEndpoint:
    """Tests for POST /api/llm/chat."""

    def test_completion(self, api_client, auth_headers, provider):
        provider.responses = ["4"]

        response = api_client.post("/api/llm/chat", json=CHAT_BODY, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["choices"][0]["message"] == {"role": "assistant", "content": "4"}
        assert data["usage"]["total_tokens"] == 15
        assert provider.calls[0].user_id == "key-123"

    def test_deterministic_request_served_from_cache(self, api_client, auth_headers, provider):
        provider.responses = ["4", "four"]

        first = api_client.post("/api/llm/chat", json=CHAT_BODY, headers=auth_headers).json()
        second = api_client.post("/api/llm/chat", json=CHAT_BODY, headers=auth_headers).json()

        assert first == second
        assert len(provider.calls) == 1

    def test_camel_case_parameters(self, api_client, auth_headers, provider):
        body = {**CHAT_BODY, "maxTokens": 32, "topP": 0.9, "temperature": 0.5}
        api_client.post("/api/llm/chat", json=body, headers=auth_headers)
        options = provider.calls[0]
        assert (options.max_tokens, options.top_p, options.temperature) == (32, 0.9, 0.5)

    def test_streaming(self, api_client, auth_headers, provider):
        provider.stream_chunks = ["2+2", " is 4"]

        response = api_client.post(
            "/api/llm/chat", json={**CHAT_BODY, "stream": True}, headers=auth_headers
        )

        frames = [f for f in response.text.split("\n\n") if f]
        assert [json.loads(f[len("data: "):]) for f in frames[:-1]] == [
            {"content": "2+2"},
            {"content": " is 4"},
        ]
        assert frames[-1] == "data: [DONE]"

    def test_stream_failure_ends_with_error_and_done(self, api_client, auth_headers, provider):
        provider.error = ProviderServiceError("OpenAI", "OpenAI service error: overloaded")

        response = api_client.post(
            "/api/llm/chat", json={**CHAT_BODY, "stream": True}, headers=auth_headers
        )

        frames = [f for f in response.text.split("\n\n") if f]
        assert json.loads(frames[0][len("data: "):]) == {
            "error": "OpenAI service error: overloaded"
        }
        assert frames[-1] == "data: [DONE]"

    def test_unexpected_stream_failure_ends_with_error_and_done(
        self, api_client, auth_headers, provider
    ):
        provider.error = RuntimeError("connection reset")

        response = api_client.post(
            "/api/llm/chat", json={**CHAT_BODY, "stream": True}, headers=auth_headers
        )

        assert response.status_code == 200
        frames = [f for f in response.text.split("\n\n") if f]
        assert json.loads(frames[0][len("data: "):]) == {"error": "connection reset"}
        assert frames[-1] == "data: [DONE]"

    def test_unconfigured_provider(self, api_client, auth_headers):
        response = api_client.post(
            "/api/llm/chat", json={**CHAT_BODY, "provider": "anthropic"}, headers=auth_headers
        )
        assert response.status_code == 400
        assert "not configured" in response.json()["error"]["message"]

    def test_unconfigured_provider_stream_is_not_a_stream(self, api_client, auth_headers):
        response = api_client.post(
            "/api/llm/chat",
            json={**CHAT_BODY, "provider": "anthropic", "stream": True},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_unknown_provider_rejected(self, api_client, auth_headers):
        response = api_client.post(
            "/api/llm/chat", json={**CHAT_BODY, "provider": "mistral"}, headers=auth_headers
        )
        assert response.status_code == 400

    def test_empty_messages_rejected(self, api_client, auth_headers):
        response = api_client.post(
            "/api/llm/chat", json={**CHAT_BODY, "messages": []}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["error"]["errors"][0].startswith("messages:")

    def test_temperature_out_of_range(self, api_client, auth_headers):
        response = api_client.post(
            "/api/llm/chat", json={**CHAT_BODY, "temperature": 2.5}, headers=auth_headers
        )
        assert response.status_code == 400


class TestProvidersEndpoint:
    """Tests for GET /api/llm/providers."""

    def test_lists_configured_providers(self, api_client, auth_headers):
        data = api_client.get("/api/llm/providers", headers=auth_headers).json()
        assert [p["name"] for p in data["providers"]] == ["openai"]
        assert "gpt-4" in data["providers"][0]["models"]

    def test_lenient_limit_headers(self, api_client, auth_headers):
        response = api_client.get("/api/llm/providers", headers=auth_headers)
        assert response.headers["X-RateLimit-Limit"] == "200"
        assert response.headers["X-RateLimit-Remaining"] == "199"


class TestUsageEndpoint:
    """Tests for GET /api/llm/usage."""

    def test_reports_tracked_usage(self, api_client, auth_headers, store):
        today = datetime.now(timezone.utc).date().isoformat()
        store.usage[f"key-123:openai:{today}"] = {
            "prompt_tokens": 10,
            "completion_tokens": 5,
            "total_tokens": 15,
        }

        data = api_client.get("/api/llm/usage", headers=auth_headers).json()

        assert data == {
            "usage": {
                "openai": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
            }
        }

    def test_chat_usage_is_tracked(self, api_client, auth_headers):
        api_client.post(
            "/api/llm/chat", json={**CHAT_BODY, "temperature": 0.5}, headers=auth_headers
        )
        data = api_client.get("/api/llm/usage?provider=openai&days=1", headers=auth_headers).json()
        assert data["usage"]["openai"]["total_tokens"] == 15

    def test_days_out_of_range(self, api_client, auth_headers):
        response = api_client.get("/api/llm/usage?days=400", headers=auth_headers)
        assert response.status_code == 400
