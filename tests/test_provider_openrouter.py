"""Tests for the OpenRouter adapter (mocked HTTP)."""

import pytest

from genmedia.gateway.errors import AuthenticationError, ExhaustedRetriesError, ModelNotSupportedError
from genmedia.gateway.providers.openrouter import OpenRouterAdapter
from genmedia.gateway.types import GenerationOptions, ModelRequest, ProviderConfig, ProviderId


def _chat_reply(text="Hello world"):
    return {
        "id": "gen-123",
        "choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
    }


@pytest.fixture
def adapter(limiter):
    return OpenRouterAdapter(ProviderConfig(api_key="sk-or-test-key-0000000000"), limiter, app_title="Test Suite")


class TestOpenRouterAdapter:
    def test_defaults(self, adapter):
        assert adapter.config.timeout_seconds == 30.0
        assert adapter.config.rate_limit_per_minute == 60

    def test_body_with_system_message(self, adapter):
        req = ModelRequest(
            model="openai/gpt-4o",
            prompt="Write a haiku",
            options=GenerationOptions(system_message="Be brief", temperature=0.2, max_tokens=50),
        )
        body = adapter.build_request_body(req)
        assert body["messages"] == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Write a haiku"},
        ]
        assert body["temperature"] == 0.2
        assert body["max_tokens"] == 50
        assert body["stream"] is False

    def test_body_defaults(self, adapter):
        body = adapter.build_request_body(ModelRequest(model="openai/gpt-4o", prompt="hi"))
        assert body["messages"] == [{"role": "user", "content": "hi"}]
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 2000

    def test_zero_temperature_is_kept(self, adapter):
        body = adapter.build_request_body(
            ModelRequest(model="openai/gpt-4o", prompt="hi", options=GenerationOptions(temperature=0.0))
        )
        assert body["temperature"] == 0.0

    def test_extra_options_passed_through(self, adapter):
        body = adapter.build_request_body(
            ModelRequest(
                model="openai/gpt-4o",
                prompt="hi",
                options=GenerationOptions(extra={"top_p": 0.5, "stream": True}),
            )
        )
        assert body["top_p"] == 0.5
        assert body["stream"] is False

    def test_model_kind_is_text(self, adapter):
        assert adapter.model_kind("openai/gpt-4o") == "text"

    @pytest.mark.asyncio
    async def test_success(self, adapter, mock_http, make_response):
        mock_http.post.return_value = make_response(200, json_data=_chat_reply())

        resp = await adapter.call_model(ModelRequest(model="openai/gpt-4o-mini", prompt="hi"))

        assert resp.text == "Hello world"
        assert resp.images is None
        assert resp.metadata.provider == ProviderId.OPENROUTER
        assert resp.metadata.request_id == "gen-123"
        assert resp.metadata.usage.total_tokens == 30

        args, kwargs = mock_http.post.call_args
        assert args[0] == "https://openrouter.ai/api/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-or-test-key-0000000000"
        assert kwargs["headers"]["X-Title"] == "Test Suite"

    @pytest.mark.asyncio
    async def test_unsupported_model(self, adapter, mock_http):
        with pytest.raises(ModelNotSupportedError):
            await adapter.call_model(ModelRequest(model="flux/dev", prompt="hi"))
        assert mock_http.post.call_count == 0

    @pytest.mark.asyncio
    async def test_missing_choices_is_retried(self, adapter, mock_http, make_response, no_sleep):
        mock_http.post.side_effect = [
            make_response(200, json_data={"id": "x"}),
            make_response(200, json_data=_chat_reply("second time")),
        ]

        resp = await adapter.call_model(ModelRequest(model="openai/gpt-4o", prompt="hi"))

        assert resp.text == "second time"
        assert mock_http.post.call_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        [
            {"choices": ["not an object"]},
            {"choices": [{"message": None}]},
            ["unexpected", "list"],
        ],
    )
    async def test_malformed_choices_are_provider_errors(self, adapter, mock_http, make_response, no_sleep, reply):
        mock_http.post.return_value = make_response(200, json_data=reply)

        with pytest.raises(ExhaustedRetriesError) as exc_info:
            await adapter.call_model(ModelRequest(model="openai/gpt-4o", prompt="hi"))

        assert exc_info.value.last_error.message == "Invalid response format"
        assert exc_info.value.last_error.http_status == 200
        assert mock_http.post.call_count == 3

    @pytest.mark.asyncio
    async def test_nested_error_message(self, adapter, mock_http, make_response, no_sleep):
        mock_http.post.return_value = make_response(400, json_data={"error": {"message": "context too long"}})

        with pytest.raises(ExhaustedRetriesError) as exc_info:
            await adapter.call_model(ModelRequest(model="openai/gpt-4o", prompt="hi"))

        assert exc_info.value.last_error.message == "context too long"
        assert exc_info.value.last_error.http_status == 400

    @pytest.mark.asyncio
    async def test_401(self, adapter, mock_http, make_response):
        mock_http.post.return_value = make_response(401, json_data={"error": {"message": "No auth"}})
        with pytest.raises(AuthenticationError):
            await adapter.call_model(ModelRequest(model="openai/gpt-4o", prompt="hi"))
        assert mock_http.post.call_count == 1

    @pytest.mark.asyncio
    async def test_health_requires_success(self, adapter, mock_http, make_response):
        mock_http.request.return_value = make_response(401, json_data={})
        assert await adapter.is_healthy() is False

        mock_http.request.return_value = make_response(200, json_data={"data": []})
        assert await adapter.is_healthy() is True
        assert mock_http.request.call_args.args == ("GET", "https://openrouter.ai/api/v1/models")
