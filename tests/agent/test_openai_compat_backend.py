import json

import httpx
import pytest
import respx

from toolwire.backends.base import GenerateRequest
from toolwire.backends.openai_compat import OpenAICompatBackend
from toolwire.errors import APIError, ErrorCategory, RetryError, classify

URL = "http://localhost:8080/v1/chat/completions"


@pytest.fixture
def backend():
    return OpenAICompatBackend(base_url="http://localhost:8080/v1", max_retries=2, retry_delay=0)


@pytest.fixture
def generate_request():
    return GenerateRequest(
        system="System prompt",
        messages=[{"role": "user", "content": "Hello"}],
        model="test-model"
    )


@pytest.fixture
def tools():
    return [{
        "type": "function",
        "function": {
            "name": "read_file",
            "description": "Read a file",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string"}
                }
            }
        }
    }]


@pytest.mark.asyncio
@respx.mock
async def test_generate_with_tools_success(backend, generate_request, tools):
    # Content response
    content_response = {
        "choices": [{
            "message": {"role": "assistant", "content": "Hello!"},
            "finish_reason": "stop"
        }],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5},
        "model": "test-model"
    }
    route = respx.post(URL).mock(return_value=httpx.Response(200, json=content_response))

    response = await backend.generate_with_tools(generate_request, tools)
    assert response.content == "Hello!"
    assert response.tool_calls == []
    assert response.tokens_prompt == 10
    assert response.tokens_completion == 5
    assert response.raw_response == content_response

    # System prompt goes first, tools are offered with tool_choice=auto
    sent = json.loads(route.calls.last.request.content)
    assert sent["messages"][0] == {"role": "system", "content": "System prompt"}
    assert sent["tools"] == tools
    assert sent["tool_choice"] == "auto"


@pytest.mark.asyncio
@respx.mock
async def test_generate_with_tools_tool_calls(backend, generate_request, tools):
    tool_calls_response = {
        "choices": [{
            "message": {
                "role": "assistant",
                "content": None,
                "tool_calls": [{
                    "id": "call_123",
                    "type": "function",
                    "function": {
                        "name": "read_file",
                        "arguments": '{"path": "a.py"}'
                    }
                }]
            },
            "finish_reason": "tool_calls"
        }],
        "usage": {"prompt_tokens": 15, "completion_tokens": 10},
        "model": "test-model"
    }
    respx.post(URL).mock(return_value=httpx.Response(200, json=tool_calls_response))

    response = await backend.generate_with_tools(generate_request, tools)
    assert response.content == ""
    assert response.finish_reason == "tool_calls"
    assert response.tool_calls == [{
        "id": "call_123",
        "type": "function",
        "function": {"name": "read_file", "arguments": '{"path": "a.py"}'},
    }]


@pytest.mark.asyncio
@respx.mock
async def test_generate_omits_tools(backend, generate_request):
    route = respx.post(URL).mock(return_value=httpx.Response(200, json={
        "choices": [{"message": {"content": "plain"}, "finish_reason": "stop"}],
    }))

    response = await backend.generate(generate_request)
    assert response.content == "plain"
    assert response.tokens_prompt == 0
    sent = json.loads(route.calls.last.request.content)
    assert "tools" not in sent


@pytest.mark.asyncio
@respx.mock
async def test_client_error_raises_api_error_without_retry(backend, generate_request, tools):
    body = '{"error": {"message": "tools are not supported for this model"}}'
    route = respx.post(URL).mock(return_value=httpx.Response(400, text=body))

    with pytest.raises(APIError) as exc_info:
        await backend.generate_with_tools(generate_request, tools)

    assert exc_info.value.status_code == 400
    assert exc_info.value.response_body == body
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_auth_error_classified(backend, generate_request):
    respx.post(URL).mock(return_value=httpx.Response(401, json={"error": {"message": "bad key"}}))

    with pytest.raises(APIError) as exc_info:
        await backend.generate(generate_request)

    assert classify(exc_info.value).category is ErrorCategory.AUTH


@pytest.mark.asyncio
@respx.mock
async def test_server_error_retried_then_retry_error(backend, generate_request):
    route = respx.post(URL).mock(return_value=httpx.Response(503, text="overloaded"))

    with pytest.raises(RetryError) as exc_info:
        await backend.generate(generate_request)

    assert route.call_count == 3
    assert len(exc_info.value.errors) == 3
    assert classify(exc_info.value).category is ErrorCategory.SERVER_ERROR


@pytest.mark.asyncio
@respx.mock
async def test_transient_error_recovers(backend, generate_request):
    respx.post(URL).mock(side_effect=[
        httpx.ConnectError("refused"),
        httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]}),
    ])

    response = await backend.generate(generate_request)
    assert response.content == "ok"


@pytest.mark.asyncio
@respx.mock
async def test_connect_errors_exhaust_retries(backend, generate_request):
    respx.post(URL).mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(RetryError) as exc_info:
        await backend.generate(generate_request)

    assert classify(exc_info.value).category is ErrorCategory.CONNECTION


@pytest.mark.asyncio
@respx.mock
async def test_health_check_and_models(backend):
    respx.get("http://localhost:8080/v1/models").mock(
        return_value=httpx.Response(200, json={"data": [{"id": "qwen"}, {"id": "llama"}]})
    )

    assert await backend.health_check() is True
    assert await backend.list_models() == ["qwen", "llama"]


@pytest.mark.asyncio
@respx.mock
async def test_health_check_unreachable(backend):
    respx.get("http://localhost:8080/v1/models").mock(side_effect=httpx.ConnectError("refused"))

    assert await backend.health_check() is False
    assert await backend.list_models() == []


def test_api_key_header():
    backend = OpenAICompatBackend(api_key="sk-test")
    assert backend.headers["Authorization"] == "Bearer sk-test"
