"""Tests for the click entry point."""

import json

from click.testing import CliRunner
import httpx
import respx

from toolwire import __version__
from toolwire.cli import main

MODELS_URL = "http://localhost:8080/v1/models"
CHAT_URL = "http://localhost:8080/v1/chat/completions"


def _chat(content):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 3},
        "model": "test-model",
    }


def test_version():
    """--version prints the package version and exits cleanly."""
    result = CliRunner().invoke(main, ["--version"])

    assert result.exit_code == 0
    assert result.output.strip() == f"toolwire v{__version__}"


def test_missing_config_file_exits_with_error(tmp_path):
    """An explicit config path that does not exist is an error."""
    result = CliRunner().invoke(main, ["--config", str(tmp_path / "nope.toml"), "hi"])

    assert result.exit_code == 1


@respx.mock
def test_backend_down_exits_3():
    """An unreachable model server exits with code 3."""
    respx.get(MODELS_URL).mock(side_effect=httpx.ConnectError("refused"))

    result = CliRunner().invoke(main, ["hello"])

    assert result.exit_code == 3
    assert "Cannot connect to the model server" in result.output


@respx.mock
def test_one_shot_json_from_stdin():
    """A piped prompt is answered once; --json reports the turn."""
    respx.get(MODELS_URL).mock(return_value=httpx.Response(200, json={"data": [{"id": "test-model"}]}))
    chat = respx.post(CHAT_URL).mock(return_value=httpx.Response(200, json=_chat("Hi there")))

    result = CliRunner().invoke(main, ["--json", "--model", "test-model"], input="hello\n")

    assert result.exit_code == 0
    output = json.loads(result.output)
    assert output["response"] == "Hi there"
    assert output["tokens_prompt"] == 12
    assert output["turns"] == 1
    assert output["cancelled"] is False

    payload = json.loads(chat.calls.last.request.content)
    assert payload["model"] == "test-model"
    assert payload["messages"][-1] == {"role": "user", "content": "hello"}
    assert payload["tools"]


@respx.mock
def test_no_native_tools_flag():
    """--no-native-tools sends no tool definitions."""
    respx.get(MODELS_URL).mock(return_value=httpx.Response(200, json={"data": []}))
    chat = respx.post(CHAT_URL).mock(return_value=httpx.Response(200, json=_chat("ok")))

    result = CliRunner().invoke(main, ["--json", "--no-native-tools", "hello"])

    assert result.exit_code == 0
    payload = json.loads(chat.calls.last.request.content)
    assert "tools" not in payload
    assert "## AVAILABLE TOOLS" in payload["messages"][0]["content"]


@respx.mock
def test_status_reports_backend():
    """--status lists the backend, its models and the tool mode."""
    respx.get(MODELS_URL).mock(return_value=httpx.Response(200, json={"data": [{"id": "qwen-a"}]}))

    result = CliRunner().invoke(main, ["--status"])

    assert result.exit_code == 0
    assert "Backend: http://localhost:8080/v1" in result.output
    assert "qwen-a" in result.output
    assert "Tool calling: native" in result.output


@respx.mock
def test_unexpected_error_exits_1_without_traceback(tmp_path):
    """Failures outside the provider path print one line and exit 1."""
    config_file = tmp_path / "bad.toml"
    config_file.write_text('[agent]\nmax_turns = "ten"\n')
    respx.get(MODELS_URL).mock(return_value=httpx.Response(200, json={"data": []}))

    result = CliRunner().invoke(main, ["--config", str(config_file), "hello"])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "Error:" in result.output
    assert "Traceback" not in result.output
