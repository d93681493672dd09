"""Anthropic gateway tests against a stubbed SDK client."""

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from assessor.config import Settings
from assessor.errors.exceptions import GatewayError, ValidationError
from assessor.integrations.llm import AnthropicGateway, build_gateway
from assessor.pipeline.contracts import ChatMessage

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class _Messages:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def _client(outcome):
    return SimpleNamespace(messages=_Messages(outcome))


def _reply(*texts):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text) for text in texts],
        usage=SimpleNamespace(input_tokens=120, output_tokens=40),
        stop_reason="end_turn",
    )


@pytest.mark.asyncio
async def test_complete_sends_history_and_joins_text_blocks():
    client = _client(_reply('{"items": ', "[]}"))
    gateway = AnthropicGateway(model="claude-test", client=client)

    text = await gateway.complete(
        "fix it",
        history=[ChatMessage("user", "original prompt"), ChatMessage("assistant", "{broken")],
    )

    assert text == '{"items": []}'
    sent = client.messages.kwargs
    assert sent["model"] == "claude-test"
    assert [message["role"] for message in sent["messages"]] == ["user", "assistant", "user"]
    assert sent["messages"][-1]["content"] == "fix it"


@pytest.mark.asyncio
async def test_timeout_maps_to_gateway_error():
    gateway = AnthropicGateway(
        model="claude-test",
        timeout_seconds=30,
        client=_client(anthropic.APITimeoutError(request=_REQUEST)),
    )
    with pytest.raises(GatewayError) as exc_info:
        await gateway.complete("prompt")
    assert exc_info.value.timeout is True
    assert "timed out after 30s" in exc_info.value.message


@pytest.mark.asyncio
async def test_provider_status_maps_to_gateway_error():
    response = httpx.Response(529, request=_REQUEST)
    error = anthropic.APIStatusError("Overloaded", response=response, body=None)
    gateway = AnthropicGateway(model="claude-test", client=_client(error))
    with pytest.raises(GatewayError) as exc_info:
        await gateway.complete("prompt")
    assert exc_info.value.timeout is False
    assert exc_info.value.details == {"status_code": 529}


@pytest.mark.asyncio
async def test_connection_failure_maps_to_gateway_error():
    gateway = AnthropicGateway(
        model="claude-test",
        client=_client(anthropic.APIConnectionError(request=_REQUEST)),
    )
    with pytest.raises(GatewayError, match="Could not reach"):
        await gateway.complete("prompt")


def test_build_gateway_rejects_unknown_provider():
    with pytest.raises(ValidationError):
        build_gateway(Settings(llm_provider="openai"))


def test_build_gateway_uses_settings():
    gateway = build_gateway(Settings(llm_api_key="sk-test", llm_model="claude-x", llm_timeout_seconds=12))
    assert gateway.model == "claude-x"
    assert gateway.timeout_seconds == 12
