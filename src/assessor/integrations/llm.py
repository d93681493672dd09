"""LLM gateway backed by the Anthropic messages API."""

import logging

import anthropic

from assessor.config import Settings
from assessor.errors.exceptions import GatewayError, ValidationError
from assessor.pipeline.cancellation import CancellationSignal
from assessor.pipeline.contracts import ChatMessage

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an assistant that produces software project assessments. "
    "Always answer with the exact JSON shape requested and nothing else."
)


class AnthropicGateway:
    """Single-turn or history-carrying completions via ``AsyncAnthropic``."""

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        max_tokens: int = 8000,
        timeout_seconds: float = 300.0,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        # api_key=None lets the SDK fall back to ANTHROPIC_API_KEY
        self._client = client or anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=2,
        )

    async def complete(
        self,
        prompt: str,
        history: list[ChatMessage] | None = None,
        cancel: CancellationSignal | None = None,
    ) -> str:
        messages = [{"role": message.role, "content": message.content} for message in history or []]
        messages.append({"role": "user", "content": prompt})

        call = self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=SYSTEM_PROMPT,
            messages=messages,
        )
        try:
            response = await (cancel.guard(call) if cancel else call)
        except anthropic.APITimeoutError as exc:
            raise GatewayError(
                f"LLM request timed out after {self.timeout_seconds:g}s", timeout=True
            ) from exc
        except anthropic.APIStatusError as exc:
            raise GatewayError(
                f"LLM provider returned HTTP {exc.status_code}: {exc.message}",
                details={"status_code": exc.status_code},
            ) from exc
        except anthropic.APIConnectionError as exc:
            raise GatewayError(f"Could not reach the LLM provider: {exc}") from exc

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        logger.debug(
            "LLM completion: model=%s input_tokens=%s output_tokens=%s stop=%s",
            self.model,
            response.usage.input_tokens,
            response.usage.output_tokens,
            response.stop_reason,
        )
        return text


def build_gateway(settings: Settings) -> AnthropicGateway:
    if settings.llm_provider != "anthropic":
        raise ValidationError(f"Unsupported LLM provider '{settings.llm_provider}'")
    return AnthropicGateway(
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        max_tokens=settings.llm_max_tokens,
        timeout_seconds=settings.llm_timeout_seconds,
    )
