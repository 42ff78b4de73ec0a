"""
Cloud LLM gateway — direct litellm SDK integration.

One blocking ``acompletion`` call per turn, bounded by ``asyncio.wait_for``.
Any provider failure is raised as ``LLMError`` carrying the upstream HTTP
status when litellm exposes one.
"""
import asyncio
import logging
import time
from dataclasses import dataclass

import litellm
from litellm import acompletion

from lingo_engine.config import EngineConfig
from lingo_engine.exceptions import LLMError

logger = logging.getLogger("lingo.engine.llm")

FALLBACK_REPLY = "Sorry, I couldn't generate a response."


@dataclass
class LLMResponse:
    """Response from the cloud gateway."""
    content: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    finish_reason: str = ""


class LLMGateway:
    """
    Usage:
        gateway = LLMGateway(config)
        response = await gateway.complete(messages, api_key="sk-...")
    """

    def __init__(self, config: EngineConfig):
        self.config = config
        litellm.drop_params = True

    async def complete(
        self,
        messages: list[dict[str, str]],
        api_key: str,
        model: str | None = None,
    ) -> LLMResponse:
        resolved_model = model or self.config.openai_model
        timeout = self.config.openai_timeout_seconds
        start = time.monotonic()

        try:
            response = await asyncio.wait_for(
                acompletion(
                    model=resolved_model,
                    messages=messages,
                    api_key=api_key,
                    max_tokens=self.config.openai_max_tokens,
                    temperature=self.config.openai_temperature,
                    drop_params=True,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Cloud LLM call timed out after %.0fs", timeout)
            raise LLMError(f"LLM completion timed out after {timeout}s")
        except Exception as e:
            status = getattr(e, "status_code", None)
            logger.error("Cloud LLM call failed (status=%s): %s", status, e)
            raise LLMError(f"LLM completion failed: {e}", status_code=status) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        choice = response.choices[0] if response.choices else None
        content = (choice.message.content if choice else None) or FALLBACK_REPLY
        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=content,
            model=resolved_model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            latency_ms=elapsed_ms,
            finish_reason=(choice.finish_reason if choice else "") or "",
        )
