"""
Ollama Provider Implementation

Local LLM inference via the Ollama API. Schema-constrained output is passed
through Ollama's structured outputs (the `format` parameter accepts a JSON
schema).

Usage:
    provider = OllamaProvider(ProviderConfig(api_key=None, model_id="qwen2.5:32b"))
    response = await provider.generate_chat(messages)
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ollama import AsyncClient

from .base import (
    BaseProvider,
    GenerationConfig,
    GenerationMetrics,
    GenerationResponse,
    Message,
    ProviderConfig,
    ProviderFactory,
    ProviderType,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:11434"


class OllamaProvider(BaseProvider):
    """
    Ollama provider for local LLM inference.

    Connects to the server at ProviderConfig.base_url (default: http://localhost:11434).
    """

    def __init__(
        self,
        provider_config: ProviderConfig,
        timeout: float = 120.0,
        client: Any = None,
    ):
        """
        Args:
            provider_config: Model name and optional server URL.
            timeout: Request timeout in seconds.
            client: Pre-built AsyncClient-compatible client.
        """
        super().__init__(provider_config, timeout)
        self.host = provider_config.base_url or DEFAULT_HOST
        self._client = client or AsyncClient(host=self.host, timeout=timeout)

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OLLAMA

    async def generate_chat(
        self,
        messages: List[Message],
        config: Optional[GenerationConfig] = None,
    ) -> GenerationResponse:
        """Generate text from a multi-turn conversation."""
        cfg = config or GenerationConfig()

        options: Dict[str, Any] = {"num_predict": cfg.max_tokens}
        if cfg.temperature is not None:
            options["temperature"] = cfg.temperature
        if cfg.seed is not None:
            options["seed"] = cfg.seed

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "options": options,
            "stream": False,
        }
        if cfg.response_schema is not None:
            kwargs["format"] = cfg.response_schema

        try:
            response = await self._client.chat(**kwargs)

            result = GenerationResponse(
                text=response["message"]["content"] or "",
                model=self.model,
                provider=self.provider_type,
                metrics=self._extract_metrics(response),
                timestamp=datetime.now(),
            )
            self._record_request(result)
            return result

        except Exception as e:
            logger.error(f"Ollama chat failed: {e}")
            return self._error_response(e)

    def _extract_metrics(self, response: Any) -> GenerationMetrics:
        """Extract token counts and duration from an Ollama response."""
        prompt_tokens = response.get("prompt_eval_count") or 0
        completion_tokens = response.get("eval_count") or 0

        # Ollama returns durations in nanoseconds
        total_ns = response.get("total_duration") or 0

        return GenerationMetrics(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            total_duration_ms=total_ns / 1_000_000,
        )


# Register with factory
ProviderFactory.register("ollama", OllamaProvider)
