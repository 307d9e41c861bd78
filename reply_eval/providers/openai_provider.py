"""
OpenAI Provider Implementation

Chat completions via the official OpenAI SDK. JSON-schema constrained output
uses Structured Outputs (response_format type "json_schema").

Usage:
    provider = OpenAIProvider(ProviderConfig(api_key="sk-...", model_id="gpt-4o-mini"))
    response = await provider.generate_chat(messages, config=GenerationConfig(max_tokens=200))
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import openai

from utils.exceptions import ProviderError

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


class OpenAIProvider(BaseProvider):
    """
    OpenAI chat completion provider.

    The API key comes from the injected ProviderConfig; the SDK's own
    environment lookup is never relied on.
    """

    def __init__(
        self,
        provider_config: ProviderConfig,
        timeout: float = 120.0,
        client: Any = None,
    ):
        """
        Args:
            provider_config: API key, model id and optional base URL.
            timeout: Request timeout in seconds.
            client: Pre-built AsyncOpenAI-compatible client (tests, proxies).
        """
        super().__init__(provider_config, timeout)
        if client is None:
            if not provider_config.api_key:
                raise ProviderError(
                    "OpenAI API key required. Set OPENAI_API_KEY or pass api_key in ProviderConfig."
                )
            client = openai.AsyncOpenAI(
                api_key=provider_config.api_key,
                base_url=provider_config.base_url,
                timeout=timeout,
            )
        self._client = client

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    def _request_kwargs(
        self, messages: List[Message], cfg: GenerationConfig
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "max_tokens": cfg.max_tokens,
        }
        if cfg.temperature is not None:
            kwargs["temperature"] = cfg.temperature
        if cfg.seed is not None:
            kwargs["seed"] = cfg.seed
        if cfg.response_schema is not None:
            json_schema: Dict[str, Any] = {
                "name": cfg.schema_name,
                "schema": cfg.response_schema,
                "strict": True,
            }
            if cfg.schema_description:
                json_schema["description"] = cfg.schema_description
            kwargs["response_format"] = {"type": "json_schema", "json_schema": json_schema}
        return kwargs

    async def generate_chat(
        self,
        messages: List[Message],
        config: Optional[GenerationConfig] = None,
    ) -> GenerationResponse:
        """Generate text from a multi-turn conversation."""
        cfg = config or GenerationConfig()

        try:
            start_time = time.perf_counter()
            completion = await self._client.chat.completions.create(
                **self._request_kwargs(messages, cfg)
            )
            duration_ms = (time.perf_counter() - start_time) * 1000

            text = ""
            if completion.choices:
                text = completion.choices[0].message.content or ""

            usage = getattr(completion, "usage", None)
            prompt_tokens = getattr(usage, "prompt_tokens", 0) if usage else 0
            completion_tokens = getattr(usage, "completion_tokens", 0) if usage else 0

            result = GenerationResponse(
                text=text,
                model=self.model,
                provider=self.provider_type,
                metrics=GenerationMetrics(
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                    total_tokens=prompt_tokens + completion_tokens,
                    total_duration_ms=duration_ms,
                ),
                timestamp=datetime.now(),
            )
            self._record_request(result)
            return result

        except Exception as e:
            logger.error(f"OpenAI chat failed: {e}")
            return self._error_response(e)


# Register with factory
ProviderFactory.register("openai", OpenAIProvider)
