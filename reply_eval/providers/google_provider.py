"""
Google Gemini Provider Implementation

Cloud LLM inference via the Google GenAI SDK. Schema-constrained output uses
response_mime_type="application/json" with a JSON schema.

Usage:
    provider = GoogleProvider(ProviderConfig(api_key="...", model_id="gemini-2.5-flash"))
    response = await provider.generate_chat(messages)
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

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


class GoogleProvider(BaseProvider):
    """
    Google Gemini provider for cloud LLM inference.

    Requires an API key in the injected ProviderConfig.
    """

    def __init__(
        self,
        provider_config: ProviderConfig,
        timeout: float = 120.0,
        client: Any = None,
    ):
        """
        Args:
            provider_config: API key and Gemini model name (e.g., "gemini-2.5-flash").
            timeout: Request timeout in seconds.
            client: Pre-built genai.Client-compatible client.
        """
        super().__init__(provider_config, timeout)
        self._client: Any = client
        self._types: Any = None

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GOOGLE

    def _ensure_client(self) -> None:
        """Lazily initialize the Google GenAI client."""
        if self._types is None:
            from google.genai import types

            self._types = types

        if self._client is not None:
            return

        if not self.provider_config.api_key:
            raise ProviderError(
                "Google API key required. Set GOOGLE_API_KEY or pass api_key in ProviderConfig."
            )

        from google import genai

        self._client = genai.Client(api_key=self.provider_config.api_key)

    def _build_config(self, cfg: GenerationConfig, system_instruction: Optional[str]) -> Any:
        generation_config: Dict[str, Any] = {"max_output_tokens": cfg.max_tokens}
        if cfg.temperature is not None:
            generation_config["temperature"] = cfg.temperature
        if cfg.seed is not None:
            generation_config["seed"] = cfg.seed
        if cfg.response_schema is not None:
            generation_config["response_mime_type"] = "application/json"
            generation_config["response_json_schema"] = cfg.response_schema
        if system_instruction:
            generation_config["system_instruction"] = system_instruction
        return self._types.GenerateContentConfig(**generation_config)

    async def generate_chat(
        self,
        messages: List[Message],
        config: Optional[GenerationConfig] = None,
    ) -> GenerationResponse:
        """Generate text from a multi-turn conversation."""
        cfg = config or GenerationConfig()

        try:
            self._ensure_client()

            # Gemini uses "user" and "model" roles; system text goes in the config
            contents = []
            system_parts = []
            for msg in messages:
                if msg.role == "system":
                    system_parts.append(msg.content)
                elif msg.role == "assistant":
                    contents.append({"role": "model", "parts": [{"text": msg.content}]})
                else:
                    contents.append({"role": "user", "parts": [{"text": msg.content}]})

            start_time = time.perf_counter()
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=self._build_config(cfg, "\n\n".join(system_parts) or None),
            )
            duration_ms = (time.perf_counter() - start_time) * 1000

            usage = getattr(response, "usage_metadata", None)
            prompt_tokens = (getattr(usage, "prompt_token_count", 0) or 0) if usage else 0
            completion_tokens = (
                (getattr(usage, "candidates_token_count", 0) or 0) if usage else 0
            )

            result = GenerationResponse(
                text=response.text or "",
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
            logger.error(f"Google chat failed: {e}")
            return self._error_response(e)


# Register with factory
ProviderFactory.register("google", GoogleProvider)
