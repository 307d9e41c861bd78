"""
Base Provider Abstraction Layer

Defines the interface that all LLM providers must implement. The scoring
metrics and workflows only ever talk to a BaseProvider, so the concrete
backend (OpenAI, Ollama, Gemini) is chosen by configuration.

Usage:
    from reply_eval.providers import OpenAIProvider, ProviderConfig

    provider = OpenAIProvider(ProviderConfig(api_key="sk-...", model_id="gpt-4o-mini"))
    response = await provider.generate_chat(
        [Message("user", "Reply to this review: ...")],
        config=GenerationConfig(max_tokens=400),
    )
    print(response.text)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from utils.exceptions import ProviderError

logger = logging.getLogger(__name__)


class ProviderType(Enum):
    """Supported LLM provider types."""

    OPENAI = auto()
    OLLAMA = auto()
    GOOGLE = auto()


@dataclass(frozen=True)
class ProviderConfig:
    """Explicit connection settings, injected at construction."""

    api_key: Optional[str]
    model_id: str
    base_url: Optional[str] = None

    def __repr__(self) -> str:
        masked = "***" if self.api_key else None
        return (
            f"ProviderConfig(api_key={masked!r}, model_id={self.model_id!r}, "
            f"base_url={self.base_url!r})"
        )


@dataclass
class GenerationConfig:
    """Configuration for a single generation request."""

    temperature: Optional[float] = None  # None = provider default
    max_tokens: int = 1024
    # JSON schema the output must conform to; None = free text
    response_schema: Optional[Dict[str, Any]] = None
    schema_name: str = "response"
    schema_description: str = ""
    seed: Optional[int] = None


@dataclass
class GenerationMetrics:
    """Token usage and timing from a generation request."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    total_duration_ms: float = 0.0


@dataclass
class GenerationResponse:
    """Response from a generation request."""

    text: str
    model: str
    provider: ProviderType
    metrics: GenerationMetrics = field(default_factory=GenerationMetrics)
    timestamp: datetime = field(default_factory=datetime.now)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """Whether the generation succeeded."""
        return self.error is None and len(self.text) > 0


@dataclass
class Message:
    """A single message in a conversation."""

    role: str  # "system", "user", "assistant"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class BaseProvider(ABC):
    """
    Abstract base class for LLM providers.

    All providers must implement:
    - generate_chat(): Multi-turn conversation, optionally JSON-schema constrained
    - provider_type: Which backend this is

    Transport failures are reported through GenerationResponse.error rather
    than raised, so callers handle one failure shape.
    """

    def __init__(self, provider_config: ProviderConfig, timeout: float = 120.0):
        """
        Args:
            provider_config: API key, model id and optional base URL.
            timeout: Request timeout in seconds.
        """
        self.provider_config = provider_config
        self.timeout = timeout
        self._request_count = 0
        self._total_tokens = 0

    @property
    def model(self) -> str:
        return self.provider_config.model_id

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Return the provider type enum."""
        ...

    @abstractmethod
    async def generate_chat(
        self,
        messages: List[Message],
        config: Optional[GenerationConfig] = None,
    ) -> GenerationResponse:
        """
        Generate text from a multi-turn conversation.

        Args:
            messages: List of Message objects (system, user, assistant).
            config: Generation settings, including an optional response schema.

        Returns:
            GenerationResponse with text, metrics, and metadata.
        """
        ...

    async def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
    ) -> GenerationResponse:
        """Generate text from a single user prompt."""
        return await self.generate_chat([Message("user", prompt)], config=config)

    def get_stats(self) -> Dict[str, Any]:
        """Get usage statistics for this provider instance."""
        return {
            "model": self.model,
            "provider": self.provider_type.name,
            "request_count": self._request_count,
            "total_tokens": self._total_tokens,
        }

    def _record_request(self, response: GenerationResponse) -> None:
        """Record metrics from a request."""
        self._request_count += 1
        self._total_tokens += response.metrics.total_tokens

    def _error_response(self, error: Exception) -> GenerationResponse:
        return GenerationResponse(
            text="",
            model=self.model,
            provider=self.provider_type,
            error=str(error) or type(error).__name__,
        )


class ProviderFactory:
    """
    Factory for creating provider instances.

    Usage:
        provider = ProviderFactory.create("openai", ProviderConfig(None, "gpt-4o-mini"))
    """

    _registry: Dict[str, type] = {}

    @classmethod
    def register(cls, name: str, provider_class: type) -> None:
        """Register a provider class."""
        cls._registry[name.lower()] = provider_class

    @classmethod
    def create(
        cls,
        provider_name: str,
        provider_config: ProviderConfig,
        **kwargs: Any,
    ) -> BaseProvider:
        """
        Create a provider instance.

        Args:
            provider_name: Provider name (openai, ollama, google).
            provider_config: Connection settings.
            **kwargs: Provider-specific arguments.

        Returns:
            Configured provider instance.

        Raises:
            ProviderError: If provider is not registered.
        """
        provider_class = cls._registry.get(provider_name.lower())
        if provider_class is None:
            available = ", ".join(sorted(cls._registry.keys()))
            raise ProviderError(
                f"Unknown provider '{provider_name}'. Available: {available}"
            )
        return provider_class(provider_config, **kwargs)

    @classmethod
    def available_providers(cls) -> List[str]:
        """List registered provider names."""
        return sorted(cls._registry.keys())
