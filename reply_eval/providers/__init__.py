"""
LLM Provider Abstraction Layer

Unified interface for the model backends used by the scoring metrics and
the reply workflows (OpenAI, Ollama, Google Gemini).

Usage:
    from reply_eval.providers import ProviderConfig, ProviderFactory

    provider = ProviderFactory.create(
        "openai", ProviderConfig(api_key="sk-...", model_id="gpt-4o-mini")
    )
    response = await provider.generate("Reply to this review")
"""

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
from .google_provider import GoogleProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = [
    # Base classes and types
    "BaseProvider",
    "GenerationConfig",
    "GenerationMetrics",
    "GenerationResponse",
    "Message",
    "ProviderConfig",
    "ProviderFactory",
    "ProviderType",
    # Providers
    "OpenAIProvider",
    "OllamaProvider",
    "GoogleProvider",
]
