"""
Centralized configuration for review-reply-eval.

Loads environment variables from .env and provides validated paths and settings.
This is the only module that reads the environment; scoring components receive
an explicit ProviderConfig built here (or by the CLI).
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# -- Paths -------------------------------------------------------------------


STATE_DIR = Path(os.getenv("REPLY_EVAL_STATE_DIR", str(Path.home() / ".reply_eval")))
LOG_DIR = STATE_DIR / "logs"

# -- Settings -----------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DEBUG = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

DEFAULT_PROVIDER = os.getenv("REPLY_EVAL_PROVIDER", "openai")
DEFAULT_MODEL = os.getenv("REPLY_EVAL_MODEL", "gpt-4o-mini")
DEFAULT_CONCURRENCY = int(os.getenv("REPLY_EVAL_CONCURRENCY", "10"))

# Environment variable holding the API key for each provider
API_KEY_VARS = {
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "ollama": "",
}

BASE_URL_VARS = {
    "openai": "OPENAI_BASE_URL",
    "google": "",
    "ollama": "OLLAMA_HOST",
}


def provider_config_from_env(provider: str = DEFAULT_PROVIDER, model: Optional[str] = None):
    """Build a ProviderConfig for the given provider from environment variables."""
    from reply_eval.providers.base import ProviderConfig

    provider = provider.lower()
    key_var = API_KEY_VARS.get(provider, "")
    url_var = BASE_URL_VARS.get(provider, "")
    return ProviderConfig(
        api_key=os.getenv(key_var) if key_var else None,
        model_id=model or DEFAULT_MODEL,
        base_url=(os.getenv(url_var) or None) if url_var else None,
    )


def validate_config() -> None:
    """Validate that critical paths exist or can be created."""
    for path_var in [STATE_DIR, LOG_DIR]:
        if not path_var.exists():
            try:
                path_var.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                print(f"Warning: Could not create {path_var}: {e}")
