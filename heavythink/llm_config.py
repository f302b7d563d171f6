# heavythink/llm_config.py
"""
LLM provider/model configuration — reads from providers.py.

Environment variables override the keys in providers.py.

PROVIDER INFERENCE (from model name):
  1. "gemini-*" -> google
  2. "claude-*" -> anthropic
  3. "grok-*" -> xai
  4. "gpt-*", "o1", "o3", "o4" -> openai
"""

from __future__ import annotations

import os
from typing import Optional

from heavythink.providers import PROVIDERS, DEFAULT_MODEL


def infer_provider_from_model(model: Optional[str]) -> str:
    """Infer provider from model name."""
    if not model:
        return "unknown"

    m = model.lower().strip()

    if m.startswith("gemini"):
        return "google"
    if "claude" in m:
        return "anthropic"
    if m.startswith("grok"):
        return "xai"

    # gpt-*, o-series and anything unrecognised go through the OpenAI SDK
    return "openai"


PROVIDER_BASE_URLS = {
    "google": "https://generativelanguage.googleapis.com/v1beta/openai",
    "anthropic": None,  # Native SDK
    "openai": None,
    "xai": "https://api.x.ai/v1",
}

ENV_KEYS = {
    "google": "GOOGLE_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "xai": "XAI_API_KEY",
}


def is_key_configured(key: Optional[str]) -> bool:
    """Check if an API key is a real key (not a placeholder)."""
    if not key:
        return False
    placeholders = ("YOUR_", "REPLACE_", "PASTE_", "INSERT_", "sk-xxx", "xai-xxx")
    return not key.startswith(placeholders)


class LLMConfig:
    """LLM configuration reading from providers.py and the environment."""

    DEFAULT_MODELS = {
        "google": "gemini-2.5-pro",
        "anthropic": "claude-sonnet-4-20250514",
        "openai": "gpt-4o",
        "xai": "grok-4-1-fast-non-reasoning",
    }

    def __init__(self, providers: Optional[dict] = None, default_model: Optional[str] = None):
        self._providers = providers if providers is not None else PROVIDERS

        self._keys: dict[str, Optional[str]] = {}
        self._base_urls: dict[str, Optional[str]] = {}
        self._models: dict[str, Optional[str]] = {}

        for name, cfg in self._providers.items():
            self._keys[name] = cfg.get("api_key")
            self._base_urls[name] = cfg.get("base_url") or PROVIDER_BASE_URLS.get(name)
            self._models[name] = cfg.get("default_model")

        for provider, env_var in ENV_KEYS.items():
            env_key = os.getenv(env_var)
            if env_key and is_key_configured(env_key):
                self._keys[provider] = env_key

        explicit_model = default_model or DEFAULT_MODEL or os.getenv("HEAVY_LLM_MODEL")

        if explicit_model:
            self._llm_model = explicit_model
            self._llm_provider = infer_provider_from_model(explicit_model)
        else:
            # First configured provider wins; google when nothing is configured
            self._llm_provider = "google"
            self._llm_model = self._models.get("google") or self.DEFAULT_MODELS["google"]

            for provider in ["google", "anthropic", "openai", "xai"]:
                if is_key_configured(self._keys.get(provider)):
                    self._llm_provider = provider
                    self._llm_model = (
                        self._models.get(provider)
                        or self.DEFAULT_MODELS.get(provider)
                    )
                    break

    @property
    def llm_model(self) -> str:
        return self._llm_model

    @property
    def llm_provider(self) -> str:
        return self._llm_provider

    @property
    def llm_api_key(self) -> Optional[str]:
        return self.get_api_key_for_provider(self._llm_provider)

    def get_api_key_for_provider(self, provider: str) -> Optional[str]:
        return self._keys.get(provider)

    def get_base_url_for_provider(self, provider: str) -> Optional[str]:
        if provider == "anthropic":
            return None
        return self._base_urls.get(provider)

    def validate(self, provider: Optional[str] = None) -> None:
        provider = provider or self.llm_provider
        if is_key_configured(self.get_api_key_for_provider(provider)):
            return
        configured = [p for p, k in self._keys.items() if is_key_configured(k)]
        if configured:
            raise ValueError(
                f"No API key for provider '{provider}'. "
                f"Configured providers: {configured}. "
                f"Set {ENV_KEYS.get(provider, 'the API key')} or edit heavythink/providers.py."
            )
        raise ValueError(
            "No API keys configured!\n\n"
            "Export GOOGLE_API_KEY (or another provider key), or edit\n"
            "heavythink/providers.py and replace the placeholder keys.\n\n"
            "Get keys from:\n"
            "  Google:    https://aistudio.google.com/apikey\n"
            "  Anthropic: https://console.anthropic.com/settings/keys\n"
            "  OpenAI:    https://platform.openai.com/api-keys\n"
            "  xAI:       https://console.x.ai/"
        )


llm_config = LLMConfig()
