# heavythink/providers.py
"""
Centralized API key and provider configuration.

Fill in at least one provider below, or export the matching environment
variable (GOOGLE_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY, XAI_API_KEY).

Every agent in a run talks to the same model. The default is Gemini 2.5 Pro
through Google's OpenAI-compatible endpoint; any model below works because
the orchestration only needs "turns in, text out".

SETUP:
  1. Get an API key from a provider dashboard:
     - Google:    https://aistudio.google.com/apikey
     - Anthropic: https://console.anthropic.com/settings/keys
     - OpenAI:    https://platform.openai.com/api-keys
     - xAI:       https://console.x.ai/

  2. Paste it below (replace the "YOUR_..._HERE" placeholder)

  3. Run:  heavy --config heavy.yaml
"""

# ═══════════════════════════════════════════════════════════════════
# PROVIDER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════

PROVIDERS = {
    # ── Google ─────────────────────────────────────────────────────
    # Models: gemini-2.5-pro, gemini-2.5-flash, gemini-2.0-flash
    "google": {
        "api_key": "YOUR_GOOGLE_API_KEY_HERE",
        "default_model": "gemini-2.5-pro",
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai",
    },

    # ── Anthropic ──────────────────────────────────────────────────
    # Models: claude-opus-4-20250514, claude-sonnet-4-20250514
    "anthropic": {
        "api_key": "YOUR_ANTHROPIC_API_KEY_HERE",
        "default_model": "claude-sonnet-4-20250514",
    },

    # ── OpenAI ─────────────────────────────────────────────────────
    # Models: gpt-4o, gpt-4o-mini, o4-mini, o3
    "openai": {
        "api_key": "YOUR_OPENAI_API_KEY_HERE",
        "default_model": "gpt-4o",
    },

    # ── xAI ────────────────────────────────────────────────────────
    # Models: grok-4-1-fast-reasoning, grok-4-1-fast-non-reasoning
    "xai": {
        "api_key": "YOUR_XAI_API_KEY_HERE",
        "default_model": "grok-4-1-fast-non-reasoning",
        "base_url": "https://api.x.ai/v1",
    },
}


# ═══════════════════════════════════════════════════════════════════
# GLOBAL DEFAULT MODEL (optional)
# ═══════════════════════════════════════════════════════════════════
# Provider is auto-detected from the model name. A `model:` key in the
# YAML run config still takes priority over this.
#
#   DEFAULT_MODEL = "gemini-2.5-pro"             # -> Google
#   DEFAULT_MODEL = "claude-sonnet-4-20250514"   # -> Anthropic

DEFAULT_MODEL = None
