# heavythink/llm_client.py
"""
Completion client: role-tagged turns + system instruction in, text out.

Supports per-instance configuration:
    client = LLMClient()  # Uses global defaults (gemini-2.5-pro)
    client = LLMClient(model="claude-sonnet-4-20250514")
    client = LLMClient(provider="xai", model="grok-4-fast-reasoning")

Every failure (transport, auth, quota, empty output) is raised as
``UpstreamError``. The SDKs are built with ``max_retries=0``: nothing in the
pipeline retries.
"""

from __future__ import annotations

import base64
from typing import Any, Optional, Sequence

from heavythink import log
from heavythink.errors import UpstreamError
from heavythink.llm_config import llm_config, infer_provider_from_model
from heavythink.memory import ASSISTANT, Part, Turn


def _get_raw_client(
    provider: str,
    api_key: Optional[str],
    base_url: Optional[str] = None
) -> Any:
    """
    Instantiate the appropriate SDK client.

    Args:
        provider: Provider ID (google, anthropic, openai, xai)
        api_key: API key for the provider
        base_url: Base URL for OpenAI-compatible providers
    """
    import httpx

    if provider == "anthropic":
        try:
            import anthropic
        except ImportError:
            raise RuntimeError(
                "anthropic package not installed. "
                "Install with: pip install anthropic"
            )
        return anthropic.Anthropic(
            api_key=api_key,
            timeout=httpx.Timeout(600.0, connect=30.0),
            max_retries=0,
        )

    # All other providers use the OpenAI-compatible API
    try:
        import openai
    except ImportError:
        raise RuntimeError(
            "openai package not installed. "
            "Install with: pip install openai"
        )
    return openai.OpenAI(
        api_key=api_key,
        base_url=base_url,
        timeout=httpx.Timeout(600.0, connect=30.0),
        max_retries=0,
    )


class CompletionResult(str):
    """
    String subclass carrying truncation metadata.

    Works transparently in f-strings, joins, isinstance checks.
    Access `.truncated` and `.stop_reason` when you need them.
    """

    def __new__(cls, text: str, truncated: bool = False, stop_reason: str = ""):
        inst = super().__new__(cls, text)
        inst.truncated = truncated
        inst.stop_reason = stop_reason
        return inst

    def __repr__(self) -> str:
        flag = " [TRUNCATED]" if self.truncated else ""
        return f"CompletionResult({len(self)} chars{flag})"


# ── Part → provider content blocks ──────────────────────────────────────

def _data_uri(part: Part) -> str:
    return f"data:{part.mime_type};base64,{part.data}"


def _openai_block(part: Part) -> dict:
    if not part.is_binary:
        return {"type": "text", "text": part.text}
    if part.mime_type.startswith("image/"):
        return {"type": "image_url", "image_url": {"url": _data_uri(part)}}
    return {
        "type": "file",
        "file": {"filename": "attachment", "file_data": _data_uri(part)},
    }


def _anthropic_block(part: Part) -> dict:
    if not part.is_binary:
        return {"type": "text", "text": part.text}
    source = {"type": "base64", "media_type": part.mime_type, "data": part.data}
    if part.mime_type.startswith("image/"):
        return {"type": "image", "source": source}
    if part.mime_type == "application/pdf":
        return {"type": "document", "source": source}
    if part.mime_type.startswith("text/"):
        text = base64.b64decode(part.data).decode("utf-8", errors="replace")
        return {"type": "text", "text": text}
    return {"type": "text", "text": f"[attachment of type {part.mime_type} omitted]"}


class LLMClient:
    """
    Completion interface over one model.

    Provider selection via model name:
        - Model starts with "gemini" → Google (OpenAI-compatible)
        - Model contains "claude" → Anthropic (native SDK)
        - Model starts with "grok" → xAI (OpenAI-compatible)
        - Anything else → OpenAI
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        max_tokens: int = 16384,
    ):
        if model and not provider:
            provider = infer_provider_from_model(model)
        else:
            provider = provider or llm_config.llm_provider

        self._provider = provider
        self._model = model or llm_config.llm_model
        self._api_key = api_key or llm_config.get_api_key_for_provider(self._provider)
        if not api_key:
            llm_config.validate(self._provider)
        self._base_url = llm_config.get_base_url_for_provider(self._provider)
        self.max_tokens = max_tokens

        self._client = _get_raw_client(
            self._provider,
            self._api_key,
            self._base_url
        )

    @property
    def model(self) -> str:
        return self._model

    @property
    def provider(self) -> str:
        return self._provider

    def complete(
        self,
        history: Sequence[Turn],
        parts: Sequence[Part],
        system: str,
        max_tokens: Optional[int] = None,
    ) -> CompletionResult:
        """
        Generate a completion for ``parts`` as the next user turn after ``history``.

        Args:
            history: Prior turns (never the turn being answered)
            parts: Parts of the current user turn
            system: System instruction
            max_tokens: Maximum tokens to generate

        Returns:
            CompletionResult with text and metadata

        Raises:
            UpstreamError: on any SDK, transport or malformed-response failure
        """
        max_tokens = max_tokens or self.max_tokens
        try:
            if self._provider == "anthropic":
                result = self._complete_anthropic(history, parts, system, max_tokens)
            else:
                result = self._complete_openai(history, parts, system, max_tokens)
        except UpstreamError:
            raise
        except Exception as e:
            if not self._is_upstream_failure(e):
                raise
            raise UpstreamError(
                f"{self._provider}/{self._model}: {e}",
                provider=self._provider,
                original_error=e,
            ) from e

        if not result.strip():
            raise UpstreamError(
                f"{self._provider}/{self._model}: empty completion "
                f"(stop_reason={result.stop_reason!r})",
                provider=self._provider,
            )
        if result.truncated:
            log.warn(f"{self._model}: response truncated at {max_tokens} tokens")
        return result

    def _is_upstream_failure(self, exc: BaseException) -> bool:
        """SDK/transport errors and malformed response shapes."""
        import httpx

        if isinstance(exc, (httpx.HTTPError, IndexError, AttributeError, KeyError)):
            return True
        if self._provider == "anthropic":
            import anthropic
            return isinstance(exc, anthropic.AnthropicError)
        import openai
        return isinstance(exc, openai.OpenAIError)

    def _complete_anthropic(
        self,
        history: Sequence[Turn],
        parts: Sequence[Part],
        system: str,
        max_tokens: int
    ) -> CompletionResult:
        """Anthropic native SDK completion."""
        messages = [
            {
                "role": turn.role,
                "content": [_anthropic_block(p) for p in turn.parts],
            }
            for turn in history
        ]
        messages.append({"role": "user", "content": [_anthropic_block(p) for p in parts]})

        kw: dict = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            kw["system"] = system

        resp = self._client.messages.create(**kw)
        text = "".join(
            block.text for block in resp.content if getattr(block, "type", "") == "text"
        )
        stop = resp.stop_reason or ""

        return CompletionResult(
            text,
            truncated=(stop == "max_tokens"),
            stop_reason=stop
        )

    @staticmethod
    def _is_o_series(model: str) -> bool:
        """Detect OpenAI o-series reasoning models (o1, o3, o4-mini, etc.)."""
        m = model.lower()
        return bool(m.startswith("o") and len(m) > 1 and m[1:2].isdigit())

    def _complete_openai(
        self,
        history: Sequence[Turn],
        parts: Sequence[Part],
        system: str,
        max_tokens: int
    ) -> CompletionResult:
        """OpenAI / OpenAI-compatible completion (Google, xAI)."""
        is_o = self._is_o_series(self._model)

        msgs: list[dict] = []
        if system:
            # o-series models use "developer" role instead of "system"
            msgs.append({"role": "developer" if is_o else "system", "content": system})
        for turn in history:
            if turn.role == ASSISTANT:
                msgs.append({"role": "assistant", "content": turn.text})
            else:
                msgs.append({
                    "role": "user",
                    "content": [_openai_block(p) for p in turn.parts],
                })
        msgs.append({"role": "user", "content": [_openai_block(p) for p in parts]})

        kw: dict = {
            "model": self._model,
            "messages": msgs,
        }
        if is_o:
            kw["max_completion_tokens"] = max_tokens
        else:
            kw["max_tokens"] = max_tokens

        resp = self._client.chat.completions.create(**kw)

        text = resp.choices[0].message.content or ""
        stop = resp.choices[0].finish_reason or ""

        return CompletionResult(
            text,
            truncated=(stop == "length"),
            stop_reason=stop
        )
