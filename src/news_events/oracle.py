"""
Generative-text backends behind a narrow `generate(prompt) -> text` capability.

Both backends speak the OpenAI chat-completions protocol: Ollama through its
`/v1` compatibility endpoint (event summaries) and Groq (duplicate checks).
Every failure surfaces as `OracleError`; nothing here retries.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from openai import APIConnectionError, APIError, APIStatusError, APITimeoutError, OpenAI

from .config import Settings, get_settings
from .exceptions import OracleError, OracleUnavailableError


class Oracle(Protocol):
    model: str

    def generate(self, prompt: str) -> str:  # pragma: no cover - interface
        ...


def build_client(*, api_key: str, base_url: str, timeout_sec: float) -> OpenAI:
    """Create an OpenAI-compatible client; separated for easier testing."""
    return OpenAI(api_key=api_key, base_url=base_url, timeout=timeout_sec, max_retries=0)


def _response_text_or_raise(response: object, *, step: str) -> str:
    """Extract the first choice's text or raise a clear error when output is missing."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise OracleError(f"{step} response contained no choices.")

    choice = choices[0]
    message = getattr(choice, "message", None)
    text = getattr(message, "content", None)
    if isinstance(text, str) and text.strip():
        return text.strip()

    if getattr(choice, "finish_reason", None) == "length":
        raise OracleError(
            f"{step} response truncated before any text was produced; "
            "raise the output token limit."
        )
    raise OracleError(f"{step} response missing output text.")


def _status_hint(name: str, model: str, status_code: int) -> str:
    if status_code == 401:
        return f"Invalid credential for {name}; check the configured API key."
    if status_code == 429:
        return f"{name} rate limit exceeded. Please wait and retry."
    if status_code == 404:
        return f'Model "{model}" not found on {name}.'
    return ""


class ChatOracle:
    """One OpenAI-compatible chat model used as a prompt → text oracle."""

    def __init__(
        self,
        *,
        name: str,
        model: str,
        base_url: str,
        api_key: str,
        timeout_ms: int,
        options: Optional[Dict[str, Any]] = None,
        client: Optional[OpenAI] = None,
    ) -> None:
        self.name = name
        self.model = model
        self.timeout_ms = timeout_ms
        self._options = dict(options or {})
        self._client = client or build_client(
            api_key=api_key, base_url=base_url, timeout_sec=timeout_ms / 1000
        )

    def generate(self, prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                timeout=self.timeout_ms / 1000,
                **self._options,
            )
        except APITimeoutError as exc:
            raise OracleError(f"{self.name} request timed out after {self.timeout_ms}ms") from exc
        except APIStatusError as exc:
            hint = _status_hint(self.name, self.model, exc.status_code)
            detail = f" - {hint}" if hint else f" - {exc.message}"
            raise OracleError(f"{self.name} request failed: {exc.status_code}{detail}") from exc
        except APIConnectionError as exc:
            raise OracleError(f"{self.name} is unreachable: {exc}") from exc
        except APIError as exc:
            raise OracleError(f"{self.name} request failed: {exc}") from exc
        return _response_text_or_raise(response, step=self.name)


def build_summary_oracle(settings: Optional[Settings] = None) -> ChatOracle:
    """Ollama-backed oracle used for event summaries."""
    settings = settings or get_settings()
    return ChatOracle(
        name="Ollama",
        model=settings.ollama_model,
        base_url=f"{settings.ollama_base_url.rstrip('/')}/v1",
        # Ollama ignores the key but the client requires one.
        api_key="ollama",
        timeout_ms=settings.ollama_timeout_ms,
        options={
            "max_tokens": settings.ollama_num_predict,
            "temperature": settings.ollama_temperature,
            "top_p": settings.ollama_top_p,
            # The /v1 route may ignore options; the Modelfile num_ctx applies then.
            "extra_body": {"options": {"num_ctx": settings.ollama_num_ctx}},
        },
    )


def build_duplicate_oracle(settings: Optional[Settings] = None) -> ChatOracle:
    """
    Groq-backed oracle used for duplicate-source confirmation.

    Raises OracleUnavailableError when GROQ_API_KEY is not configured.
    """
    settings = settings or get_settings()
    if not settings.groq_api_key:
        raise OracleUnavailableError("GROQ_API_KEY is not set")
    return ChatOracle(
        name="Groq",
        model=settings.groq_model,
        base_url=settings.groq_base_url,
        api_key=settings.groq_api_key,
        timeout_ms=settings.groq_timeout_ms,
        options={"temperature": 0.2, "max_tokens": 500, "top_p": 0.9},
    )
