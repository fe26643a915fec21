from __future__ import annotations

import math
import os
import time
from dataclasses import dataclass
from typing import Any

import requests

from chatdesk.config import is_truthy
from chatdesk.logging import get_logger

from .errors import UpstreamError
from .records import ContextMessage, Role


logger = get_logger(__name__)


@dataclass(frozen=True)
class Completion:
    text: str
    provider: str
    model: str | None = None
    confidence: float | None = None
    meta: dict[str, Any] | None = None


_STUB_REPLY = (
    "Thanks for your message! The assistant is running in stub mode. "
    "Set `CHATDESK_COMPLETION_PROVIDER=ollama` or `CHATDESK_COMPLETION_PROVIDER=openai` "
    "to connect a model."
)


def _normalize_openai_base_url(value: str) -> str:
    """Normalize OpenAI-style base URLs.

    Accepts values like:
      - http://host:8000
      - http://host:8000/v1
      - http://host:8000/v1/chat/completions

    Returns the base URL without the /v1 suffix or endpoint path.
    """

    raw = (value or "").strip().rstrip("/")
    if not raw:
        return ""

    for suffix in ("/v1/chat/completions", "/v1/models", "/v1"):
        if raw.endswith(suffix):
            raw = raw[: -len(suffix)].rstrip("/")
            break

    return raw


def _provider() -> str:
    return (os.getenv("CHATDESK_COMPLETION_PROVIDER") or "stub").strip().lower()


def _timeout_seconds() -> float:
    raw = (os.getenv("CHATDESK_COMPLETION_TIMEOUT_SECONDS") or "").strip()
    if not raw:
        return 30.0
    try:
        return max(1.0, float(raw))
    except ValueError:
        return 30.0


def _history_limit() -> int:
    raw = (os.getenv("CHATDESK_HISTORY_LIMIT") or "").strip()
    if not raw:
        return 20
    try:
        return max(1, int(raw))
    except ValueError:
        return 20


def _temperature() -> float | None:
    raw = (os.getenv("CHATDESK_TEMPERATURE") or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return min(max(value, 0.0), 2.0)


def _ollama_url() -> str:
    return (os.getenv("CHATDESK_OLLAMA_URL") or "http://127.0.0.1:11434").rstrip("/")


def _ollama_model() -> str:
    return (os.getenv("CHATDESK_OLLAMA_MODEL") or "llama3.2").strip()


def _openai_url() -> str:
    raw = os.getenv("CHATDESK_OPENAI_URL") or "http://127.0.0.1:8000"
    normalized = _normalize_openai_base_url(raw)
    return (normalized or raw).rstrip("/")


def _openai_model() -> str | None:
    raw = (os.getenv("CHATDESK_OPENAI_MODEL") or "").strip()
    return raw or None


def _openai_headers() -> dict[str, str]:
    api_key = (os.getenv("CHATDESK_OPENAI_API_KEY") or "").strip()
    if not api_key:
        return {}
    return {"Authorization": f"Bearer {api_key}"}


def system_prompt() -> str:
    override = (os.getenv("CHATDESK_SYSTEM_PROMPT") or "").strip()
    if override:
        return override

    identity = (os.getenv("CHATDESK_ASSISTANT_NAME") or "the support team").strip() or "the support team"
    return (
        f"You are a friendly customer support assistant for {identity}.\n"
        "Answer the visitor's questions concisely and stay on topic.\n"
        "Use earlier turns of the conversation when they are relevant.\n"
        "If you do not know an answer, say so and offer to connect the visitor with a human.\n"
        "Never invent prices, policies or order details."
    )


def build_messages(context: list[ContextMessage]) -> list[dict[str, str]]:
    """Map stored turns onto chat-completions messages."""

    messages = [{"role": "system", "content": system_prompt()}]
    for item in context[-_history_limit():]:
        role = "assistant" if item.role is Role.bot else "user"
        messages.append({"role": role, "content": item.text})
    return messages


def coerce_confidence(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("discarding non-numeric confidence %r", value)
        return None
    if math.isnan(number) or not 0.0 <= number <= 1.0:
        logger.warning("discarding out-of-range confidence %r", value)
        return None
    return number


def _confidence_from_logprobs(choice: dict[str, Any]) -> float | None:
    logprobs = choice.get("logprobs")
    if not isinstance(logprobs, dict):
        return None
    tokens = logprobs.get("content")
    if not isinstance(tokens, list) or not tokens:
        return None
    values = [
        token.get("logprob")
        for token in tokens
        if isinstance(token, dict) and isinstance(token.get("logprob"), (int, float))
    ]
    if not values:
        return None
    return coerce_confidence(sum(math.exp(v) for v in values) / len(values))


def _post_json(
    url: str,
    payload: dict[str, Any],
    *,
    provider: str,
    timeout: float,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    try:
        response = requests.post(url, json=payload, headers=headers or {}, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.Timeout as exc:
        raise UpstreamError(
            f"{provider} request timed out after {timeout:.0f}s", reason="timeout", provider=provider
        ) from exc
    except requests.exceptions.ConnectionError as exc:
        raise UpstreamError(
            f"{provider} is unreachable: {exc}", reason="connection", provider=provider
        ) from exc
    except requests.exceptions.RequestException as exc:
        raise UpstreamError(f"{provider} request failed: {exc}", reason="http", provider=provider) from exc

    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamError(
            f"{provider} returned a non-JSON body", reason="malformed", provider=provider
        ) from exc
    if not isinstance(data, dict):
        raise UpstreamError(f"{provider} returned an unexpected payload", reason="malformed", provider=provider)
    return data


def _complete_ollama(messages: list[dict[str, str]], *, timeout: float) -> Completion:
    url = f"{_ollama_url()}/api/chat"
    model = _ollama_model()
    payload: dict[str, Any] = {"model": model, "messages": messages, "stream": False}
    temperature = _temperature()
    if temperature is not None:
        payload["options"] = {"temperature": temperature}

    started = time.monotonic()
    data = _post_json(url, payload, provider="ollama", timeout=timeout)
    elapsed_ms = int((time.monotonic() - started) * 1000)

    message = data.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise UpstreamError("ollama returned no message content", reason="malformed", provider="ollama")

    return Completion(
        text=content.strip(),
        provider="ollama",
        model=model,
        meta={"url": url, "elapsed_ms": elapsed_ms},
    )


def _complete_openai(messages: list[dict[str, str]], *, timeout: float) -> Completion:
    url = f"{_openai_url()}/v1/chat/completions"
    model = _openai_model()
    payload: dict[str, Any] = {"messages": messages, "stream": False}
    if model:
        payload["model"] = model
    temperature = _temperature()
    if temperature is not None:
        payload["temperature"] = temperature
    want_logprobs = is_truthy(os.getenv("CHATDESK_COMPLETION_LOGPROBS"))
    if want_logprobs:
        payload["logprobs"] = True

    started = time.monotonic()
    data = _post_json(url, payload, provider="openai", timeout=timeout, headers=_openai_headers())
    elapsed_ms = int((time.monotonic() - started) * 1000)

    choices = data.get("choices")
    choice = choices[0] if isinstance(choices, list) and choices else None
    if not isinstance(choice, dict):
        raise UpstreamError("openai response has no choices", reason="malformed", provider="openai")
    message = choice.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise UpstreamError("openai returned no message content", reason="malformed", provider="openai")

    return Completion(
        text=content.strip(),
        provider="openai",
        model=str(data.get("model") or model or "") or None,
        confidence=_confidence_from_logprobs(choice) if want_logprobs else None,
        meta={"url": url, "elapsed_ms": elapsed_ms},
    )


def complete_chat(context: list[ContextMessage], *, timeout: float | None = None) -> Completion:
    """Ask the configured backend for the next bot turn.

    Raises
    ------
    UpstreamError
        On timeouts, transport or HTTP errors and malformed responses.
    """

    provider = _provider()
    limit = _timeout_seconds() if timeout is None else max(1.0, float(timeout))
    messages = build_messages(context)

    if provider == "ollama":
        return _complete_ollama(messages, timeout=limit)
    if provider in {"openai", "vllm"}:
        return _complete_openai(messages, timeout=limit)
    if provider != "stub":
        logger.warning("unknown completion provider %r, using stub", provider)
    return Completion(text=_STUB_REPLY, provider="stub")
