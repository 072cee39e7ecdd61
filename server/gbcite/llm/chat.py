from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import requests

from server.gbcite.config import Settings
from server.gbcite.errors import (
    ConfigurationError,
    InvalidCredentialError,
    ProviderError,
    ProviderFaultError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)


@dataclass
class ChatClient:
    """Minimal client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    api_key: str
    base_url: str
    model: str
    temperature: float = 0.3
    max_tokens: int = 4000
    timeout_seconds: float = 60.0
    max_retries: int = 0
    session: requests.Session | None = None

    @classmethod
    def from_settings(cls, settings: Settings, *, session: requests.Session | None = None) -> "ChatClient":
        base_url = (settings.openai_base_url or "").strip()
        logger.debug("Model endpoint config: has_key=%s has_base_url=%s", bool(settings.openai_api_key), bool(base_url))
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required")
        if not base_url:
            raise ConfigurationError("OPENAI_BASE_URL is empty or invalid")
        return cls(
            api_key=settings.openai_api_key,
            base_url=base_url,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
            session=session,
        )

    @property
    def completions_url(self) -> str:
        return self.base_url.rstrip("/") + "/chat/completions"

    def complete(self, *, system: str, user: str) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        http = self.session or requests
        last_err: Exception | None = None
        for attempt in range(self.max_retries + 1):
            if attempt:
                backoff_sleep(attempt - 1)
            try:
                resp = http.post(self.completions_url, headers=headers, json=payload, timeout=self.timeout_seconds)
            except requests.RequestException as e:
                logger.warning("Model endpoint request failed (attempt %d): %s", attempt + 1, type(e).__name__)
                last_err = e
                continue
            return self._read_completion(resp)
        raise ProviderError("Model endpoint request failed after retries") from last_err

    def _read_completion(self, resp) -> str:
        status = int(getattr(resp, "status_code", 200) or 200)
        if status >= 400:
            logger.error("Model endpoint returned HTTP %d for model %s", status, self.model)
            raise _error_for_status(status)
        try:
            data = resp.json() or {}
        except ValueError as e:
            raise ProviderError("Model endpoint returned a non-JSON body", upstream_status=status) from e
        if not isinstance(data, dict):
            raise ProviderError("Model endpoint returned an unexpected payload", upstream_status=status)

        content = _extract_message_content(data)
        content = (content or "").strip()
        if not content:
            err = data.get("error")
            if isinstance(err, dict) and err.get("message"):
                logger.error("Model endpoint error payload: %s", str(err.get("message"))[:500])
            raise ProviderError("Model endpoint returned an empty completion", upstream_status=status)
        return content


def _error_for_status(status: int) -> ProviderError:
    if status in {401, 403}:
        return InvalidCredentialError("Model endpoint rejected the API key", upstream_status=status)
    if status == 429:
        return RateLimitedError("Model endpoint rate limit exceeded", upstream_status=status)
    if status >= 500:
        return ProviderFaultError("Model endpoint server error", upstream_status=status)
    return ProviderError(f"Model endpoint returned HTTP {status}", upstream_status=status)


def backoff_sleep(attempt: int) -> None:
    # basic exponential backoff with cap
    time.sleep(min(8.0, 0.5 * (2**attempt)))


def _join_parts(content: list) -> str | None:
    parts: list[str] = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
            continue
        if isinstance(part, dict):
            text = part.get("text") or part.get("content")
            if isinstance(text, str) and text:
                parts.append(text)
    if parts:
        return "\n".join(parts)
    return None


def _extract_message_content(data: dict) -> str | None:
    choices = data.get("choices") or []
    if not isinstance(choices, list) or not choices:
        return None

    choice = choices[0] or {}
    if not isinstance(choice, dict):
        return None
    message = choice.get("message")
    if isinstance(message, str):
        return message
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return _join_parts(content)

    text = choice.get("text")
    if isinstance(text, str):
        return text
    return None
