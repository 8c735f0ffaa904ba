"""Generative model client: prompt in, raw text out.

Talks to Gemini through its OpenAI-compatible endpoint with the ``openai``
SDK. Calls carry an explicit timeout and are retried at most once, after a
short backoff, when the failure looks transient. Anything else surfaces as
``UpstreamModelError``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import openai

from . import prompts as prompt_config
from .config import Settings
from .errors import UpstreamModelError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2

_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    openai.APIConnectionError,  # includes APITimeoutError
    openai.RateLimitError,
    openai.InternalServerError,
)


class ModelClient:
    def __init__(
        self,
        settings: Settings,
        *,
        client: Any | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._client = client
        self._sleep = sleep

    def available(self) -> bool:
        return self._client is not None or bool(self._settings.gemini_api_key)

    def _get_client(self) -> Any:
        """Lazily build the OpenAI client; retries are handled here, not by the SDK."""
        if self._client is None:
            if not self._settings.gemini_api_key:
                raise UpstreamModelError("GEMINI_API_KEY is not configured")
            self._client = openai.OpenAI(
                api_key=self._settings.gemini_api_key,
                base_url=self._settings.gemini_base_url,
                timeout=self._settings.model_timeout,
                max_retries=0,
            )
        return self._client

    def generate(self, prompt: str, *, operation: str = "conversation") -> str:
        client = self._get_client()
        model = prompt_config.get_model(operation)
        temperature = prompt_config.get_temperature(operation)

        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.info("Model call started: operation=%s model=%s attempt=%d", operation, model, attempt)
            try:
                response = client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=temperature,
                    timeout=self._settings.model_timeout,
                )
            except _TRANSIENT_ERRORS as exc:
                if attempt < MAX_ATTEMPTS:
                    delay = self._settings.model_retry_backoff * attempt
                    logger.warning(
                        "Transient model failure (%s); retrying in %.1fs", type(exc).__name__, delay
                    )
                    self._sleep(delay)
                    continue
                logger.error("Model call failed after %d attempts: %s", attempt, exc)
                raise UpstreamModelError(f"Language model request failed: {exc}") from exc
            except openai.OpenAIError as exc:
                logger.error("Model call failed: %s", exc)
                raise UpstreamModelError(f"Language model request failed: {exc}") from exc
            return _extract_text(response)

        raise UpstreamModelError("Language model request failed")  # pragma: no cover


def _extract_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    return content if isinstance(content, str) else ""


__all__ = ["MAX_ATTEMPTS", "ModelClient"]
