"""Tests for the model client's retry and error mapping."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from english_tutor.config import Settings
from english_tutor.errors import UpstreamModelError
from english_tutor.llm import MAX_ATTEMPTS, ModelClient

_REQUEST = httpx.Request("POST", "https://example.test/chat/completions")


def _completion(text: str | None):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def _status_error(cls, status_code: int):
    response = httpx.Response(status_code, request=_REQUEST)
    return cls("boom", response=response, body=None)


def _client(fake, sleeps: list[float] | None = None) -> ModelClient:
    settings = Settings(gemini_api_key="test-key", model_retry_backoff=0.5)
    recorder = sleeps if sleeps is not None else []
    return ModelClient(settings, client=fake, sleep=recorder.append)


class TestGenerate:
    def test_returns_message_text(self):
        fake = MagicMock()
        fake.chat.completions.create.return_value = _completion('{"answer": "hi"}')
        assert _client(fake).generate("prompt") == '{"answer": "hi"}'
        kwargs = fake.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
        assert kwargs["timeout"] == 20.0

    def test_empty_choices_is_empty_text(self):
        fake = MagicMock()
        fake.chat.completions.create.return_value = SimpleNamespace(choices=[])
        assert _client(fake).generate("prompt") == ""

    def test_retries_once_on_connection_error(self):
        fake = MagicMock()
        fake.chat.completions.create.side_effect = [
            openai.APIConnectionError(request=_REQUEST),
            _completion("ok"),
        ]
        sleeps: list[float] = []
        assert _client(fake, sleeps).generate("prompt") == "ok"
        assert fake.chat.completions.create.call_count == 2
        assert sleeps == [0.5]

    def test_retries_on_rate_limit_then_gives_up(self):
        fake = MagicMock()
        fake.chat.completions.create.side_effect = _status_error(openai.RateLimitError, 429)
        with pytest.raises(UpstreamModelError):
            _client(fake).generate("prompt")
        assert fake.chat.completions.create.call_count == MAX_ATTEMPTS

    def test_non_transient_error_is_not_retried(self):
        fake = MagicMock()
        fake.chat.completions.create.side_effect = _status_error(openai.BadRequestError, 400)
        with pytest.raises(UpstreamModelError):
            _client(fake).generate("prompt")
        assert fake.chat.completions.create.call_count == 1

    def test_missing_api_key(self):
        client = ModelClient(Settings(gemini_api_key=""))
        assert client.available() is False
        with pytest.raises(UpstreamModelError):
            client.generate("prompt")

    def test_operation_selects_configured_model(self, tmp_path, monkeypatch):
        from english_tutor import prompts

        config = tmp_path / "prompts.yaml"
        config.write_text(
            "models:\n  assessment: gemini-test\ntemperatures:\n  assessment: 0.3\n",
            encoding="utf-8",
        )
        monkeypatch.setattr(prompts, "PROMPTS_PATH", config)
        prompts.invalidate_cache()
        fake = MagicMock()
        fake.chat.completions.create.return_value = _completion("{}")
        _client(fake).generate("prompt", operation="assessment")
        kwargs = fake.chat.completions.create.call_args.kwargs
        prompts.invalidate_cache()
        assert kwargs["model"] == "gemini-test"
        assert kwargs["temperature"] == pytest.approx(0.3)
