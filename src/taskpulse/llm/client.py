# src/taskpulse/llm/client.py

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

import httpx
import openai
from openai import OpenAI

logger = logging.getLogger(__name__)

# OpenAI-style chat messages: {"role": "...", "content": "..."}.
ChatMessage = dict[str, str]


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException)):
        return True
    return exc.__class__.__name__ in {"Timeout", "ConnectTimeout", "ReadTimeout", "WriteTimeout"}


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible servers answer 404 for unknown/retired models.
    return isinstance(exc, openai.NotFoundError)


def _close_stream(stream: Any) -> None:
    """Best-effort close for streaming responses."""
    close = getattr(stream, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.debug("Closing LLM stream failed.", exc_info=True)


class OpenAICompatibleLLMClient:
    """
    Streaming chat-completions client for OpenAI-compatible APIs.

    Behavior:
    - Tries models in the configured order.
    - 404 (model not available) -> remember it for an hour and try the next one.
    - Rate limit / network issues / empty output -> try next.
    - Auth issues -> fail fast (no retries across models).
    """

    _BAD_MODEL_TTL_SECONDS = 3600.0

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        models: list[str],
        connect_timeout_seconds: float = 5.0,
        read_timeout_seconds: float = 60.0,
        client: OpenAI | None = None,
    ) -> None:
        if not api_key or not str(api_key).strip():
            raise RuntimeError("LLM API key is not set. Set TASKPULSE_LLM_API_KEY in your .env.")

        self._models = [m.strip() for m in models if m and m.strip()]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set TASKPULSE_LLM_MODELS in your .env.")

        self._timeout = httpx.Timeout(
            connect=connect_timeout_seconds,
            read=read_timeout_seconds,
            write=10.0,
            pool=connect_timeout_seconds,
        )
        # Automatic retries are off so a failing model hands over to the next one quickly.
        self._client = client or OpenAI(
            base_url=base_url,
            api_key=str(api_key),
            timeout=self._timeout,
            max_retries=0,
        )
        self._bad_models: dict[str, float] = {}

    @classmethod
    def from_settings(cls, settings: Any) -> OpenAICompatibleLLMClient:
        return cls(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            models=list(settings.llm_models),
            connect_timeout_seconds=settings.llm_connect_timeout_seconds,
            read_timeout_seconds=settings.llm_read_timeout_seconds,
        )

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        """Stream the completion in text chunks, falling over to the next model on failure."""
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s", model)
            t0 = time.monotonic()
            stream = None
            used_any = False

            try:
                stream = self._client.chat.completions.create(
                    model=model,
                    stream=True,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    timeout=self._timeout,
                )

                for chunk in stream:
                    if not chunk.choices:
                        continue
                    delta = getattr(chunk.choices[0], "delta", None)
                    content = getattr(delta, "content", None) if delta is not None else None
                    if content:
                        if not used_any:
                            logger.info("LLM: first token from model=%s (%.2fs)", model, time.monotonic() - t0)
                        used_any = True
                        yield content

                if used_any:
                    logger.debug("LLM: completed with model=%s", model)
                    return

                last_error = RuntimeError(f"Model returned no content: {model}")

            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (TASKPULSE_LLM_API_KEY)."
                    ) from e

                if used_any:
                    # Part of the answer is already out; switching models would splice two texts.
                    raise RuntimeError(f"LLM stream broke mid-answer on model={model}") from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + self._BAD_MODEL_TTL_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)

            finally:
                if stream is not None:
                    _close_stream(stream)

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")

    def generate(self, instructions: str, input_text: str) -> str:
        """Whole completion as one string (may be empty)."""
        return "".join(self.stream_chat([{"role": "user", "content": input_text}], instructions)).strip()
