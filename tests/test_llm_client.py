# tests/test_llm_client.py

from __future__ import annotations

from collections.abc import Iterator
from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest

from taskpulse.llm.client import OpenAICompatibleLLMClient


def _chunk(text: str) -> Any:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


def _api_error(cls: type[openai.APIStatusError], status: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://llm.example/v1/chat/completions")
    return cls("error", response=httpx.Response(status, request=request), body=None)


class _FakeCompletions:
    """Per-model script: a list of text chunks, an exception, or a callable producing a stream."""

    def __init__(self, script: dict[str, Any]) -> None:
        self.script = script
        self.models_called: list[str] = []

    def create(self, *, model: str, stream: bool, messages: list[dict[str, str]], timeout: Any) -> Any:
        self.models_called.append(model)
        outcome = self.script[model]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome()
        return iter([_chunk(t) for t in outcome])


def _client(script: dict[str, Any]) -> tuple[OpenAICompatibleLLMClient, _FakeCompletions]:
    completions = _FakeCompletions(script)
    fake_openai = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    llm = OpenAICompatibleLLMClient(
        api_key="sk-test",
        base_url="https://llm.example/v1",
        models=list(script),
        client=fake_openai,  # type: ignore[arg-type]
    )
    return llm, completions


def test_generate_joins_and_strips_stream() -> None:
    llm, _ = _client({"m1": ["  Итого", " 15 ", "\n"]})
    assert llm.generate("system", "input") == "Итого 15"


def test_unavailable_model_is_skipped_for_a_while() -> None:
    llm, completions = _client({"old": _api_error(openai.NotFoundError, 404), "new": ["ok"]})

    assert llm.generate("s", "i") == "ok"
    assert llm.generate("s", "i") == "ok"
    assert completions.models_called == ["old", "new", "new"]


def test_empty_output_falls_over_to_next_model() -> None:
    llm, completions = _client({"m1": [], "m2": ["answer"]})
    assert llm.generate("s", "i") == "answer"
    assert completions.models_called == ["m1", "m2"]


def test_auth_error_fails_fast() -> None:
    llm, completions = _client({"m1": _api_error(openai.AuthenticationError, 401), "m2": ["never"]})

    with pytest.raises(RuntimeError, match="authentication"):
        llm.generate("s", "i")
    assert completions.models_called == ["m1"]


def test_stream_broken_mid_answer_is_not_spliced() -> None:
    def broken() -> Iterator[Any]:
        yield _chunk("half an ans")
        raise httpx.ReadTimeout("read timed out")

    llm, completions = _client({"m1": broken, "m2": ["other answer"]})

    with pytest.raises(RuntimeError, match="mid-answer"):
        llm.generate("s", "i")
    assert completions.models_called == ["m1"]


def test_all_models_failing_raises() -> None:
    llm, _ = _client({"m1": RuntimeError("boom"), "m2": []})
    with pytest.raises(RuntimeError, match="All LLM models failed"):
        llm.generate("s", "i")


@pytest.mark.parametrize(
    ("api_key", "models"),
    [(None, ["m"]), ("  ", ["m"]), ("sk", []), ("sk", ["  "])],
)
def test_misconfiguration_is_rejected(api_key: str | None, models: list[str]) -> None:
    with pytest.raises(RuntimeError):
        OpenAICompatibleLLMClient(api_key=api_key, base_url="https://llm.example/v1", models=models)
