from __future__ import annotations

from types import SimpleNamespace

import pytest

from lyricnote.errors import UpstreamStreamError
from lyricnote.llm.openai_llm import AnthropicLLM, OpenAILLM, create_llm
from lyricnote.llm.prompts import build_numbered_payload, get_system_prompt
from lyricnote.models.annotation import AnnotationKind


def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class _Completions:
    def __init__(self, chunks=None, error=None):
        self.chunks = chunks or []
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error

        async def _gen():
            for chunk in self.chunks:
                yield chunk

        return _gen()


def _openai_with(completions: _Completions) -> OpenAILLM:
    llm = OpenAILLM(api_key="test-key")
    llm.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return llm


def test_create_llm_picks_protocol_by_base_url() -> None:
    assert isinstance(create_llm("k", "https://api.openai.com/v1", "gpt-4o-mini"), OpenAILLM)
    assert isinstance(create_llm("k", "https://api.minimaxi.com/anthropic", "MiniMax-M2.5"), AnthropicLLM)


@pytest.mark.asyncio
async def test_openai_stream_yields_delta_content() -> None:
    completions = _Completions([_chunk("1: a"), SimpleNamespace(choices=[]), _chunk(None), _chunk("\n2: b")])
    llm = _openai_with(completions)

    chunks = [c async for c in llm.stream_text("system", "1: x", temperature=0.1)]

    assert chunks == ["1: a", "\n2: b"]
    assert completions.kwargs["stream"] is True
    assert completions.kwargs["temperature"] == 0.1
    assert completions.kwargs["messages"][0] == {"role": "system", "content": "system"}


@pytest.mark.asyncio
async def test_provider_errors_become_upstream_errors() -> None:
    llm = _openai_with(_Completions(error=RuntimeError("connection reset")))
    with pytest.raises(UpstreamStreamError, match="connection reset"):
        async for _ in llm.stream_text("system", "1: x"):
            pass


def test_prompt_selection() -> None:
    assert "Korean" in get_system_prompt(AnnotationKind.TRANSLATION, "ko")
    assert "<漢字:ふりがな>" in get_system_prompt(AnnotationKind.FURIGANA)
    assert "私(わたし)" in get_system_prompt(AnnotationKind.SORAMIMI, "en", has_furigana=True)
    assert "繁體字" in get_system_prompt(AnnotationKind.SORAMIMI, "zh-TW")
    assert "xx-YY" in get_system_prompt(AnnotationKind.TRANSLATION, "xx-YY")
    assert build_numbered_payload(["a", "b"]) == "1: a\n2: b"


class _MessageStream:
    def __init__(self, texts, error=None):
        self.texts = texts
        self.error = error

    async def __aenter__(self):
        if self.error:
            raise self.error
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    def text_stream(self):
        async def _gen():
            for text in self.texts:
                yield text

        return _gen()


class _Messages:
    def __init__(self, texts=None, error=None):
        self.texts = texts or []
        self.error = error
        self.kwargs = None

    def stream(self, **kwargs):
        self.kwargs = kwargs
        return _MessageStream(self.texts, self.error)


def _anthropic_with(messages: _Messages) -> AnthropicLLM:
    llm = AnthropicLLM(api_key="test-key")
    llm.client = SimpleNamespace(messages=messages)
    return llm


@pytest.mark.asyncio
async def test_anthropic_stream_yields_text_stream() -> None:
    messages = _Messages(["1: <猫:ねこ>", "", "\n2: る"])
    llm = _anthropic_with(messages)

    chunks = [c async for c in llm.stream_text("system", "1: 猫\n2: る", temperature=0.3)]

    assert chunks == ["1: <猫:ねこ>", "\n2: る"]
    assert messages.kwargs["system"] == "system"
    assert messages.kwargs["messages"] == [{"role": "user", "content": "1: 猫\n2: る"}]
    assert messages.kwargs["temperature"] == 0.3
    assert messages.kwargs["max_tokens"] == 8192


@pytest.mark.asyncio
async def test_anthropic_errors_become_upstream_errors() -> None:
    llm = _anthropic_with(_Messages(error=RuntimeError("overloaded")))
    with pytest.raises(UpstreamStreamError, match="overloaded"):
        async for _ in llm.stream_text("system", "1: x"):
            pass
