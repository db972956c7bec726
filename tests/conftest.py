from __future__ import annotations

import json
from typing import AsyncIterator, Callable, Optional

import pytest

from lyricnote.llm.base import LLMStreamer
from lyricnote.models.lyrics import LyricLine
from lyricnote.models.song import LyricsContent, SongDocument
from lyricnote.services.ownership import StaticTokenValidator
from lyricnote.services.song_store import SongStore


class FakeLLM(LLMStreamer):
    """Replays scripted chunks, optionally raising once they are exhausted."""

    def __init__(self, chunks: list[str] | None = None, error: Optional[Exception] = None):
        self.chunks = list(chunks or [])
        self.error = error
        self.calls: list[tuple[str, str, float]] = []

    async def stream_text(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> AsyncIterator[str]:
        self.calls.append((system_prompt, user_prompt, temperature))
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


def make_lines(*words: str) -> list[LyricLine]:
    return [LyricLine(start_time_ms=i * 1000, words=w) for i, w in enumerate(words)]


def make_lrc(*words: str) -> str:
    return "\n".join(f"[00:{i:02d}.00]{w}" for i, w in enumerate(words, start=1))


def parse_sse(body: str) -> list[dict]:
    events = []
    for block in body.split("\n\n"):
        block = block.strip()
        if block.startswith("data: "):
            events.append(json.loads(block[len("data: "):]))
    return events


@pytest.fixture
def store(tmp_path) -> SongStore:
    return SongStore(tmp_path)


@pytest.fixture
def validator() -> StaticTokenValidator:
    return StaticTokenValidator({"alice": "tok-alice", "bob": "tok-bob", "admin": "tok-admin"})


@pytest.fixture
def song_factory(store: SongStore) -> Callable[..., SongDocument]:
    def _create(
        song_id: str = "song1",
        words: tuple[str, ...] = ("Hello there", "猫が好き", "走る"),
        krc: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> SongDocument:
        store.save_song(song_id, "Test Song", "Tester", created_by=created_by)
        song, _ = store.save_lyrics(song_id, LyricsContent(lrc=make_lrc(*words), krc=krc))
        return song

    return _create
