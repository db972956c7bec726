from __future__ import annotations

import base64
import json

import pytest
from fastapi.testclient import TestClient

from lyricnote import create_app
from lyricnote.errors import UpstreamStreamError
from lyricnote.routers import songs
from lyricnote.services.annotation_service import AnnotationService

from conftest import FakeLLM, make_lrc, parse_sse

ALICE = {"X-Username": "alice", "Authorization": "Bearer tok-alice"}
BOB = {"X-Username": "bob", "Authorization": "Bearer tok-bob"}


class LLMHolder:
    def __init__(self):
        self.llm = FakeLLM()

    def __call__(self) -> FakeLLM:
        return self.llm


@pytest.fixture
def llm_holder() -> LLMHolder:
    return LLMHolder()


@pytest.fixture
def client(store, validator, llm_holder) -> TestClient:
    service = AnnotationService(store, validator, llm_factory=llm_holder, admin_username="admin")
    app = create_app()
    app.dependency_overrides[songs.get_annotation_service] = lambda: service
    app.dependency_overrides[songs.get_song_store] = lambda: store
    app.dependency_overrides[songs.get_token_validator] = lambda: validator
    return TestClient(app)


def test_furigana_stream_then_cached(client, song_factory, llm_holder, store) -> None:
    song_factory()
    llm_holder.llm = FakeLLM(["1: <猫:ねこ>が<好:す>き\n", "2: <走:はし>る"])

    resp = client.post("/api/songs/song1/furigana-stream", json={})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["cache-control"] == "no-cache"

    events = parse_sse(resp.text)
    assert [e["type"] for e in events] == ["start", "line", "line", "line", "complete"]
    assert events[1]["furigana"] == [{"text": "Hello there"}]
    complete = events[-1]
    assert len(complete["furigana"]) == 3
    assert complete["furigana"][2] == [{"text": "走", "reading": "はし"}, {"text": "る"}]
    assert llm_holder.llm.calls[0][1] == "1: 猫が好き\n2: 走る"

    assert store.get_song("song1").furigana is not None

    cached = parse_sse(client.post("/api/songs/song1/furigana-stream", json={}).text)
    assert cached == [{"type": "cached", "furigana": complete["furigana"]}]
    assert len(llm_holder.llm.calls) == 1


def test_translation_stream_persists_lrc(client, song_factory, llm_holder, store) -> None:
    song_factory(words=("one", "two"))
    llm_holder.llm = FakeLLM(["1: uno\n2: dos\n"])

    events = parse_sse(client.post("/api/songs/song1/translate-stream", json={"language": "es"}).text)

    assert events[-1]["translations"] == ["uno", "dos"]
    assert events[-1]["successCount"] == 2
    assert store.get_song("song1").translations["es"].payload == "[00:01.00]uno\n[00:02.00]dos"

    cached = parse_sse(client.post("/api/songs/song1/translate-stream", json={"language": "es"}).text)
    assert cached == [{"type": "cached", "translation": "[00:01.00]uno\n[00:02.00]dos"}]


def test_force_refresh_by_non_owner_is_rejected_before_stream(client, song_factory, store) -> None:
    song = song_factory(created_by="alice")
    store.save_translation("song1", "es", "[00:01.00]hola", song.source_hash)

    resp = client.post("/api/songs/song1/translate-stream", json={"language": "es", "force": True}, headers=BOB)
    assert resp.status_code == 403
    assert resp.headers["content-type"].startswith("application/json")
    assert resp.json()["detail"] == "Can only modify your own songs"

    resp = client.post("/api/songs/song1/translate-stream", json={"language": "es", "force": True})
    assert resp.status_code == 401


def test_force_refresh_by_owner_regenerates(client, song_factory, llm_holder, store) -> None:
    song = song_factory(words=("one",), created_by="alice")
    store.save_translation("song1", "es", "[00:01.00]old", song.source_hash)
    llm_holder.llm = FakeLLM(["1: nuevo"])

    events = parse_sse(
        client.post("/api/songs/song1/translate-stream", json={"language": "es", "force": True}, headers=ALICE).text
    )

    assert events[-1]["translations"] == ["nuevo"]
    assert store.get_song("song1").translations["es"].payload == "[00:01.00]nuevo"


def test_upstream_failure_becomes_error_event(client, song_factory, llm_holder, store) -> None:
    song_factory(words=("one", "two"))
    llm_holder.llm = FakeLLM(["1: uno\n"], error=UpstreamStreamError("connection reset"))

    events = parse_sse(client.post("/api/songs/song1/translate-stream", json={"language": "es"}).text)

    assert events[-1] == {"type": "error", "error": "connection reset"}
    assert store.get_song("song1").translations == {}


def test_missing_song_and_invalid_body(client, song_factory) -> None:
    assert client.post("/api/songs/ghost/furigana-stream", json={}).status_code == 404
    song_factory()
    assert client.post("/api/songs/song1/translate-stream", json={"language": ""}).status_code == 422
    assert client.post("/api/songs/song1/soramimi-stream", json={"target_language": "fr"}).status_code == 422


def test_soramimi_skips_chinese_lyrics(client, song_factory, llm_holder) -> None:
    song_factory(words=("我爱你", "月亮代表我的心"))
    resp = client.post("/api/songs/song1/soramimi-stream", json={})
    assert resp.status_code == 200
    assert resp.json() == {"skipped": True, "skipReason": "chinese_lyrics"}
    assert llm_holder.llm.calls == []


def test_soramimi_stream_with_furigana_context(client, song_factory, llm_holder) -> None:
    song_factory(words=("Fire in the water", "私は"))
    llm_holder.llm = FakeLLM(["1: <私:娃她惜><は:哈>"])
    body = {
        "target_language": "zh-TW",
        "furigana": [[{"text": "Fire in the water"}], [{"text": "私", "reading": "わたし"}, {"text": "は"}]],
    }

    events = parse_sse(client.post("/api/songs/song1/soramimi-stream", json=body).text)

    assert llm_holder.llm.calls[0][1] == "1: 私(わたし)|は"
    assert events[-1]["soramimi"] == [
        [{"text": "Fire in the water"}],
        [{"text": "私", "reading": "娃她惜"}, {"text": "は", "reading": "哈"}],
    ]


def test_krc_embedded_translation_skips_the_model(client, store, llm_holder) -> None:
    header = base64.b64encode(
        json.dumps({"content": [{"type": 1, "lyricContent": [["你好"]]}]}).encode("utf-8")
    ).decode("ascii")
    krc = f"[language:{header}]\n[1000,500]<0,500,0>こんにちは"
    resp = client.put(
        "/api/songs/song2/lyrics",
        json={"lrc": "[00:01.00]こんにちは", "krc": krc, "title": "Hi"},
        headers=ALICE,
    )
    assert resp.status_code == 200

    events = parse_sse(client.post("/api/songs/song2/translate-stream", json={"language": "zh-TW"}).text)

    assert events == [{"type": "cached", "translation": "[00:01.00]你好"}]
    assert llm_holder.llm.calls == []
    assert store.get_song("song2").translations["zh-TW"].payload == "[00:01.00]你好"


def test_save_lyrics_requires_owner_and_clears_annotations(client, store) -> None:
    body = {"lrc": make_lrc("猫が好き"), "title": "Cats"}
    assert client.put("/api/songs/song3/lyrics", json=body).status_code == 401

    created = client.put("/api/songs/song3/lyrics", json=body, headers=ALICE).json()
    assert store.get_song("song3").created_by == "alice"
    store.save_translation("song3", "en", "[00:01.00]I like cats", created["sourceHash"])

    assert client.put("/api/songs/song3/lyrics", json=body, headers=BOB).status_code == 403

    changed = client.put("/api/songs/song3/lyrics", json={"lrc": make_lrc("犬が好き")}, headers=ALICE).json()
    assert changed["annotationsCleared"] is True
    assert changed["sourceHash"] != created["sourceHash"]
    assert store.get_song("song3").translations == {}


def test_get_song_and_clear_cached_data(client, song_factory, store) -> None:
    song = song_factory(created_by="alice")
    store.save_translation("song1", "en", "[00:01.00]hi", song.source_hash)

    data = client.get("/api/songs/song1").json()
    assert [line["words"] for line in data["lines"]] == ["Hello there", "猫が好き", "走る"]
    assert data["cached"] == {"translations": ["en"], "furigana": False, "soramimi": []}

    resp = client.post("/api/songs/song1/clear-cached-data", json={"clear_translations": True}, headers=BOB)
    assert resp.status_code == 403

    resp = client.post("/api/songs/song1/clear-cached-data", json={"clear_translations": True}, headers=ALICE)
    assert resp.json() == {"success": True, "cleared": ["translations"]}

    assert client.delete("/api/songs/song1", headers=ALICE).json() == {"success": True}
    assert client.get("/api/songs/song1").status_code == 404
