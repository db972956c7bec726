"""
逐行标注 Pipeline
编排整个流程: 读取歌曲 → 缓存门 → 组装 prompt → 模型流 → 逐行解析 → 落库
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from lyricnote.config import settings
from lyricnote.errors import InputError
from lyricnote.llm.base import LLMStreamer
from lyricnote.llm.openai_llm import create_llm
from lyricnote.lyrics.parser import build_translation_from_krc, lines_to_lrc, parse_lyrics_content
from lyricnote.lyrics.script import is_chinese_traditional, lyrics_are_mostly_chinese
from lyricnote.lyrics.soramimi import clean_cached_soramimi
from lyricnote.models.annotation import AnnotationKind, Segments, segments_to_dicts
from lyricnote.models.lyrics import LyricLine
from lyricnote.models.song import SongDocument
from lyricnote.services.cache_gate import CacheGate
from lyricnote.services.ownership import Identity, TokenValidator
from lyricnote.services.persister import ResultPersister
from lyricnote.services.prompt_framer import (
    LinePayload,
    PromptFrame,
    frame_furigana,
    frame_soramimi,
    frame_translation,
)
from lyricnote.services.session import AnnotationSession, EmitFn
from lyricnote.services.song_store import SongStore

logger = logging.getLogger(__name__)


def _default_llm_factory() -> LLMStreamer:
    return create_llm(
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        model=settings.llm_model,
    )


@dataclass
class AnnotationPlan:
    """
    一次请求的处理方式

      cached  — payload 为单个 cached 事件
      skipped — payload 为直接返回的 JSON
      stream  — 调用 run(emit) 逐行生成
    """
    mode: str
    payload: Optional[dict] = None
    total_lines: int = 0
    run: Optional[Callable[[EmitFn], Awaitable[None]]] = None

    @classmethod
    def cached(cls, kind: AnnotationKind, payload) -> "AnnotationPlan":
        return cls(mode="cached", payload={"type": "cached", kind.line_key: payload})


class AnnotationService:
    """
    歌词标注服务

    三种标注共享同一份歌词与同一套流程，只在 prompt、行选择和解码上不同。
    """

    def __init__(
        self,
        store: SongStore,
        validator: TokenValidator,
        llm_factory: Optional[Callable[[], LLMStreamer]] = None,
        admin_username: Optional[str] = None,
    ):
        self.store = store
        self.gate = CacheGate(validator, admin_username or settings.admin_username)
        self.persister = ResultPersister(store)
        self._llm_factory = llm_factory or _default_llm_factory
        logger.info(f"[AnnotationService] 初始化完成: llm={settings.llm_model}")

    # ==================== 公共入口 ====================

    async def prepare_translation(
        self,
        song_id: str,
        language: str,
        force: bool = False,
        identity: Identity = Identity(),
    ) -> AnnotationPlan:
        kind = AnnotationKind.TRANSLATION
        song, lines = await self._load(song_id)

        cached = self.gate.check(song, kind, language, force, identity)
        if cached is not None:
            return AnnotationPlan.cached(kind, cached.wire_payload())

        # 繁体中文可由 KRC 内嵌翻译直接得出，无需调用模型
        if is_chinese_traditional(language) and song.lyrics.krc:
            krc_lrc = build_translation_from_krc(song.lyrics.krc, song.display_title, song.display_artist)
            if krc_lrc:
                logger.info(f"[AnnotationService] 使用 KRC 内嵌翻译: song={song_id}, language={language}")
                await self.persister.persist(song.id, kind, language, song.source_hash, krc_lrc)
                return AnnotationPlan.cached(kind, krc_lrc)

        return self._stream_plan(song, lines, frame_translation(lines, language))

    async def prepare_furigana(
        self,
        song_id: str,
        force: bool = False,
        identity: Identity = Identity(),
    ) -> AnnotationPlan:
        kind = AnnotationKind.FURIGANA
        song, lines = await self._load(song_id)

        cached = self.gate.check(song, kind, None, force, identity)
        if cached is not None:
            return AnnotationPlan.cached(kind, cached.wire_payload())

        return self._stream_plan(song, lines, frame_furigana(lines))

    async def prepare_soramimi(
        self,
        song_id: str,
        target_language: str = "zh-TW",
        force: bool = False,
        identity: Identity = Identity(),
        furigana: Optional[list[Segments]] = None,
    ) -> AnnotationPlan:
        kind = AnnotationKind.SORAMIMI
        song, lines = await self._load(song_id)

        cached = self.gate.check(song, kind, target_language, force, identity)

        # 中文歌词做中文空耳没有意义
        if target_language == "zh-TW" and lyrics_are_mostly_chinese(lines):
            logger.info(f"[AnnotationService] 中文歌词，跳过空耳: song={song_id}")
            return AnnotationPlan(mode="skipped", payload={"skipped": True, "skipReason": "chinese_lyrics"})

        if cached is not None:
            cleaned = clean_cached_soramimi(cached.payload, target_language)
            return AnnotationPlan.cached(kind, [segments_to_dicts(line) for line in cleaned])

        return self._stream_plan(song, lines, frame_soramimi(lines, target_language, furigana))

    # ==================== 内部 ====================

    async def _load(self, song_id: str) -> tuple[SongDocument, list[LyricLine]]:
        """读取歌曲并解析歌词；没有可用歌词时在开流前失败"""
        song = await asyncio.to_thread(self.store.get_song, song_id)
        if song is None:
            raise InputError("Song not found", 404)
        if song.lyrics is None or not song.lyrics.lrc:
            raise InputError("Song has no lyrics", 404)

        lines = parse_lyrics_content(
            song.lyrics.lrc,
            song.lyrics.krc,
            song.display_title,
            song.display_artist,
        )
        if not lines:
            raise InputError("Song has no lyrics", 404)
        return song, lines

    def _stream_plan(self, song: SongDocument, lines: list[LyricLine], frame: PromptFrame) -> AnnotationPlan:
        # 生成期间歌词被修改时，落库会因 hash 不一致而被丢弃
        source_hash = song.source_hash
        kind = frame.kind

        async def _persist(results: list[LinePayload]) -> None:
            payload = lines_to_lrc(lines, results) if kind is AnnotationKind.TRANSLATION else results
            await self.persister.persist(song.id, kind, frame.language, source_hash, payload)

        def _open_stream():
            llm = self._llm_factory()
            return llm.stream_text(frame.system_prompt, frame.user_payload, frame.temperature)

        async def run(emit: EmitFn) -> None:
            session = AnnotationSession(frame, emit)
            await session.run(_open_stream if frame.needs_model else None, on_complete=_persist)

        return AnnotationPlan(mode="stream", total_lines=frame.total_lines, run=run)
