"""
歌曲文档存储

每首歌一个 JSON 文件: DATA_DIR/songs/{id}.json
写入走 临时文件 + replace，读改写在锁内完成。
"""
import json
import logging
import re
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from lyricnote.errors import InputError, PersistenceError
from lyricnote.models.annotation import AnnotationKind, Segments
from lyricnote.models.song import (
    AnnotationSet,
    LyricsContent,
    LyricsSource,
    SongDocument,
    compute_source_hash,
)

logger = logging.getLogger(__name__)

_SONG_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class SongStore:

    def __init__(self, data_dir: Path):
        self.songs_dir = Path(data_dir) / "songs"
        self.songs_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    # ==================== 读写原语 ====================

    def _path(self, song_id: str) -> Path:
        if not _SONG_ID.match(song_id or ""):
            raise InputError(f"Invalid song id: {song_id!r}", 400)
        return self.songs_dir / f"{song_id}.json"

    def get_song(self, song_id: str) -> Optional[SongDocument]:
        path = self._path(song_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return SongDocument.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"[Store] 读取歌曲失败: id={song_id}, error={e}")
            raise PersistenceError(f"Failed to read song {song_id}") from e

    def _write(self, song: SongDocument) -> None:
        """原子写入歌曲文档"""
        path = self._path(song.id)
        temp_file = path.with_suffix(".tmp")
        try:
            temp_file.write_text(
                json.dumps(song.to_dict(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            temp_file.replace(path)
        except OSError as e:
            logger.error(f"[Store] 写入歌曲失败: id={song.id}, error={e}")
            raise PersistenceError(f"Failed to write song {song.id}") from e

    def _update(self, song_id: str, mutate: Callable[[SongDocument], None]) -> SongDocument:
        with self._lock:
            song = self.get_song(song_id)
            if song is None:
                raise PersistenceError(f"Song not found: {song_id}")
            mutate(song)
            song.updated_at = time.time()
            self._write(song)
            return song

    # ==================== 元数据 / 歌词 ====================

    def save_song(
        self,
        song_id: str,
        title: str,
        artist: Optional[str] = None,
        album: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> SongDocument:
        """创建或更新元数据；已有歌曲的创建者不变"""
        with self._lock:
            song = self.get_song(song_id)
            now = time.time()
            if song is None:
                song = SongDocument(
                    id=song_id,
                    title=title,
                    artist=artist,
                    album=album,
                    created_by=created_by,
                    created_at=now,
                )
                logger.info(f"[Store] 新建歌曲: id={song_id}, created_by={created_by}")
            else:
                song.title = title or song.title
                song.artist = artist if artist is not None else song.artist
                song.album = album if album is not None else song.album
            song.updated_at = now
            self._write(song)
            return song

    def save_lyrics(
        self,
        song_id: str,
        lyrics: LyricsContent,
        lyrics_source: Optional[LyricsSource] = None,
        clear_annotations: bool = False,
    ) -> tuple[SongDocument, bool]:
        """
        写入新的歌词来源

        来源 hash 变化（或显式要求）时，所有标注在同一次写入中清空，
        避免旧的行号对齐到新的歌词上。

        :return: (歌曲, 是否清空了标注)
        """
        def _apply(song: SongDocument) -> None:
            old_hash = song.source_hash
            song.lyrics = lyrics
            if lyrics_source is not None:
                song.lyrics_source = lyrics_source
            new_hash = compute_source_hash(song.lyrics, song.lyrics_source)
            if (clear_annotations or old_hash != new_hash) and song.has_annotations():
                song.translations = {}
                song.furigana = None
                song.soramimi = {}
                cleared.append(True)

        cleared: list[bool] = []
        song = self._update(song_id, _apply)
        if cleared:
            logger.info(f"[Store] 歌词来源变化，已清空全部标注: id={song_id}")
        return song, bool(cleared)

    # ==================== 标注 ====================

    def _save_annotation(
        self,
        song_id: str,
        kind: AnnotationKind,
        language: Optional[str],
        payload,
        source_hash: str,
    ) -> bool:
        written: list[bool] = []

        def _apply(song: SongDocument) -> None:
            if song.source_hash != source_hash:
                logger.warning(
                    f"[Store] 歌词已在生成期间变化，丢弃结果: id={song_id}, kind={kind.value}"
                )
                return
            annotation = AnnotationSet(source_hash=source_hash, payload=payload, updated_at=time.time())
            if kind is AnnotationKind.TRANSLATION:
                song.translations[language] = annotation
            elif kind is AnnotationKind.FURIGANA:
                song.furigana = annotation
            else:
                song.soramimi[language] = annotation
            written.append(True)

        self._update(song_id, _apply)
        if written:
            logger.info(f"[Store] 已保存标注: id={song_id}, kind={kind.value}, language={language}")
        return bool(written)

    def save_translation(self, song_id: str, language: str, lrc: str, source_hash: str) -> bool:
        return self._save_annotation(song_id, AnnotationKind.TRANSLATION, language, lrc, source_hash)

    def save_furigana(self, song_id: str, lines: list[Segments], source_hash: str) -> bool:
        return self._save_annotation(song_id, AnnotationKind.FURIGANA, None, lines, source_hash)

    def save_soramimi(self, song_id: str, lines: list[Segments], language: str, source_hash: str) -> bool:
        return self._save_annotation(song_id, AnnotationKind.SORAMIMI, language, lines, source_hash)

    def clear_cached_data(
        self,
        song_id: str,
        clear_translations: bool = False,
        clear_furigana: bool = False,
        clear_soramimi: bool = False,
    ) -> list[str]:
        """按类型清除缓存标注，返回被清除的类型名"""
        cleared: list[str] = []

        def _apply(song: SongDocument) -> None:
            if clear_translations and song.translations:
                song.translations = {}
                cleared.append("translations")
            if clear_furigana and song.furigana:
                song.furigana = None
                cleared.append("furigana")
            if clear_soramimi and song.soramimi:
                song.soramimi = {}
                cleared.append("soramimi")

        self._update(song_id, _apply)
        logger.info(f"[Store] 清除缓存: id={song_id}, cleared={cleared}")
        return cleared

    def delete_song(self, song_id: str) -> bool:
        path = self._path(song_id)
        with self._lock:
            if not path.exists():
                return False
            try:
                path.unlink()
            except OSError as e:
                raise PersistenceError(f"Failed to delete song {song_id}") from e
        logger.info(f"[Store] 已删除歌曲: id={song_id}")
        return True
