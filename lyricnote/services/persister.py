"""
结果落库

只在生成成功后调用。写入失败只记日志: 客户端已经拿到结果，
下次请求会重新生成。
"""
import asyncio
import logging
from typing import Optional, Union

from lyricnote.errors import PersistenceError
from lyricnote.models.annotation import AnnotationKind, Segments
from lyricnote.services.song_store import SongStore

logger = logging.getLogger(__name__)


class ResultPersister:

    def __init__(self, store: SongStore):
        self.store = store

    def _write(
        self,
        song_id: str,
        kind: AnnotationKind,
        language: Optional[str],
        source_hash: str,
        payload: Union[str, list[Segments]],
    ) -> bool:
        if kind is AnnotationKind.TRANSLATION:
            return self.store.save_translation(song_id, language, payload, source_hash)
        if kind is AnnotationKind.FURIGANA:
            return self.store.save_furigana(song_id, payload, source_hash)
        return self.store.save_soramimi(song_id, payload, language, source_hash)

    async def persist(
        self,
        song_id: str,
        kind: AnnotationKind,
        language: Optional[str],
        source_hash: str,
        payload: Union[str, list[Segments]],
    ) -> bool:
        """
        :param payload: 翻译为 LRC 文本，振假名 / 空耳为逐行段落
        :return: 是否写入成功
        """
        try:
            return await asyncio.to_thread(self._write, song_id, kind, language, source_hash, payload)
        except PersistenceError as e:
            logger.error(
                f"[Persister] 缓存写入失败: song={song_id}, kind={kind.value}, error={e.message}",
                exc_info=True,
            )
            return False
