"""
缓存门

  - 未强制刷新且存在与当前歌词 hash 一致的标注 → 直接返回缓存
  - hash 不一致的旧标注视为不存在，无论是否强制都会重新生成
  - 强制刷新有效缓存需要所有者权限；无主歌曲允许匿名刷新
"""
import logging
from typing import Optional

from lyricnote.models.annotation import AnnotationKind
from lyricnote.models.song import AnnotationSet, SongDocument
from lyricnote.services.ownership import Identity, TokenValidator, require_modify

logger = logging.getLogger(__name__)


class CacheGate:

    def __init__(self, validator: TokenValidator, admin_username: str = "admin"):
        self.validator = validator
        self.admin_username = admin_username

    @staticmethod
    def valid_cached(
        song: SongDocument,
        kind: AnnotationKind,
        language: Optional[str] = None,
    ) -> Optional[AnnotationSet]:
        """当前歌词来源下仍然有效的缓存"""
        cached = song.annotation_set(kind, language)
        if cached is None or not cached.payload:
            return None
        if cached.source_hash != song.source_hash:
            logger.info(
                f"[CacheGate] 歌词已变化，旧标注失效: song={song.id}, kind={kind.value}, language={language}"
            )
            return None
        return cached

    def check(
        self,
        song: SongDocument,
        kind: AnnotationKind,
        language: Optional[str],
        force: bool,
        identity: Identity,
    ) -> Optional[AnnotationSet]:
        """
        :return: 命中的缓存；None 表示需要生成
        :raises AuthorizationError: 无权强制刷新（401 / 403）
        """
        cached = self.valid_cached(song, kind, language)
        if cached is None:
            return None
        if not force:
            logger.info(f"[CacheGate] 命中缓存: song={song.id}, kind={kind.value}, language={language}")
            return cached

        self.authorize_refresh(song, kind, identity)
        logger.info(f"[CacheGate] 强制刷新: song={song.id}, kind={kind.value}, user={identity.username}")
        return None

    def authorize_refresh(self, song: SongDocument, kind: AnnotationKind, identity: Identity) -> None:
        if identity.is_anonymous and not song.created_by:
            return
        require_modify(
            song,
            identity,
            self.validator,
            self.admin_username,
            action=f"force refresh {kind.value}",
        )
