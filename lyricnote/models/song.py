"""
歌曲文档数据模型
"""
import hashlib
from dataclasses import dataclass, field
from typing import Optional, Union

from pydantic import BaseModel, Field

from lyricnote.models.annotation import (
    AnnotationKind,
    Segments,
    segments_from_dicts,
    segments_to_dicts,
)


# -------- 内部数据模型 (dataclass) --------

@dataclass
class LyricsSource:
    """歌词来源（第三方歌词库的条目）"""
    hash: str                       # 来源条目 hash
    album_id: str                   # 专辑 ID
    title: str
    artist: str
    album: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "albumId": self.album_id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LyricsSource":
        return cls(
            hash=str(data.get("hash", "")),
            album_id=str(data.get("albumId", "")),
            title=data.get("title", ""),
            artist=data.get("artist", ""),
            album=data.get("album"),
        )


@dataclass
class LyricsContent:
    """原始歌词内容，解析后的行按需生成，不入库"""
    lrc: str                        # LRC 原文
    krc: Optional[str] = None       # KRC 原文（逐字时间）


@dataclass
class AnnotationSet:
    """某一类标注的完整结果，仅对生成时的歌词 hash 有效"""
    source_hash: str
    payload: Union[str, list[Segments]]   # 翻译: LRC 文本；振假名/空耳: 逐行段落
    updated_at: float = 0.0

    def to_dict(self) -> dict:
        payload = self.payload
        if not isinstance(payload, str):
            payload = [segments_to_dicts(line) for line in payload]
        return {"sourceHash": self.source_hash, "payload": payload, "updatedAt": self.updated_at}

    @classmethod
    def from_dict(cls, data: dict) -> "AnnotationSet":
        payload = data.get("payload")
        if not isinstance(payload, str):
            payload = [segments_from_dicts(line) for line in payload or []]
        return cls(
            source_hash=data.get("sourceHash", ""),
            payload=payload,
            updated_at=data.get("updatedAt", 0.0),
        )

    def wire_payload(self):
        """SSE cached 事件中的负载"""
        if isinstance(self.payload, str):
            return self.payload
        return [segments_to_dicts(line) for line in self.payload]


def compute_source_hash(lyrics: Optional[LyricsContent], lyrics_source: Optional[LyricsSource]) -> Optional[str]:
    """歌词来源 hash: 来源条目 + LRC/KRC 原文，任一变化都会使旧标注失效"""
    if lyrics is None or not lyrics.lrc:
        return None
    digest = hashlib.sha1()
    digest.update((lyrics_source.hash if lyrics_source else "").encode("utf-8"))
    digest.update(b"\x00")
    digest.update(lyrics.lrc.encode("utf-8"))
    digest.update(b"\x00")
    digest.update((lyrics.krc or "").encode("utf-8"))
    return digest.hexdigest()


@dataclass
class SongDocument:
    """歌曲文档: 元数据 + 歌词 + 各类标注"""
    id: str
    title: str
    artist: Optional[str] = None
    album: Optional[str] = None
    lyrics_source: Optional[LyricsSource] = None
    created_by: Optional[str] = None
    created_at: float = 0.0
    updated_at: float = 0.0
    lyrics: Optional[LyricsContent] = None
    translations: dict[str, AnnotationSet] = field(default_factory=dict)
    furigana: Optional[AnnotationSet] = None
    soramimi: dict[str, AnnotationSet] = field(default_factory=dict)

    @property
    def source_hash(self) -> Optional[str]:
        return compute_source_hash(self.lyrics, self.lyrics_source)

    @property
    def display_title(self) -> str:
        return self.lyrics_source.title if self.lyrics_source and self.lyrics_source.title else self.title

    @property
    def display_artist(self) -> Optional[str]:
        if self.lyrics_source and self.lyrics_source.artist:
            return self.lyrics_source.artist
        return self.artist

    def annotation_set(self, kind: AnnotationKind, language: Optional[str] = None) -> Optional[AnnotationSet]:
        if kind is AnnotationKind.TRANSLATION:
            return self.translations.get(language or "")
        if kind is AnnotationKind.FURIGANA:
            return self.furigana
        return self.soramimi.get(language or "")

    def has_annotations(self) -> bool:
        return bool(self.translations or self.furigana or self.soramimi)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "lyricsSource": self.lyrics_source.to_dict() if self.lyrics_source else None,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "lyrics": {"lrc": self.lyrics.lrc, "krc": self.lyrics.krc} if self.lyrics else None,
            "translations": {lang: s.to_dict() for lang, s in self.translations.items()},
            "furigana": self.furigana.to_dict() if self.furigana else None,
            "soramimi": {lang: s.to_dict() for lang, s in self.soramimi.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SongDocument":
        lyrics = data.get("lyrics")
        source = data.get("lyricsSource")
        furigana = data.get("furigana")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            artist=data.get("artist"),
            album=data.get("album"),
            lyrics_source=LyricsSource.from_dict(source) if source else None,
            created_by=data.get("createdBy"),
            created_at=data.get("createdAt", 0.0),
            updated_at=data.get("updatedAt", 0.0),
            lyrics=LyricsContent(lrc=lyrics.get("lrc", ""), krc=lyrics.get("krc")) if lyrics else None,
            translations={
                lang: AnnotationSet.from_dict(s) for lang, s in (data.get("translations") or {}).items()
            },
            furigana=AnnotationSet.from_dict(furigana) if furigana else None,
            soramimi={
                lang: AnnotationSet.from_dict(s) for lang, s in (data.get("soramimi") or {}).items()
            },
        )


# -------- API 请求模型 (Pydantic) --------

class LyricsSourceModel(BaseModel):
    hash: str
    album_id: str = ""
    title: str = Field("", max_length=500)
    artist: str = Field("", max_length=500)
    album: Optional[str] = Field(None, max_length=500)

    def to_source(self) -> LyricsSource:
        return LyricsSource(
            hash=self.hash,
            album_id=self.album_id,
            title=self.title,
            artist=self.artist,
            album=self.album,
        )


class SaveLyricsRequest(BaseModel):
    """保存新的歌词来源"""
    lrc: str
    krc: Optional[str] = None
    title: Optional[str] = Field(None, max_length=500)
    artist: Optional[str] = Field(None, max_length=500)
    lyrics_source: Optional[LyricsSourceModel] = None
    clear_annotations: bool = False                   # 即使来源未变也清除已有标注
