"""
歌曲 API 路由

  1. GET    /api/songs/{id}                    — 元数据 + 解析后的歌词行
  2. PUT    /api/songs/{id}/lyrics             — 保存新的歌词来源（仅所有者）
  3. DELETE /api/songs/{id}                    — 删除歌曲（仅所有者）
  4. POST   /api/songs/{id}/translate-stream   — 逐行翻译 (SSE)
  5. POST   /api/songs/{id}/furigana-stream    — 逐行振假名 (SSE)
  6. POST   /api/songs/{id}/soramimi-stream    — 逐行空耳 (SSE)
  7. POST   /api/songs/{id}/clear-cached-data  — 清除缓存标注（仅所有者）
"""
import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from lyricnote.config import settings
from lyricnote.errors import LyricNoteError
from lyricnote.lyrics.parser import parse_lyrics_content
from lyricnote.models.annotation import (
    ClearCachedDataRequest,
    FuriganaStreamRequest,
    SoramimiStreamRequest,
    TranslateStreamRequest,
)
from lyricnote.models.song import LyricsContent, SaveLyricsRequest
from lyricnote.services.annotation_service import AnnotationPlan, AnnotationService
from lyricnote.services.ownership import Identity, StaticTokenValidator, TokenValidator, require_modify
from lyricnote.services.song_store import SongStore

logger = logging.getLogger(__name__)
router = APIRouter(tags=["歌曲"])

# 全局单例
_store = SongStore(settings.data_dir)
_validator = StaticTokenValidator(settings.auth_tokens)
_annotation_service = AnnotationService(store=_store, validator=_validator)

# 生成任务独立于客户端连接运行，保留引用防止被回收
_background_tasks: set[asyncio.Task] = set()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


# ==================== 依赖 ====================


def get_annotation_service() -> AnnotationService:
    return _annotation_service


def get_song_store() -> SongStore:
    return _store


def get_token_validator() -> TokenValidator:
    return _validator


def get_identity(
    x_username: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> Identity:
    """X-Username + Authorization: Bearer <token>"""
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip() or None
    return Identity(username=(x_username or "").strip() or None, auth_token=token)


def _http_error(e: LyricNoteError) -> HTTPException:
    logger.info(f"[API] 请求被拒绝: status={e.status_code}, error={e.message}")
    return HTTPException(status_code=e.status_code, detail=e.message)


# ==================== SSE ====================


def _sse(event: dict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def _plan_response(plan: AnnotationPlan):
    """把处理方案转为 HTTP 响应"""
    if plan.mode == "skipped":
        return JSONResponse(plan.payload)

    if plan.mode == "cached":
        async def single_event():
            yield _sse(plan.payload)

        return StreamingResponse(single_event(), media_type="text/event-stream", headers=SSE_HEADERS)

    queue: asyncio.Queue = asyncio.Queue()

    async def _runner():
        try:
            await plan.run(queue.put_nowait)
        except Exception as e:
            logger.error(f"[SSE] 生成任务异常: {e}", exc_info=True)
            queue.put_nowait({"type": "error", "error": str(e) or "Generation failed"})
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(_runner())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    async def event_generator():
        while True:
            event = await queue.get()
            if event is None:
                break
            yield _sse(event)

    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=SSE_HEADERS)


# ==================== API Endpoints ====================


@router.get("/songs/{song_id}", summary="获取歌曲")
async def get_song(song_id: str, store: SongStore = Depends(get_song_store)):
    try:
        song = await asyncio.to_thread(store.get_song, song_id)
    except LyricNoteError as e:
        raise _http_error(e)
    if song is None:
        raise HTTPException(status_code=404, detail="Song not found")

    lines = []
    if song.lyrics and song.lyrics.lrc:
        lines = parse_lyrics_content(song.lyrics.lrc, song.lyrics.krc, song.display_title, song.display_artist)

    return {
        "id": song.id,
        "title": song.title,
        "artist": song.artist,
        "album": song.album,
        "lyricsSource": song.lyrics_source.to_dict() if song.lyrics_source else None,
        "createdBy": song.created_by,
        "createdAt": song.created_at,
        "updatedAt": song.updated_at,
        "sourceHash": song.source_hash,
        "lines": [line.to_dict() for line in lines],
        "cached": {
            "translations": sorted(song.translations),
            "furigana": song.furigana is not None,
            "soramimi": sorted(song.soramimi),
        },
    }


@router.put("/songs/{song_id}/lyrics", summary="保存歌词")
async def save_lyrics(
    song_id: str,
    req: SaveLyricsRequest,
    identity: Identity = Depends(get_identity),
    store: SongStore = Depends(get_song_store),
    validator: TokenValidator = Depends(get_token_validator),
):
    """
    保存新的歌词来源，歌曲不存在时以当前用户为创建者新建

    歌词来源变化时所有已缓存的标注一并清除
    """
    try:
        song = await asyncio.to_thread(store.get_song, song_id)
        username = require_modify(song, identity, validator, settings.admin_username, "save lyrics")

        source = req.lyrics_source.to_source() if req.lyrics_source else None
        if song is None:
            title = req.title or (source.title if source else "") or song_id
            await asyncio.to_thread(
                store.save_song, song_id, title, req.artist or (source.artist if source else None),
                source.album if source else None, username,
            )
        elif req.title or req.artist:
            await asyncio.to_thread(store.save_song, song_id, req.title or song.title, req.artist)

        song, cleared = await asyncio.to_thread(
            store.save_lyrics, song_id, LyricsContent(lrc=req.lrc, krc=req.krc), source, req.clear_annotations,
        )
    except LyricNoteError as e:
        raise _http_error(e)

    logger.info(f"[API] 歌词已保存: song={song_id}, user={username}, cleared={cleared}")
    return {"id": song.id, "sourceHash": song.source_hash, "annotationsCleared": cleared}


@router.delete("/songs/{song_id}", summary="删除歌曲")
async def delete_song(
    song_id: str,
    identity: Identity = Depends(get_identity),
    store: SongStore = Depends(get_song_store),
    validator: TokenValidator = Depends(get_token_validator),
):
    try:
        song = await asyncio.to_thread(store.get_song, song_id)
        if song is None:
            raise HTTPException(status_code=404, detail="Song not found")
        require_modify(song, identity, validator, settings.admin_username, "delete song")
        await asyncio.to_thread(store.delete_song, song_id)
    except LyricNoteError as e:
        raise _http_error(e)
    return {"success": True}


@router.post("/songs/{song_id}/translate-stream", summary="逐行翻译")
async def translate_stream(
    song_id: str,
    req: TranslateStreamRequest,
    identity: Identity = Depends(get_identity),
    service: AnnotationService = Depends(get_annotation_service),
):
    try:
        plan = await service.prepare_translation(song_id, req.language, req.force, identity)
    except LyricNoteError as e:
        raise _http_error(e)
    return _plan_response(plan)


@router.post("/songs/{song_id}/furigana-stream", summary="逐行振假名")
async def furigana_stream(
    song_id: str,
    req: FuriganaStreamRequest,
    identity: Identity = Depends(get_identity),
    service: AnnotationService = Depends(get_annotation_service),
):
    try:
        plan = await service.prepare_furigana(song_id, req.force, identity)
    except LyricNoteError as e:
        raise _http_error(e)
    return _plan_response(plan)


@router.post("/songs/{song_id}/soramimi-stream", summary="逐行空耳")
async def soramimi_stream(
    song_id: str,
    req: SoramimiStreamRequest,
    identity: Identity = Depends(get_identity),
    service: AnnotationService = Depends(get_annotation_service),
):
    try:
        plan = await service.prepare_soramimi(
            song_id,
            target_language=req.target_language,
            force=req.force,
            identity=identity,
            furigana=req.furigana_segments(),
        )
    except LyricNoteError as e:
        raise _http_error(e)
    return _plan_response(plan)


@router.post("/songs/{song_id}/clear-cached-data", summary="清除缓存标注")
async def clear_cached_data(
    song_id: str,
    req: ClearCachedDataRequest,
    identity: Identity = Depends(get_identity),
    store: SongStore = Depends(get_song_store),
    validator: TokenValidator = Depends(get_token_validator),
):
    try:
        song = await asyncio.to_thread(store.get_song, song_id)
        if song is None:
            raise HTTPException(status_code=404, detail="Song not found")
        require_modify(song, identity, validator, settings.admin_username, "clear cached data")
        cleared = await asyncio.to_thread(
            store.clear_cached_data, song_id, req.clear_translations, req.clear_furigana, req.clear_soramimi,
        )
    except LyricNoteError as e:
        raise _http_error(e)
    return {"success": True, "cleared": cleared}
