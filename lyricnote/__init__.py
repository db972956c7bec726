"""
LyricNote - 歌词逐行标注服务（翻译 / 振假名 / 空耳）
"""
from fastapi import FastAPI


def create_app() -> FastAPI:
    from lyricnote.routers import songs

    app = FastAPI(
        title="LyricNote",
        description="歌词逐行标注 API — 翻译、振假名与空耳，SSE 逐行推送",
        version="0.1.0",
    )
    app.include_router(songs.router, prefix="/api")
    return app
