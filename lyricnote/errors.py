"""
异常定义

  InputError           — 歌词缺失或请求非法，流开始前失败
  AuthorizationError   — 未认证/无权限的强制刷新，生成前失败
  UpstreamStreamError  — 模型流中断，转为 SSE error 事件
  PersistenceError     — 生成成功后写缓存失败，仅记录日志
"""


class LyricNoteError(Exception):
    """所有业务异常的基类"""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InputError(LyricNoteError):
    status_code = 404


class AuthorizationError(LyricNoteError):
    status_code = 401


class UpstreamStreamError(LyricNoteError):
    status_code = 502


class PersistenceError(LyricNoteError):
    pass
