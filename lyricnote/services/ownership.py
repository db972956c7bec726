"""
身份与歌曲所有权

  - TokenValidator: 校验 (username, token)，默认实现读取 AUTH_TOKENS
  - can_modify_song: 管理员可改任意歌曲；无主歌曲与自己创建的歌曲可改
"""
import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from lyricnote.errors import AuthorizationError
from lyricnote.models.song import SongDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """请求方身份，来自 X-Username 与 Authorization: Bearer"""
    username: Optional[str] = None
    auth_token: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return not self.username and not self.auth_token


@dataclass(frozen=True)
class Permission:
    can_modify: bool
    reason: Optional[str] = None


class TokenValidator(ABC):
    """认证服务"""

    @abstractmethod
    def validate(self, username: str, token: str) -> bool:
        ...


class StaticTokenValidator(TokenValidator):
    """固定 token 表: {username: token}"""

    def __init__(self, tokens: dict[str, str]):
        self._tokens = {name.lower(): token for name, token in tokens.items()}

    def validate(self, username: str, token: str) -> bool:
        expected = self._tokens.get(username.lower())
        if not expected or not token:
            return False
        return hmac.compare_digest(expected.encode("utf-8"), token.encode("utf-8"))


def can_modify_song(
    song: Optional[SongDocument],
    username: Optional[str],
    admin_username: str = "admin",
) -> Permission:
    """
    歌曲修改权限

    :param song: 歌曲，None 表示新建
    :param username: 已认证的用户名
    :param admin_username: 管理员用户名
    """
    if not username:
        return Permission(False, "Authentication required")
    if username.lower() == admin_username.lower():
        return Permission(True)
    if song is None:
        return Permission(True)
    if not song.created_by or song.created_by == username:
        return Permission(True)
    return Permission(False, "Can only modify your own songs")


def authenticate(identity: Identity, validator: TokenValidator, action: str = "perform this action") -> str:
    """要求有效凭证，返回用户名；失败抛出 401"""
    if not identity.username or not identity.auth_token:
        raise AuthorizationError(f"Unauthorized - authentication required to {action}", 401)
    if not validator.validate(identity.username, identity.auth_token):
        logger.warning(f"[Auth] 凭证无效: username={identity.username}")
        raise AuthorizationError("Unauthorized - invalid credentials", 401)
    return identity.username


def require_modify(
    song: Optional[SongDocument],
    identity: Identity,
    validator: TokenValidator,
    admin_username: str,
    action: str = "modify this song",
) -> str:
    """认证并检查所有权；未认证 401，无权限 403"""
    username = authenticate(identity, validator, action)
    permission = can_modify_song(song, username, admin_username)
    if not permission.can_modify:
        raise AuthorizationError(permission.reason or "Only the song owner can modify this song", 403)
    return username
