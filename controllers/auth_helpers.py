# controllers/auth_helpers.py
from __future__ import annotations

from functools import wraps

from flask import g, request

from extensions.jwt import decode_token, TokenError
from repositories.user_repository import UserRepository
from utils.permissions import is_admin
from utils.response import json_response


def extract_bearer(auth_header: str | None) -> str | None:
    if not auth_header:
        return None
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def _resolve_user_from_token(token: str):
    """
    解析 token 并返回 user 对象。
    失败时抛出 (code, message) 的 ValueError，供调用方决定如何返回。
    """
    try:
        payload = decode_token(token)
    except TokenError:
        raise ValueError(("TOKEN_INVALID", "Token 无效或已过期"))

    user_id = payload.get("sub")
    if user_id is None:
        raise ValueError(("TOKEN_PAYLOAD_INVALID", "Token 载荷无效"))
    user = UserRepository.find_by_id(user_id)
    if not user:
        raise ValueError(("USER_NOT_FOUND", "用户不存在"))

    token_pwdv = payload.get("pwdv")
    if token_pwdv is None or token_pwdv != user.password_version:
        raise ValueError(("TOKEN_PWD_VERSION_MISMATCH", "登录状态已失效，请重新登录"))

    return user


def _unauthorized(ve: ValueError):
    _code, msg = ve.args[0] if isinstance(ve.args[0], tuple) else ("TOKEN_ERROR", "认证失败")
    return json_response(code=401, message=msg)


def auth_required():
    """
    鉴权装饰器：
      - 验证 Authorization: Bearer <token>
      - 解析 token -> user，注入 g.current_user / g.current_token
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            g.current_user = None
            token = extract_bearer(request.headers.get("Authorization"))
            if not token:
                return json_response(code=401, message="缺少或无效 Authorization")
            try:
                user = _resolve_user_from_token(token)
            except ValueError as ve:
                return _unauthorized(ve)
            g.current_user = user
            g.current_token = token
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def optional_auth(strict: bool = True):
    """
    可选鉴权：
      - 无 Authorization：g.current_user = None，继续
      - 有 Authorization 且有效：注入 g.current_user
      - 有 Authorization 但无效：strict 时返回 401，否则按未登录继续
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = extract_bearer(request.headers.get("Authorization"))
            g.current_user = None
            g.current_token = token
            if token is None:
                return fn(*args, **kwargs)
            try:
                user = _resolve_user_from_token(token)
            except ValueError as ve:
                if strict:
                    return _unauthorized(ve)
                return fn(*args, **kwargs)
            g.current_user = user
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def require_admin():
    """管理员校验，依赖于 @auth_required 预先注入的 g.current_user。"""

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if not user:
                return json_response(code=401, message="未登录")
            if not is_admin(user):
                return json_response(code=403, message="需要管理员权限")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
