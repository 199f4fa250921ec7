# extensions/jwt.py
from __future__ import annotations

import time, json, base64, hmac, hashlib, uuid
from flask import current_app
from extensions.redis_client import get_redis

_BLACKLIST_PREFIX = "jwt:blk:"


def _b64(data: bytes):
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64json(obj):
    return _b64(json.dumps(obj, separators=(",", ":")).encode())


def _sign(signing: bytes) -> bytes:
    secret = current_app.config["JWT_SECRET_KEY"].encode()
    return _b64(hmac.new(secret, signing, hashlib.sha256).digest())


class TokenError(ValueError):
    pass


def create_token(user_id: int, is_admin: bool, pwdv: int, expires_seconds: int | None = None) -> str:
    """签发会话 token：sub=用户ID，adm=是否管理员，pwdv=密码版本（改密后旧 token 失效）。"""
    if expires_seconds is None:
        expires_seconds = current_app.config.get("JWT_EXPIRES_SECONDS", 8 * 3600)
    now = int(time.time())
    header = {"alg": "HS256", "typ": "JWT"}
    payload = {
        "sub": user_id,
        "adm": bool(is_admin),
        "pwdv": pwdv,
        "exp": now + expires_seconds,
        "iat": now,
        "jti": uuid.uuid4().hex,
    }
    signing = _b64json(header) + b"." + _b64json(payload)
    return (signing + b"." + _sign(signing)).decode()


def _decode_segment(seg: str):
    pad = "=" * (-len(seg) % 4)
    return json.loads(base64.urlsafe_b64decode(seg + pad).decode())


def decode_token(token: str, check_revoked: bool = True) -> dict:
    try:
        h_b, p_b, sig_b = token.split(".")
        expected = _sign(f"{h_b}.{p_b}".encode()).decode()
        if not hmac.compare_digest(expected, sig_b):
            raise TokenError("签名不匹配")

        payload = _decode_segment(p_b)
        exp = payload.get("exp")
        if exp and time.time() > exp:
            raise TokenError("token已过期")

        if check_revoked:
            jti = payload.get("jti")
            if jti and is_token_revoked(jti):
                raise TokenError("token已失效")
        return payload
    except TokenError:
        raise
    except (ValueError, TypeError, UnicodeDecodeError) as e:
        raise TokenError("token不合法") from e


def revoke_token(token: str) -> bool:
    """
    解析 token -> jti+exp 写入 Redis 黑名单，TTL 为剩余有效期。
    幂等：解析失败或已过期直接返回 False。
    """
    try:
        payload = decode_token(token, check_revoked=False)
    except TokenError:
        return False
    jti = payload.get("jti")
    exp = payload.get("exp")
    if not jti or not exp:
        return False
    ttl = max(int(exp) - int(time.time()), 1)
    get_redis().setex(f"{_BLACKLIST_PREFIX}{jti}", ttl, "1")
    return True


def is_token_revoked(jti: str) -> bool:
    return bool(get_redis().get(f"{_BLACKLIST_PREFIX}{jti}"))
