# services/storage_service.py
from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import os
import posixpath
import re
import uuid
from typing import Optional

from flask import current_app

from extensions.storage import StorageError, storage
from utils.exceptions import BizError
from utils.permissions import is_admin

logger = logging.getLogger(__name__)

BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{1,62}$")


class StorageService:
    """upload(bucket, path, bytes) -> 公网 URL。"""

    @staticmethod
    def _check_bucket(bucket: str):
        if not bucket or not BUCKET_RE.match(bucket):
            raise BizError("非法 bucket 名称", 400)

    @staticmethod
    def _normalize_path(path: Optional[str], filename: Optional[str], user) -> str:
        user_id = user.id
        if path:
            path = posixpath.normpath(path.strip().lstrip("/"))
            if path in (".", "") or path.split("/", 1)[0] == "..":
                raise BizError("非法存储路径", 400)
            # 普通用户只能写入自己的目录 <user_id>/...
            if not is_admin(user) and not path.startswith(f"{user_id}/"):
                raise BizError("只能上传到自己的目录", 403)
        else:
            # 未指定路径时按 用户/随机名 生成，保留原扩展名
            ext = os.path.splitext(filename or "")[1].lower()
            path = f"{user_id}/{uuid.uuid4().hex}{ext}"
        ext = os.path.splitext(path)[1].lower()
        allowed = current_app.config.get("STORAGE_ALLOWED_EXTENSIONS") or ()
        if ext not in allowed:
            raise BizError(f"不支持的文件类型: {ext or '无扩展名'}", 400)
        return path

    @staticmethod
    def decode_base64(content: str) -> bytes:
        if not content:
            raise BizError("文件内容不能为空", 400)
        # 兼容 data URL：data:image/png;base64,xxxx
        if content.startswith("data:") and "," in content:
            content = content.split(",", 1)[1]
        try:
            return base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError):
            raise BizError("文件内容不是合法的 base64", 400)

    @staticmethod
    def upload(bucket: str, path: Optional[str], data: bytes, user, filename: Optional[str] = None) -> dict:
        StorageService._check_bucket(bucket)
        if not data:
            raise BizError("文件内容不能为空", 400)
        max_bytes = current_app.config.get("STORAGE_MAX_BYTES", 10 * 1024 * 1024)
        if len(data) > max_bytes:
            raise BizError(f"文件大小超过限制 {max_bytes} 字节", 413)

        path = StorageService._normalize_path(path, filename, user)
        content_type = mimetypes.guess_type(path)[0]
        try:
            url = storage.backend.put(bucket, path, data, content_type=content_type)
        except StorageError as e:
            logger.error(f"对象存储写入失败 bucket={bucket} path={path}: {e}")
            raise BizError("对象存储暂不可用", 502)
        logger.info(f"文件已上传 bucket={bucket} path={path} size={len(data)} by user={user.id}")
        return {"url": url, "path": path}

    @staticmethod
    def resolve(bucket: str, path: str) -> Optional[str]:
        StorageService._check_bucket(bucket)
        try:
            return storage.backend.resolve(bucket, path)
        except StorageError:
            return None
