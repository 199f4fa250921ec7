# -*- coding: utf-8 -*-
"""
storage.py
--------------------------------------------------------------------
对象存储扩展：upload(bucket, path, bytes) -> 公网 URL。
- local：文件落盘到 STORAGE_DIR/<bucket>/<path>，由 storage_controller 提供下载。
- s3：S3 兼容接口（path 风格寻址，s3v4 签名）。
在 create_app 中 init_app，未初始化时调用会抛 RuntimeError。
"""
from __future__ import annotations

import logging
import os
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    pass


def safe_join(root: str, *parts: str) -> str:
    """拼接路径并防止路径穿越，越界时抛 StorageError。"""
    storage_root = os.path.abspath(root)
    normalized = os.path.normpath(os.path.join(*parts)).lstrip(os.sep)
    target = os.path.abspath(os.path.join(storage_root, normalized))
    if not target.startswith(storage_root + os.sep):
        raise StorageError("非法存储路径")
    return target


class LocalStorageBackend:
    def __init__(self, root: str, public_url: str):
        self.root = os.path.abspath(root)
        self.public_url = public_url.rstrip("/")

    def put(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        target = safe_join(self.root, bucket, path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "wb") as fp:
            fp.write(data)
        return f"{self.public_url}/{bucket}/{path}"

    def resolve(self, bucket: str, path: str) -> Optional[str]:
        target = safe_join(self.root, bucket, path)
        return target if os.path.isfile(target) else None


class S3StorageBackend:
    def __init__(self, endpoint_url: str, access_key: str, secret_key: str,
                 region_name: str, signature_version: str = "s3v4"):
        session = boto3.session.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region_name,
        )
        cfg = Config(
            signature_version=signature_version,
            s3={"addressing_style": "path"},
        )
        self.endpoint_url = (endpoint_url or "").rstrip("/")
        self.client = session.client("s3", endpoint_url=endpoint_url, config=cfg)

    def put(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=bucket, Key=path, Body=data, **extra)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 上传失败 bucket={bucket} key={path}: {e}")
            raise StorageError("对象存储上传失败") from e
        return f"{self.endpoint_url}/{bucket}/{path}"

    def resolve(self, bucket: str, path: str) -> Optional[str]:
        # S3 对象直接由对象存储提供访问
        return None


class ObjectStorage:
    def __init__(self) -> None:
        self._backend = None

    def init_app(self, app) -> None:
        cfg = app.config
        backend = (cfg.get("STORAGE_BACKEND") or "local").lower()
        if backend == "s3":
            if not cfg.get("AWS_ENDPOINT_URL"):
                app.logger.warning("AWS_ENDPOINT_URL is not configured; object storage is disabled.")
                return
            self._backend = S3StorageBackend(
                endpoint_url=cfg["AWS_ENDPOINT_URL"],
                access_key=cfg.get("AWS_ACCESS_KEY"),
                secret_key=cfg.get("AWS_SECRET_KEY"),
                region_name=cfg.get("AWS_REGION_NAME"),
                signature_version=cfg.get("AWS_SIGNATURE_VERSION") or "s3v4",
            )
        else:
            self._backend = LocalStorageBackend(cfg["STORAGE_DIR"], cfg["STORAGE_PUBLIC_URL"])

    @property
    def backend(self):
        if self._backend is None:
            raise RuntimeError("Object storage is not initialized")
        return self._backend


storage = ObjectStorage()

__all__ = ["storage", "StorageError", "safe_join"]
