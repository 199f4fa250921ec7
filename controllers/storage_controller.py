# -*- coding: utf-8 -*-
"""对象存储接口：上传返回公网 URL，本地后端时提供文件访问。"""

from __future__ import annotations

from flask import Blueprint, abort, g, request, send_file

from controllers.auth_helpers import auth_required
from services.storage_service import StorageService
from utils.exceptions import BizError
from utils.permissions import assert_can_write
from utils.response import json_response

storage_bp = Blueprint("storage", __name__, url_prefix="/api/storage")


@storage_bp.errorhandler(BizError)
def _biz_error(e: BizError):
    return json_response(code=e.code, message=e.message, data=e.data)


@storage_bp.post("/<bucket>")
@auth_required()
def upload(bucket: str):
    user = g.current_user
    assert_can_write(user)
    file = request.files.get("file")
    if file is not None:
        # multipart：file + 可选 path
        data = file.read()
        result = StorageService.upload(bucket, request.form.get("path"), data, user, filename=file.filename)
    else:
        payload = request.get_json(silent=True) or {}
        data = StorageService.decode_base64(payload.get("content") or "")
        result = StorageService.upload(bucket, payload.get("path"), data, user, filename=payload.get("filename"))
    return json_response(message="上传成功", data=result, code=201)


@storage_bp.get("/<bucket>/<path:file_path>")
def serve(bucket: str, file_path: str):
    """根据存储路径返回文件内容（仅 local 后端）。"""
    target = StorageService.resolve(bucket, file_path)
    if not target:
        abort(404)
    return send_file(target, conditional=True)
