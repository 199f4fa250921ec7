# controllers/record_controller.py
from flask import Blueprint, g, request

from controllers.auth_helpers import auth_required, optional_auth
from services.record_service import RecordService
from utils.exceptions import BizError
from utils.query_parser import parse_record_query
from utils.response import json_response

record_bp = Blueprint("records", __name__, url_prefix="/api/records")


@record_bp.errorhandler(BizError)
def _biz_error(e: BizError):
    return json_response(code=e.code, message=e.message, data=e.data)


@record_bp.get("/<collection>")
@optional_auth()
def select_records(collection: str):
    query = parse_record_query(request.args)
    items = RecordService.select(collection, query, g.current_user)
    return json_response(data=items)


@record_bp.get("/<collection>/count")
@optional_auth()
def count_records(collection: str):
    query = parse_record_query(request.args)
    return json_response(data={"count": RecordService.count(collection, query, g.current_user)})


@record_bp.get("/<collection>/<int:record_id>")
@optional_auth()
def get_record(collection: str, record_id: int):
    return json_response(data=RecordService.get(collection, record_id, g.current_user))


@record_bp.post("/<collection>")
@auth_required()
def insert_record(collection: str):
    data = request.get_json(silent=True)
    if data is None:
        return json_response(code=400, message="请求体必须为 JSON 对象")
    record = RecordService.insert(collection, data, g.current_user)
    return json_response(message="创建成功", data=record, code=201)


@record_bp.patch("/<collection>/<int:record_id>")
@auth_required()
def update_record(collection: str, record_id: int):
    data = request.get_json(silent=True)
    if data is None:
        return json_response(code=400, message="请求体必须为 JSON 对象")
    record = RecordService.update(collection, record_id, data, g.current_user)
    return json_response(message="更新成功", data=record)


@record_bp.delete("/<collection>/<int:record_id>")
@auth_required()
def delete_record(collection: str, record_id: int):
    RecordService.delete(collection, record_id, g.current_user)
    return json_response(message="删除成功")
