from flask import jsonify


def json_response(message="success", data=None, code=200):
    """统一响应信封 {code, message, data}，HTTP 状态码与 code 一致。"""
    resp = jsonify({"code": code, "message": message, "data": data})
    resp.status_code = code
    return resp


def parse_bool(value, default=None):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default
