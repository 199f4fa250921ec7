# controllers/auth_controller.py
from flask import Blueprint, g, request

from controllers.auth_helpers import extract_bearer, optional_auth
from services.auth_service import AuthService
from utils.exceptions import BizError
from utils.response import json_response

auth_bp = Blueprint("auth", __name__)


@auth_bp.errorhandler(BizError)
def _biz_error(e: BizError):
    return json_response(code=e.code, message=e.message, data=e.data)


@auth_bp.post("/sign-up")
def sign_up():
    data = request.get_json(silent=True) or {}
    session = AuthService.sign_up(
        email=data.get("email"),
        username=data.get("username"),
        password=data.get("password") or "",
    )
    return json_response(message="注册成功", data=session, code=201)


@auth_bp.post("/sign-in")
def sign_in():
    data = request.get_json(silent=True) or {}
    session = AuthService.sign_in(
        email=data.get("email"),
        password=data.get("password") or "",
    )
    return json_response(message="登录成功", data=session)


@auth_bp.post("/sign-out")
def sign_out():
    token = extract_bearer(request.headers.get("Authorization"))
    AuthService.sign_out(token)
    return json_response(message="已退出登录")


@auth_bp.get("/me")
@optional_auth(strict=False)
def me():
    user = g.current_user
    return json_response(data=user.to_dict() if user else None)
