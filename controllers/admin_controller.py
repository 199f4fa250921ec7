# controllers/admin_controller.py
from flask import Blueprint, g, request

from controllers.auth_helpers import auth_required, require_admin
from services.admin_service import AdminService
from utils.exceptions import BizError
from utils.response import json_response, parse_bool

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.errorhandler(BizError)
def _biz_error(e: BizError):
    return json_response(code=e.code, message=e.message, data=e.data)


@admin_bp.get("/stats")
@auth_required()
@require_admin()
def stats():
    return json_response(data=AdminService.stats())


@admin_bp.post("/users/<int:user_id>/ban")
@auth_required()
@require_admin()
def ban_user(user_id: int):
    data = request.get_json(silent=True) or {}
    banned = parse_bool(data.get("banned"), default=True)
    user = AdminService.set_banned(g.current_user, user_id, banned)
    return json_response(message="已封禁" if user.is_banned else "已解除封禁", data=user.to_dict())
