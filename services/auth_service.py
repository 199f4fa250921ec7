# services/auth_service.py
import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from extensions.jwt import create_token, revoke_token
from models.user import User
from repositories.user_repository import UserRepository
from services.rate_limit_service import SignInRateLimiter
from utils.exceptions import BizError
from utils.validators import (
    default_avatar_url,
    password_policy_errors,
    validate_email,
    validate_username,
)

logger = logging.getLogger(__name__)


class AuthService:

    @staticmethod
    def issue_token(user: User) -> str:
        return create_token(user.id, user.is_admin, user.password_version)

    @staticmethod
    def _session(user: User) -> dict:
        return {"user": user.to_dict(), "token": AuthService.issue_token(user)}

    @staticmethod
    def sign_up(email: str, username: str, password: str) -> dict:
        # 1. 基础校验
        email = (email or "").strip().lower()
        username = (username or "").strip()
        if not email or not username or not password:
            raise BizError("邮箱、用户名和密码必填", code=400)
        if not validate_email(email):
            raise BizError("邮箱格式不正确", code=400)
        if not validate_username(username):
            raise BizError("用户名需为 3-30 位字母、数字、下划线或短横线", code=400)

        # 2. 密码策略
        cfg = current_app.config
        errors = password_policy_errors(
            username,
            password,
            min_length=cfg.get("PASSWORD_MIN_LENGTH", 8),
            require_symbol=cfg.get("REQUIRE_COMPLEX_SYMBOL", True),
        )
        if errors:
            raise BizError("; ".join(errors), code=400)

        # 3. 唯一性
        if UserRepository.exists_email(email):
            raise BizError("邮箱已注册", code=409)
        if UserRepository.exists_username(username):
            raise BizError("用户名已存在", code=409)

        user = User(
            username=username,
            email=email,
            password_hash=generate_password_hash(password),
            avatar_url=default_avatar_url(username),
        )
        user.touch_password_time()
        UserRepository.add(user)
        try:
            UserRepository.commit()
        except IntegrityError as e:
            # 并发注册时由唯一约束兜底
            msg = str(e.orig)
            if "username" in msg:
                raise BizError("用户名已存在", code=409)
            raise BizError("邮箱已注册", code=409)
        except SQLAlchemyError:
            UserRepository.rollback()
            raise BizError("数据库错误", code=500)

        logger.info(f"新用户注册 id={user.id} username={user.username}")
        return AuthService._session(user)

    @staticmethod
    def sign_in(email: str, password: str) -> dict:
        email = (email or "").strip().lower()
        if not email or not password:
            raise BizError("邮箱和密码必填", code=400)

        cfg = current_app.config
        limiter = SignInRateLimiter(email, cfg["SIGNIN_FAIL_LIMIT"], cfg["SIGNIN_BLOCK_SECONDS"])
        limiter.ensure_not_blocked()

        user = UserRepository.find_by_email(email)
        if not user or not check_password_hash(user.password_hash, password):
            limiter.record_failure()
            logger.info(f"登录失败 email={email}")
            raise BizError("邮箱或密码错误", code=401)
        if user.is_banned:
            raise BizError("账号已被封禁", code=403)

        limiter.clear()
        logger.info(f"用户登录 id={user.id}")
        return AuthService._session(user)

    @staticmethod
    def sign_out(token) -> bool:
        """吊销当前 token；没有 token 或 token 无效时也视为成功。"""
        if not token:
            return False
        return revoke_token(token)

    @staticmethod
    def ensure_default_admin(app):
        uname = app.config["ADMIN_INIT_USERNAME"]
        if UserRepository.find_by_username(uname):
            return
        user = User(
            username=uname,
            email=app.config["ADMIN_INIT_EMAIL"],
            password_hash=generate_password_hash(app.config["ADMIN_INIT_PASSWORD"]),
            avatar_url=default_avatar_url(uname),
            is_admin=True,
        )
        user.touch_password_time()
        UserRepository.add(user)
        UserRepository.commit()
        app.logger.info("默认管理员已创建: %s", uname)
