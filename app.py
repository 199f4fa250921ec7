# app.py
import logging

from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

from config.settings import get_config
from controllers.admin_controller import admin_bp
from controllers.auth_controller import auth_bp
from controllers.record_controller import record_bp
from controllers.storage_controller import storage_bp
from extensions.database import db, migrate
from extensions.logger import init_logger
from extensions.storage import storage
from services.auth_service import AuthService
from utils.exceptions import BizError
from utils.response import json_response

logger = logging.getLogger(__name__)


def create_app(config_name="development"):
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)
    storage.init_app(app)
    init_logger(app)
    logger.info(f"当前数据库 URI: {app.config['SQLALCHEMY_DATABASE_URI']}")
    try:
        # 首次启动时表还没创建（需先 flask db upgrade），跳过默认管理员
        with app.app_context():
            AuthService.ensure_default_admin(app)
    except SQLAlchemyError as e:
        logger.warning(f"表结构尚未创建，暂不初始化默认管理员: {e}")

    # 注册 / 登录
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    # 通用集合增删改查
    app.register_blueprint(record_bp)
    # 对象存储
    app.register_blueprint(storage_bp)
    # 管理后台
    app.register_blueprint(admin_bp)

    # 错误处理
    @app.errorhandler(404)
    def not_found(e):
        return json_response(message="接口不存在", code=404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return json_response(message="请求方法不允许", code=405)

    @app.errorhandler(500)
    def server_error(e):
        return json_response(message="服务器内部错误", code=500)

    @app.errorhandler(BizError)
    def _biz_err(e: BizError):
        return json_response(code=e.code, message=e.message, data=e.data)

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=8888, debug=True)
