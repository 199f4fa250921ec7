# config/settings.py
import os
from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
load_dotenv(os.path.join(BASE_DIR, ".env"))  # 自动加载环境变量


def _as_bool(val, default=False):
    if val is None:
        return default
    return str(val).lower() in ("1", "true", "yes", "on")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-secret-key")
    JWT_EXPIRES_SECONDS = int(os.getenv("JWT_EXPIRES_SECONDS", 8 * 3600))
    REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")

    # 对象存储：local / s3
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
    STORAGE_DIR = os.getenv("STORAGE_DIR", os.path.join(BASE_DIR, "storage"))
    STORAGE_PUBLIC_URL = os.getenv("STORAGE_PUBLIC_URL", "/api/storage")
    STORAGE_ALLOWED_EXTENSIONS = tuple(
        ext.strip().lower()
        for ext in os.getenv("STORAGE_ALLOWED_EXTENSIONS", ".png,.jpg,.jpeg,.gif,.webp").split(",")
        if ext.strip()
    )
    STORAGE_MAX_BYTES = int(os.getenv("STORAGE_MAX_BYTES", 10 * 1024 * 1024))

    # S3 兼容对象存储（STORAGE_BACKEND=s3 时使用）
    AWS_ACCESS_KEY = os.getenv("AWS_ACCESS_KEY")
    AWS_SECRET_KEY = os.getenv("AWS_SECRET_KEY")
    AWS_ENDPOINT_URL = os.getenv("AWS_ENDPOINT_URL")
    AWS_REGION_NAME = os.getenv("AWS_REGION_NAME", "us-east-1")
    AWS_SIGNATURE_VERSION = os.getenv("AWS_SIGNATURE_VERSION", "s3v4")

    # 日志相关
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR", "./logs")
    LOG_TO_FILE = os.getenv("LOG_TO_FILE", "1") == "1"
    LOG_JSON = os.getenv("LOG_JSON", "1") == "1"  # 是否 JSON 格式
    LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", 5 * 1024 * 1024))
    LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", 5))
    LOG_SLOW_REQUEST_MS = int(os.getenv("LOG_SLOW_REQUEST_MS", 1000))  # 超过即 WARNING
    APP_NAME = os.getenv("APP_NAME", "repair-hub")

    # 默认管理员（首次启动自动创建，可选）
    ADMIN_INIT_USERNAME = os.getenv("ADMIN_INIT_USERNAME", "admin")
    ADMIN_INIT_PASSWORD = os.getenv("ADMIN_INIT_PASSWORD", "Admin123!")
    ADMIN_INIT_EMAIL = os.getenv("ADMIN_INIT_EMAIL", "admin@example.com")

    # ========= 密码策略 & 登录限流 =========
    PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", 8))
    # 是否必须包含符号
    REQUIRE_COMPLEX_SYMBOL = _as_bool(os.getenv("REQUIRE_COMPLEX_SYMBOL", "1"), False)
    # 登录失败尝试上限
    SIGNIN_FAIL_LIMIT = int(os.getenv("SIGNIN_FAIL_LIMIT", 5))
    # 达到上限后封禁秒数
    SIGNIN_BLOCK_SECONDS = int(os.getenv("SIGNIN_BLOCK_SECONDS", 900))

    # 列表查询默认/最大条数
    RECORDS_DEFAULT_LIMIT = int(os.getenv("RECORDS_DEFAULT_LIMIT", 100))
    RECORDS_MAX_LIMIT = int(os.getenv("RECORDS_MAX_LIMIT", 500))

    # =========================================


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv("DEV_DATABASE_URI", "sqlite:///" + os.path.join(BASE_DIR, "dev.db"))


class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI")


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URI", "sqlite:///:memory:")
    LOG_JSON = False
    LOG_TO_FILE = False
    REQUIRE_COMPLEX_SYMBOL = True
    SIGNIN_FAIL_LIMIT = 3


config_map = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(config_name):
    return config_map.get(config_name, DevelopmentConfig)


class ClientConfig:
    """客户端数据层配置（RestRecordStore / InMemoryRecordStore 使用）。"""

    API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8888")
    # 网络超时（秒），请求在途期间不可取消
    API_TIMEOUT = float(os.getenv("API_TIMEOUT", 10))
    # 内存模拟存储的模拟延迟
    SIMULATED_LATENCY_MS = int(os.getenv("SIMULATED_LATENCY_MS", 350))
    # 分页拉取全部记录时的每页条数，不超过服务端 RECORDS_MAX_LIMIT
    PAGE_SIZE = int(os.getenv("API_PAGE_SIZE", 100))
