import uuid

import fakeredis
import pytest
import requests

from app import create_app
from client.memory_store import InMemoryRecordStore
from client.record_store import RestRecordStore
from extensions.database import db
from extensions.redis_client import set_redis
from extensions.storage import storage
from services.auth_service import AuthService
from tests.utils.api_client import TEST_BASE_URL, APIClient, FlaskTestAdapter

DEFAULT_PASSWORD = "Passw0rd!x"


@pytest.fixture()
def app(tmp_path):
    """进程内应用：内存 SQLite + fakeredis + 临时目录本地存储。"""
    set_redis(fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True))
    app = create_app("testing")
    app.config["STORAGE_DIR"] = str(tmp_path / "storage")
    storage.init_app(app)
    with app.app_context():
        db.create_all()
        AuthService.ensure_default_admin(app)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
    set_redis(None)


@pytest.fixture()
def app_context(app):
    with app.app_context():
        yield app


@pytest.fixture()
def adapter(app):
    return FlaskTestAdapter(app)


def _mounted_session(adapter) -> requests.Session:
    session = requests.Session()
    session.mount(TEST_BASE_URL, adapter)
    return session


@pytest.fixture()
def http_session(adapter):
    return _mounted_session(adapter)


@pytest.fixture()
def api_client(http_session):
    """未登录的 API 客户端"""
    return APIClient(TEST_BASE_URL, session=http_session)


@pytest.fixture()
def config(app):
    return {
        "admin_email": app.config["ADMIN_INIT_EMAIL"],
        "admin_password": app.config["ADMIN_INIT_PASSWORD"],
    }


def _sign_in(client: APIClient, email: str, password: str) -> dict:
    resp = client.request("POST", "/api/auth/sign-in", json_data={"email": email, "password": password})
    assert resp.get("_http_status") == 200, f"登录失败: {resp}"
    return resp["data"]


@pytest.fixture()
def admin_client(http_session, config):
    client = APIClient(TEST_BASE_URL, session=http_session)
    session = _sign_in(client, config["admin_email"], config["admin_password"])
    client.set_token(session["token"])
    client.user = session["user"]
    return client


@pytest.fixture()
def make_user(http_session):
    """注册一个新用户并返回已登录的 APIClient（client.user 为用户信息）"""

    def _create(username: str = None, password: str = DEFAULT_PASSWORD) -> APIClient:
        username = username or f"user_{uuid.uuid4().hex[:8]}"
        client = APIClient(TEST_BASE_URL, session=http_session)
        resp = client.request(
            "POST",
            "/api/auth/sign-up",
            json_data={"email": f"{username}@example.com", "username": username, "password": password},
        )
        assert resp.get("_http_status") == 201, f"注册失败: {resp}"
        client.set_token(resp["data"]["token"])
        client.user = resp["data"]["user"]
        client.email = f"{username}@example.com"
        return client

    return _create


@pytest.fixture()
def make_post():
    def _create(client: APIClient, **overrides) -> dict:
        payload = {
            "item_name": f"iPhone 12 {uuid.uuid4().hex[:4]}",
            "issue_description": "屏幕不亮",
            "repair_steps": "1. 拆后盖 2. 换排线",
            "success": True,
        }
        payload.update(overrides)
        resp = client.request("POST", "/api/records/repair_posts", json_data=payload)
        assert resp.get("_http_status") == 201, f"创建帖子失败: {resp}"
        return resp["data"]

    return _create


@pytest.fixture()
def rest_store(adapter):
    """RestRecordStore 使用独立 Session，避免其 Authorization 头影响 APIClient。"""
    return RestRecordStore(base_url=TEST_BASE_URL, timeout=5, session=_mounted_session(adapter))


@pytest.fixture()
def memory_store():
    return InMemoryRecordStore(latency_ms=0)
