import logging
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

logger = logging.getLogger(__name__)

TEST_BASE_URL = "http://testserver"


class FlaskTestAdapter(BaseAdapter):
    """
    requests 的传输适配器：把请求转发给 Flask test client，
    让 requests.Session / RestRecordStore 在进程内直接调用服务。
    offline=True 时模拟连接失败。
    """

    def __init__(self, app):
        super().__init__()
        self.client = app.test_client()
        self.offline = False
        self.sent = []

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        if self.offline:
            raise requests.ConnectionError("模拟网络断开", request=request)
        self.sent.append((request.method, request.url, timeout))

        parts = urlsplit(request.url)
        headers = dict(request.headers)
        headers.pop("Content-Length", None)
        content_type = headers.pop("Content-Type", None)
        body = request.body
        if isinstance(body, str):
            body = body.encode("utf-8")

        resp = self.client.open(
            parts.path,
            method=request.method,
            query_string=parts.query,
            headers=headers,
            data=body,
            content_type=content_type,
        )

        response = requests.Response()
        response.status_code = resp.status_code
        response._content = resp.get_data()
        response.headers = CaseInsensitiveDict(dict(resp.headers))
        response.encoding = "utf-8"
        response.reason = resp.status
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


def make_session(app) -> requests.Session:
    session = requests.Session()
    session.mount(TEST_BASE_URL, FlaskTestAdapter(app))
    return session


class APIClient:
    """统一的API客户端"""

    def __init__(self, base_url: str = TEST_BASE_URL, timeout: int = 10, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token: Optional[str] = None
        self.session = session or requests.Session()

    def set_token(self, token: Optional[str]):
        """设置认证token"""
        self.token = token

    def request(self, method: str, path: str,
                params: Optional[Any] = None,
                json_data: Optional[Any] = None,
                headers: Optional[Dict] = None,
                files: Optional[Dict] = None,
                data: Optional[Dict] = None,
                attach_token: bool = True) -> Dict[str, Any]:
        """统一的API请求方法，返回 JSON 信封并附加 _http_status"""
        url = f"{self.base_url}{path}"

        request_headers = {}
        if headers:
            request_headers.update(headers)
        if attach_token and self.token:
            request_headers["Authorization"] = f"Bearer {self.token}"

        response = self.session.request(
            method=method.upper(),
            url=url,
            headers=request_headers,
            params=params,
            json=json_data,
            files=files,
            data=data,
            timeout=self.timeout,
        )
        try:
            result = response.json()
            result["_http_status"] = response.status_code
        except ValueError:
            result = {
                "_http_status": response.status_code,
                "_raw_text": response.text,
                "_raw_content": response.content,
            }
        logger.debug(f"{method.upper()} {path} -> {response.status_code}")
        return result
