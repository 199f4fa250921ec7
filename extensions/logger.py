# extensions/logger.py
import os, sys, logging, json, uuid, time
from logging.handlers import RotatingFileHandler
from flask import g, request, has_request_context
from werkzeug.exceptions import HTTPException

_REQUEST_ID_KEY = "request_id"
_HANDLER_MARK = "_repair_hub_handler"


class JsonFormatter(logging.Formatter):
    """一行一个 JSON，附带 request_id / user_id（若有）。"""

    def format(self, record):
        data = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        if getattr(record, "user_id", None) is not None:
            data["user_id"] = record.user_id
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


class RequestContextFilter(logging.Filter):
    """把 request_id 与当前用户 ID 写入日志记录（无请求上下文时为 '-'）。"""

    def filter(self, record):
        record.request_id = "-"
        record.user_id = None
        if has_request_context():
            record.request_id = getattr(g, _REQUEST_ID_KEY, "-")
            record.user_id = getattr(getattr(g, "current_user", None), "id", None)
        return True


def _request_id() -> str:
    # 沿用上游网关传入的 X-Request-ID
    if not hasattr(g, _REQUEST_ID_KEY):
        setattr(g, _REQUEST_ID_KEY, request.headers.get("X-Request-ID") or uuid.uuid4().hex)
    return getattr(g, _REQUEST_ID_KEY)


def _build_handlers(cfg, level):
    formatter = JsonFormatter() if cfg["LOG_JSON"] else logging.Formatter(
        "%(asctime)s | %(levelname)s | %(request_id)s | user=%(user_id)s | %(name)s | %(message)s",
        "%Y-%m-%d %H:%M:%S",
    )
    handlers = [logging.StreamHandler(sys.stdout)]
    if cfg.get("LOG_TO_FILE", True):
        log_dir = cfg["LOG_DIR"]
        os.makedirs(log_dir, exist_ok=True)
        for filename, lvl in (("app.log", level), ("error.log", logging.ERROR)):
            h = RotatingFileHandler(
                os.path.join(log_dir, filename),
                maxBytes=cfg["LOG_MAX_BYTES"],
                backupCount=cfg["LOG_BACKUP_COUNT"],
                encoding="utf-8",
            )
            h.setLevel(lvl)
            handlers.append(h)
    for h in handlers:
        if h.level == logging.NOTSET:
            h.setLevel(level)
        h.setFormatter(formatter)
        h.addFilter(RequestContextFilter())
        setattr(h, _HANDLER_MARK, True)
    return handlers


def _install_handlers(cfg, level):
    root = logging.getLogger()
    root.setLevel(level)
    # 多次 create_app（测试）时只安装一次
    if any(getattr(h, _HANDLER_MARK, False) for h in root.handlers):
        return
    for h in _build_handlers(cfg, level):
        root.addHandler(h)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.INFO)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def init_logger(app):
    cfg = app.config
    level = getattr(logging, cfg["LOG_LEVEL"].upper(), logging.INFO)
    _install_handlers(cfg, level)
    slow_ms = cfg.get("LOG_SLOW_REQUEST_MS", 1000)
    app.logger.info("Logger initialized")

    @app.before_request
    def _before():
        g._req_start = time.time()
        _request_id()

    @app.after_request
    def _after(resp):
        duration = (time.time() - getattr(g, "_req_start", time.time())) * 1000
        resp.headers["X-Request-ID"] = getattr(g, _REQUEST_ID_KEY, "-")
        log = app.logger.warning if duration >= slow_ms else app.logger.info
        log(f"{request.method} {request.path} -> {resp.status_code} {duration:.1f}ms")
        return resp

    @app.errorhandler(Exception)
    def _err(e):
        if isinstance(e, HTTPException):
            return _json(e.code, e.description)
        app.logger.exception(f"未处理异常 {request.method} {request.path}")
        return _json(500, "服务器内部错误")


def _json(code, message):
    from utils.response import json_response
    return json_response(code=code, message=message)
