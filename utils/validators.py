import re

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
# 用户名：字母数字下划线短横线，3-30 位
USERNAME_RE = re.compile(r"^[A-Za-z0-9_-]{3,30}$")
URL_RE = re.compile(r"^(https?://|/)\S+$")


def validate_email(email: str) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email))


def validate_username(username: str) -> bool:
    return bool(username) and bool(USERNAME_RE.match(username))


def validate_url(url: str) -> bool:
    """图片/头像地址：允许 http(s) 绝对地址或本站相对路径。"""
    return bool(url) and bool(URL_RE.match(url))


def default_avatar_url(username: str) -> str:
    return f"https://api.dicebear.com/7.x/avataaars/svg?seed={username}"


UPPER_RE = re.compile(r"[A-Z]")
LOWER_RE = re.compile(r"[a-z]")
DIGIT_RE = re.compile(r"\d")
SYMBOL_RE = re.compile(r"[!@#$%^&*()_\-+=\[\]{};:'\",.<>/?\\|`~]")


def password_policy_errors(username: str, pwd: str, min_length: int = 8, require_symbol: bool = True) -> list[str]:
    """返回不满足的密码策略项，空列表表示通过。"""
    errs = []
    if len(pwd) < min_length:
        errs.append(f"长度至少 {min_length}")
    if not UPPER_RE.search(pwd):
        errs.append("需包含大写字母")
    if not LOWER_RE.search(pwd):
        errs.append("需包含小写字母")
    if not DIGIT_RE.search(pwd):
        errs.append("需包含数字")
    if require_symbol and not SYMBOL_RE.search(pwd):
        errs.append("需包含符号")
    if username and username.lower() in pwd.lower():
        errs.append("不能包含用户名")
    return errs
