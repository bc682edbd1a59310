"""
Проверка токена подключения.
Токен — query string вида user=<json>&auth_date=<unix>&hash=<hex>,
подписанный HMAC-SHA256 секретом AUTH_SECRET.
"""
import hashlib
import hmac
import json
import time
from urllib.parse import parse_qsl, urlencode

from .config import get_config
from .room import Identity


def _secret_key(secret: str) -> bytes:
    return hmac.new(b"XoRoomsToken", secret.encode(), hashlib.sha256).digest()


def _data_check_string(fields: dict) -> str:
    return "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))


def _signature(secret: str, fields: dict) -> str:
    return hmac.new(
        _secret_key(secret),
        _data_check_string(fields).encode(),
        hashlib.sha256,
    ).hexdigest()


def sign_token(user_id: str, display_name: str, auth_date: int | None = None) -> str:
    """Выпустить подписанный токен (для тестов и локальной разработки)."""
    config = get_config()
    fields = {
        "user": json.dumps({"id": user_id, "name": display_name}),
        "auth_date": str(int(time.time()) if auth_date is None else auth_date),
    }
    fields["hash"] = _signature(config.auth_secret, fields)
    return urlencode(fields)


def validate_token(token: str) -> Identity | None:
    """
    Проверяет подпись и срок токена и возвращает Identity или None.
    """
    if not token or not isinstance(token, str):
        return None
    config = get_config()
    if not config.auth_secret:
        return None

    try:
        parsed = dict(parse_qsl(token, strict_parsing=True))
    except ValueError:
        return None

    hash_from_token = parsed.pop("hash", None)
    if not hash_from_token:
        return None

    calculated = _signature(config.auth_secret, parsed)
    if not hmac.compare_digest(calculated, hash_from_token):
        return None

    try:
        auth_date = int(parsed.get("auth_date", ""))
    except ValueError:
        return None
    if time.time() - auth_date > config.token_ttl_seconds:
        return None

    return _parse_identity(parsed)


def debug_identity(uid, name: str | None = None) -> Identity:
    """Identity без проверки подписи (только для debug)."""
    user_id = str(uid)
    return Identity(user_id=user_id, display_name=name or f"dev{user_id}")


def _parse_identity(parsed: dict) -> Identity | None:
    """Извлекает Identity из parsed (user — JSON строка)."""
    user_str = parsed.get("user")
    if not user_str:
        return None
    try:
        user = json.loads(user_str)
        user_id = user.get("id")
        if user_id is None or user_id == "":
            return None
        return Identity(
            user_id=str(user_id),
            display_name=user.get("name") or f"user_{str(user_id)[:8]}",
        )
    except (json.JSONDecodeError, TypeError, AttributeError):
        return None
