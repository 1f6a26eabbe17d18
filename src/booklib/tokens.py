# tokens.py
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from itsdangerous import BadSignature, URLSafeSerializer

from .settings import Settings

def now() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    # the driver hands back naive UTC datetimes unless the client is tz_aware
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)

def new_session_id() -> str:
    # 32 bytes → ~43 char url-safe
    return secrets.token_urlsafe(32)

def session_expiry(ttl_seconds: int) -> datetime:
    return now() + timedelta(seconds=ttl_seconds)

def _cookie_serializer(settings: Settings) -> URLSafeSerializer:
    return URLSafeSerializer(secret_key=settings.SECRET_KEY, salt="booklib.session.v1")

def sign_session_id(session_id: str, settings: Settings) -> str:
    return _cookie_serializer(settings).dumps(session_id)

def unsign_session_id(cookie_value: Optional[str], settings: Settings) -> Optional[str]:
    """returns the session id carried by a cookie, or None when missing or tampered"""
    if not cookie_value:
        return None
    try:
        sid = _cookie_serializer(settings).loads(cookie_value)
    except BadSignature:
        return None
    return sid if isinstance(sid, str) and sid else None
