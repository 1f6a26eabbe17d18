# sessions.py
import logging
from typing import Any, Dict, Optional

from fastapi import Request, Response

from .db import Store
from .errors import Unauthorized
from .settings import Settings
from .tokens import as_utc, new_session_id, now, session_expiry, sign_session_id, unsign_session_id
from .users import UserDirectory, strip_password

logger = logging.getLogger(__name__)


class SessionStore:
    """Server-side session records keyed by opaque session id"""

    def __init__(self, store: Store, ttl_seconds: int):
        self.store = store
        self.ttl_seconds = ttl_seconds

    async def put(self, session_id: str, payload: Dict[str, Any]) -> None:
        n = now()
        await self.store.sessions.insert_one({
            "_id": session_id,
            "userId": payload["userId"],
            "createdAt": n,
            "lastSeen": n,
            "expiresAt": session_expiry(self.ttl_seconds),
        })

    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        sess = await self.store.sessions.find_one({"_id": session_id})
        if not sess:
            return None
        if as_utc(sess["expiresAt"]) <= now():
            await self.delete(session_id)
            return None
        return {"userId": sess["userId"]}

    async def touch(self, session_id: str) -> None:
        # sliding window: every authenticated request pushes expiry out again
        await self.store.sessions.update_one(
            {"_id": session_id},
            {"$set": {"lastSeen": now(), "expiresAt": session_expiry(self.ttl_seconds)}},
        )

    async def delete(self, session_id: str) -> None:
        await self.store.sessions.delete_one({"_id": session_id})


class SessionManager:
    def __init__(self, sessions: SessionStore, users: UserDirectory, settings: Settings):
        self.sessions = sessions
        self.users = users
        self.settings = settings

    def serialize(self, user: Dict[str, Any]) -> Dict[str, Any]:
        # only the identifier goes into the session, never the profile or hash
        return {"userId": str(user["_id"])}

    async def deserialize(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        user = await self.users.find_by_id(payload.get("userId", ""))
        return strip_password(user) if user else None

    async def login(self, user: Dict[str, Any], previous: Optional[str] = None) -> str:
        """Open a session for ``user`` and return the signed cookie value.

        ``previous`` is the cookie the browser sent with the login request;
        its session is revoked so a replaced token stops resolving.
        """
        await self.logout(previous)
        sid = new_session_id()
        await self.sessions.put(sid, self.serialize(user))
        logger.info("session opened for user %s", user["_id"])
        return sign_session_id(sid, self.settings)

    async def resolve(self, cookie_value: Optional[str]) -> Optional[Dict[str, Any]]:
        sid = unsign_session_id(cookie_value, self.settings)
        if sid is None:
            return None

        payload = await self.sessions.get(sid)
        if payload is None:
            return None

        user = await self.deserialize(payload)
        if user is None:
            # user deleted since login: drop the stale session, treat as anonymous
            await self.sessions.delete(sid)
            return None

        await self.sessions.touch(sid)
        return user

    async def logout(self, cookie_value: Optional[str]) -> None:
        sid = unsign_session_id(cookie_value, self.settings)
        if sid is None:
            return
        await self.sessions.delete(sid)
        logger.info("session closed")

    # ---- cookie helpers ----

    def _cookie_params(self) -> Dict[str, Any]:
        samesite = self.settings.COOKIE_SAMESITE.lower()
        if samesite not in ("lax", "strict", "none"):
            samesite = "lax"
        return {
            "httponly": True,
            "secure": self.settings.cookie_secure,
            "samesite": samesite,
            "path": "/",
        }

    def set_cookie(self, response: Response, cookie_value: str) -> None:
        response.set_cookie(
            key=self.settings.COOKIE_NAME,
            value=cookie_value,
            max_age=self.settings.SESSION_TTL_SECONDS,
            **self._cookie_params(),
        )

    def clear_cookie(self, response: Response) -> None:
        response.delete_cookie(self.settings.COOKIE_NAME, path="/")

    def cookie_from(self, request: Request) -> Optional[str]:
        return request.cookies.get(self.settings.COOKIE_NAME)


# ---- request gate (FastAPI dependencies) ----

def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager

async def current_user_optional(request: Request) -> Optional[Dict[str, Any]]:
    if getattr(request.state, "user", None) is not None:
        return request.state.user
    manager = get_session_manager(request)
    user = await manager.resolve(manager.cookie_from(request))
    request.state.user = user
    return user

async def require_user(request: Request) -> Dict[str, Any]:
    user = await current_user_optional(request)
    if user is None:
        raise Unauthorized()
    return user
