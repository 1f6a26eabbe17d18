# db.py
import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient

from .settings import Settings

logger = logging.getLogger(__name__)


class Store:
    """Handle on the document store, built once at startup and injected everywhere"""

    def __init__(self, client: Any, db_name: str):
        self.client = client
        self.db = client[db_name]

    @property
    def users(self):
        return self.db["users"]

    @property
    def sessions(self):
        return self.db["sessions"]

    @property
    def books(self):
        return self.db["books"]

    @property
    def authors(self):
        return self.db["authors"]

    async def init_indexes(self) -> None:
        # email is the reconciliation key; racing signups collide here
        await self.users.create_index("email", unique=True)
        await self.sessions.create_index("userId")
        # the server drops records once expiresAt passes
        await self.sessions.create_index("expiresAt", expireAfterSeconds=0)

    def close(self) -> None:
        self.client.close()


def connect(settings: Settings, client: Optional[Any] = None) -> Store:
    if client is None:
        client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    logger.info("using database %r", settings.DB_NAME)
    return Store(client, settings.DB_NAME)


def parse_object_id(value: str) -> Optional[ObjectId]:
    if not isinstance(value, str):
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy of a stored document with ObjectIds rendered as strings"""
    if doc is None:
        return None
    out = dict(doc)
    if isinstance(out.get("_id"), ObjectId):
        out["_id"] = str(out["_id"])
    return out
