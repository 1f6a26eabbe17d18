# users.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from starlette.concurrency import run_in_threadpool

from . import security
from .db import Store, parse_object_id
from .errors import DuplicateAccount

logger = logging.getLogger(__name__)

LOCAL = "local"
GOOGLE = "google"


@dataclass(frozen=True)
class OAuthProfile:
    """Identity handed back by the provider after the authorization redirect"""
    subject: str
    email: str
    display_name: str
    photo: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def normalize_email(email: str) -> str:
    return email.strip().lower()

def strip_password(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k != "password"}


class UserDirectory:
    def __init__(self, store: Store, rounds: Optional[int] = None):
        self.store = store
        self.rounds = rounds

    async def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self.store.users.find_one({"email": normalize_email(email)})

    async def find_by_id(self, user_id: Any) -> Optional[Dict[str, Any]]:
        oid = user_id if not isinstance(user_id, str) else parse_object_id(user_id)
        if oid is None:
            return None
        return await self.store.users.find_one({"_id": oid})

    async def create_local_user(self, email: str, password: str, display_name: str) -> Dict[str, Any]:
        email = normalize_email(email)
        if await self.find_by_email(email):
            raise DuplicateAccount()

        n = _utcnow()
        new_user = {
            "email": email,
            "password": await run_in_threadpool(security.hash_password, password, self.rounds),
            "displayName": display_name,
            "authProvider": LOCAL,
            "createdAt": n,
            "updatedAt": n,
        }
        try:
            result = await self.store.users.insert_one(new_user)
        except DuplicateKeyError:
            # lost a race with a concurrent signup for the same email
            raise DuplicateAccount()

        new_user["_id"] = result.inserted_id
        logger.info("created local user %s", new_user["_id"])
        return strip_password(new_user)

    async def verify_password(self, plain: str, hashed: Optional[str]) -> bool:
        # bcrypt runs off the event loop
        return await run_in_threadpool(security.verify_password, plain, hashed)

    async def reconcile_oauth_user(self, profile: OAuthProfile) -> Dict[str, Any]:
        email = normalize_email(profile.email)
        n = _utcnow()

        # last OAuth login wins on display fields; a local password hash is left in place
        updated = await self.store.users.find_one_and_update(
            {"email": email},
            {"$set": {
                "googleId": profile.subject,
                "displayName": profile.display_name,
                "photo": profile.photo,
                "authProvider": GOOGLE,
                "updatedAt": n,
            }},
            return_document=ReturnDocument.AFTER,
        )
        if updated is not None:
            logger.info("reconciled %s login into existing user %s", GOOGLE, updated["_id"])
            return updated

        new_user = {
            "googleId": profile.subject,
            "email": email,
            "displayName": profile.display_name,
            "photo": profile.photo,
            "authProvider": GOOGLE,
            "createdAt": n,
            "updatedAt": n,
        }
        try:
            result = await self.store.users.insert_one(new_user)
        except DuplicateKeyError:
            # first login raced with another; the record exists now
            return await self.reconcile_oauth_user(profile)
        new_user["_id"] = result.inserted_id
        logger.info("created %s user %s", GOOGLE, new_user["_id"])
        return new_user
