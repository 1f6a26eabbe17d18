# strategies.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Union

from .errors import AuthenticationError, InvalidCredentials, LibraryError, ProviderAccountMismatch
from .users import GOOGLE, LOCAL, OAuthProfile, UserDirectory, strip_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Verified:
    user: Dict[str, Any]


@dataclass(frozen=True)
class Rejected:
    # only the local strategy rejects; the message is safe to show the client
    error: LibraryError

    @property
    def message(self) -> str:
        return self.error.message


@dataclass(frozen=True)
class Errored:
    exc: Exception


Outcome = Union[Verified, Rejected, Errored]


def unwrap(outcome: Outcome) -> Dict[str, Any]:
    """Return the verified user or raise the error the outcome stands for"""
    if isinstance(outcome, Verified):
        return outcome.user
    if isinstance(outcome, Rejected):
        raise outcome.error
    raise AuthenticationError() from outcome.exc


class LocalStrategy:
    name = LOCAL

    def __init__(self, users: UserDirectory):
        self.users = users

    async def authenticate(self, email: str, password: str) -> Outcome:
        try:
            user = await self.users.find_by_email(email)
            if not user:
                return Rejected(InvalidCredentials())

            # provider-only account
            if not user.get("password"):
                return Rejected(ProviderAccountMismatch())

            if not await self.users.verify_password(password, user["password"]):
                return Rejected(InvalidCredentials())

            return Verified(strip_password(user))
        except Exception as e:
            logger.exception("local authentication failed with an internal error")
            return Errored(e)


class OAuthStrategy:
    name = GOOGLE

    def __init__(self, users: UserDirectory):
        self.users = users

    async def authenticate(self, profile: OAuthProfile) -> Outcome:
        # any profile the provider hands back is trusted; there is no rejection path
        try:
            user = await self.users.reconcile_oauth_user(profile)
            return Verified(strip_password(user))
        except Exception as e:
            logger.exception("oauth reconciliation failed")
            return Errored(e)
