# errors.py
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class LibraryError(Exception):
    """Base error: machine-readable ``kind``, HTTP status and a message for the client"""

    kind = "library_error"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.kind, "message": self.message}


class ValidationFailed(LibraryError):
    """One or more request fields violated their rules"""

    kind = "validation_failed"
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, details: List[Dict[str, str]], message: Optional[str] = None):
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["details"] = self.details
        return body


class DuplicateAccount(LibraryError):
    kind = "duplicate_account"
    status_code = 400
    default_message = "User with this email already exists"


class InvalidCredentials(LibraryError):
    kind = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password"


class ProviderAccountMismatch(LibraryError):
    kind = "provider_account_mismatch"
    status_code = 401
    default_message = "This account uses Google Sign-In. Please log in with Google."


class Unauthorized(LibraryError):
    kind = "unauthorized"
    status_code = 401
    default_message = "You must be logged in to access this resource."


class NotFound(LibraryError):
    kind = "not_found"
    status_code = 404
    default_message = "Resource not found"


class MalformedIdentifier(LibraryError):
    kind = "malformed_identifier"
    status_code = 400
    default_message = "Invalid ID format"


class AuthenticationError(LibraryError):
    """Store or hasher failure while verifying credentials (not a rejection)"""

    kind = "authentication_error"
    status_code = 500
    default_message = "Authentication error"


class OAuthError(LibraryError):
    """Identity provider handshake failed"""

    kind = "oauth_error"
    status_code = 502
    default_message = "OAuth sign-in failed"


class StoreError(LibraryError):
    kind = "store_error"
    status_code = 500
    default_message = "Internal server error"


async def _library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _store_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    # internal detail stays in the log
    logger.exception("store failure on %s %s", request.method, request.url.path, exc_info=exc)
    err = StoreError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    err = StoreError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LibraryError, _library_error_handler)
    app.add_exception_handler(PyMongoError, _store_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
