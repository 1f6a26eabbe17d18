# validation.py
import logging
import re
from datetime import date
from typing import Any, Dict, List, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic_core import PydanticCustomError

from .db import parse_object_id
from .errors import MalformedIdentifier, ValidationFailed

logger = logging.getLogger(__name__)

# error type raised by the request models' own checks; its message is reported as-is
RULE_ERROR = "library_rule"

BODY_MESSAGE = "Request body must be a JSON object"

# label, message for a present value that fails its format/range constraint
FIELD_MESSAGES: Dict[str, Dict[str, str]] = {
    "email": {"label": "Email", "invalid": "Invalid email format"},
    "password": {"label": "Password", "invalid": "Password must be between 6 and 72 characters long"},
    "displayName": {"label": "Display name", "invalid": "Display name must be between 1 and 100 characters"},
    "title": {"label": "Title", "invalid": "Title must be between 1 and 200 characters"},
    "author": {"label": "Author", "invalid": "Author must be between 1 and 100 characters"},
    "isbn": {"label": "ISBN", "invalid": "Invalid ISBN format. Must be a valid ISBN-10 or ISBN-13."},
    "publishYear": {"label": "Publish year", "invalid": "Publish year must be a valid year"},
    "genre": {"label": "Genre", "invalid": "Genre must be between 1 and 50 characters"},
    "description": {"label": "Description", "invalid": "Description must be between 10 and 1000 characters"},
    "availableCopies": {"label": "Available copies", "invalid": "Available copies must be a non-negative integer"},
    "totalCopies": {"label": "Total copies", "invalid": "Total copies must be a positive integer"},
    "name": {"label": "Name", "invalid": "Name must be between 1 and 100 characters"},
    "birthYear": {"label": "Birth year", "invalid": "Birth year must be a valid year"},
    "nationality": {"label": "Nationality", "invalid": "Nationality must be between 1 and 50 characters"},
    "biography": {"label": "Biography", "invalid": "Biography must be between 10 and 2000 characters"},
    "books": {"label": "Books", "invalid": "Books must be an array", "item": "All books must be strings"},
}

_STRING_TYPES = {"string_type", "string_unicode"}


def current_year() -> int:
    return date.today().year


def rule_error(message: str) -> PydanticCustomError:
    return PydanticCustomError(RULE_ERROR, message)


def is_valid_isbn(raw: str) -> bool:
    s = re.sub(r"[\s-]", "", raw or "").upper()
    if len(s) == 10:
        if not s[:9].isdigit() or not (s[9].isdigit() or s[9] == "X"):
            return False
        total = sum((10 - i) * int(ch) for i, ch in enumerate(s[:9]))
        total += 10 if s[9] == "X" else int(s[9])
        return total % 11 == 0
    if len(s) == 13 and s.isdigit():
        total = sum((1 if i % 2 == 0 else 3) * int(ch) for i, ch in enumerate(s[:12]))
        return (10 - total % 10) % 10 == int(s[12])
    return False


# ---- error reporting ----

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _message(field: str, err: Dict[str, Any], nested: bool) -> str:
    if err["type"] == RULE_ERROR:
        return err["msg"]

    messages = FIELD_MESSAGES.get(field)
    if messages is None:
        return err["msg"]
    if nested and "item" in messages:
        return messages["item"]
    if err["type"] == "missing" or (_is_blank(err.get("input")) and "item" not in messages):
        return f"{messages['label']} is required"
    if err["type"] in _STRING_TYPES:
        return f"{messages['label']} must be a string"
    return messages["invalid"]


def violations_from(errors: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
    """``{field, message}`` per failing field, first failure only, in field order"""
    out: List[Dict[str, str]] = []
    seen = set()
    for err in errors:
        loc = tuple(err.get("loc", ()))
        if loc and loc[0] == "body":
            loc = loc[1:]
        if not loc or err["type"] in ("json_invalid", "model_attributes_type", "dict_type", "model_type"):
            field, message = "body", BODY_MESSAGE
        else:
            field = str(loc[0])
            message = _message(field, err, nested=len(loc) > 1)
        if field in seen:
            continue
        seen.add(field)
        out.append({"field": field, "message": message})
    return out


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    err = ValidationFailed(violations_from(exc.errors()))
    logger.info("%s %s rejected: %s", request.method, request.url.path, err.kind)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def register_validation_handler(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _request_validation_handler)


# ---- path identifiers ----

def validate_object_id(value: str) -> str:
    if parse_object_id(value) is None:
        raise MalformedIdentifier()
    return value


async def valid_id(id: str) -> str:
    return validate_object_id(id)
