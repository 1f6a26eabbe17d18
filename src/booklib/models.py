# models.py
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, ValidationInfo, field_validator

from . import validation
from .validation import rule_error


def _text(min_length: int, max_length: int):
    return Annotated[str, StringConstraints(strip_whitespace=True, min_length=min_length, max_length=max_length)]


def _reject_bool(value: Any, message: str) -> Any:
    # JSON true/false must not pass as 1/0
    if isinstance(value, bool):
        raise rule_error(message)
    return value


def _check_year(value: int, message: str) -> int:
    if not 1000 <= value <= validation.current_year():
        raise rule_error(message)
    return value


# ---- request bodies ----

class SignupRequest(BaseModel):
    email: EmailStr
    password: Annotated[str, StringConstraints(min_length=6, max_length=72)]
    displayName: _text(1, 100)

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def _fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            raise rule_error("Password must be at most 72 bytes long")
        return v


class LoginRequest(BaseModel):
    email: _text(1, 320)
    password: Annotated[str, StringConstraints(min_length=1)]


class BookIn(BaseModel):
    title: _text(1, 200)
    author: _text(1, 100)
    isbn: _text(1, 32)
    publishYear: int
    genre: _text(1, 50)
    description: _text(10, 1000)
    availableCopies: Annotated[int, Field(ge=0)]
    totalCopies: Annotated[int, Field(ge=1)]

    @field_validator("isbn")
    @classmethod
    def _isbn_checksum(cls, v: str) -> str:
        if not validation.is_valid_isbn(v):
            raise rule_error("Invalid ISBN format. Must be a valid ISBN-10 or ISBN-13.")
        return v

    @field_validator("publishYear", mode="before")
    @classmethod
    def _publish_year_not_bool(cls, v):
        return _reject_bool(v, "Publish year must be a valid year")

    @field_validator("publishYear")
    @classmethod
    def _publish_year_range(cls, v: int) -> int:
        return _check_year(v, "Publish year must be a valid year")

    @field_validator("availableCopies", mode="before")
    @classmethod
    def _available_not_bool(cls, v):
        return _reject_bool(v, "Available copies must be a non-negative integer")

    @field_validator("totalCopies", mode="before")
    @classmethod
    def _total_not_bool(cls, v):
        return _reject_bool(v, "Total copies must be a positive integer")

    @field_validator("totalCopies")
    @classmethod
    def _total_not_below_available(cls, v: int, info: ValidationInfo) -> int:
        # availableCopies is only in info.data when it validated
        available = info.data.get("availableCopies")
        if available is not None and v < available:
            raise rule_error("Total copies cannot be less than available copies")
        return v


class AuthorIn(BaseModel):
    name: _text(1, 100)
    birthYear: int
    nationality: _text(1, 50)
    biography: _text(10, 2000)
    books: List[str] = Field(default_factory=list)

    @field_validator("birthYear", mode="before")
    @classmethod
    def _birth_year_not_bool(cls, v):
        return _reject_bool(v, "Birth year must be a valid year")

    @field_validator("birthYear")
    @classmethod
    def _birth_year_range(cls, v: int) -> int:
        return _check_year(v, "Birth year must be a valid year")

    @field_validator("books", mode="before")
    @classmethod
    def _books_default(cls, v):
        return [] if v is None else v


# ---- responses ----

class UserPublic(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    email: str
    displayName: Optional[str] = None
    authProvider: str
    photo: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "UserPublic":
        return cls(
            id=str(doc["_id"]),
            email=doc["email"],
            displayName=doc.get("displayName"),
            authProvider=doc.get("authProvider", "local"),
            photo=doc.get("photo"),
        )

class AuthResponse(BaseModel):
    success: bool = True
    message: str
    user: UserPublic

class SessionStatus(BaseModel):
    authenticated: bool
    user: Optional[UserPublic] = None
    message: Optional[str] = None

class MessageResponse(BaseModel):
    success: bool = True
    message: str

class BookCreated(BaseModel):
    message: str = "Book created successfully"
    bookId: str

class AuthorCreated(BaseModel):
    message: str = "Author created successfully"
    authorId: str
