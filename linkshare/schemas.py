import re
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints, field_validator

_WHITESPACE_RE = re.compile(r"\s+")
_LINK_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)

# Category value that disables the dashboard category filter.
ALL_CATEGORIES = "All"


def normalize_category(value: str) -> str:
    """Trim a category label and collapse inner runs of whitespace."""
    return _WHITESPACE_RE.sub(" ", value).strip()


# Form text is stripped before its length is checked.
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Email = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=300)]
Link = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2048)]
Category = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
CommentText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]


# Passwords are taken verbatim; surrounding spaces are significant.
Password = Annotated[str, Field(min_length=1, max_length=1024)]


# --- Auth ---

class RegisterForm(BaseModel):
    username: Username
    email: Email
    password: Password

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("must be an email address")
        return value.lower()


class LoginForm(BaseModel):
    email: Email
    password: Password

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.lower()


# --- Posts ---

class PostCreate(BaseModel):
    title: Title
    link: Link
    category: Category

    @field_validator("link")
    @classmethod
    def _check_link(cls, value: str) -> str:
        if not _LINK_RE.match(value):
            raise ValueError("must be an http(s) URL")
        return value

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, value: str) -> str:
        return normalize_category(value)


class CommentCreate(BaseModel):
    text: CommentText


# --- Session ---

class SessionUser(BaseModel):
    """The identity stored in the session cookie for a logged-in user."""

    id: int
    username: str


def describe_validation_error(exc) -> str:
    """Flatten a pydantic ``ValidationError`` into a one-line message."""
    parts = []
    for err in exc.errors():
        field = ".".join(str(loc) for loc in err["loc"]) or "input"
        parts.append(f"{field}: {err['msg']}")
    return "; ".join(parts)
