from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# --- Auth ---

class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=255)
    name: str | None = Field(None, min_length=1, max_length=255)


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=255)


class AuthTokens(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


# --- User ---

class UserResponse(BaseModel):
    id: str
    email: str
    name: str | None
    created_at: datetime
    updated_at: datetime


# --- Article ---

class ArticleCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=3, max_length=200)
    description: str | None = Field(None, max_length=5000)
    published_at: datetime | None = None

    @field_validator("published_at")
    @classmethod
    def _published_at_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class ArticleUpdate(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=5000)
    published_at: datetime | None = None

    @field_validator("published_at")
    @classmethod
    def _published_at_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @field_validator("title")
    @classmethod
    def _title_not_null(cls, value: str | None) -> str:
        # title is NOT NULL in the table; it may be omitted but not cleared
        if value is None:
            raise ValueError("title cannot be null")
        return value


class ArticleResponse(BaseModel):
    id: str
    title: str
    description: str | None
    published_at: datetime | None
    author_id: str
    author: UserResponse | None = None
    created_at: datetime
    updated_at: datetime


# --- Pagination ---

class ArticleListMeta(BaseModel):
    page: int
    limit: int
    total: int


class ArticleListResponse(BaseModel):
    items: list[ArticleResponse]
    meta: ArticleListMeta
