from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


def normalize_email(value: str) -> str:
    """Trimmed, lower-cased form used as the user and ownership key."""
    return value.strip().lower()


# --- Auth ---
class Credentials(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def email_is_normalized(cls, value: str) -> str:
        value = normalize_email(value)
        if "@" not in value:
            raise ValueError("email must contain '@'")
        return value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class TokenResponse(BaseModel):
    token: str


class Identity(BaseModel):
    """The caller resolved from a verified session token."""

    email: str


# --- Jobs ---
class JobCreate(BaseModel):
    title: str = Field(min_length=1)
    company: str = Field(min_length=1)
    description: str
    deadline: date


class Job(JobCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    created_at: datetime


# --- Suggestions ---
class SuggestionRequest(BaseModel):
    resume: str = Field(min_length=1)
    job: str = Field(min_length=1)


class SuggestionResponse(BaseModel):
    suggestion: str


class AILogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    resume: str
    job_description: str
    suggestion: str
    created_at: datetime
