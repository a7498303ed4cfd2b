"""
TaskBoard Backend - Auth Schemas
================================

What:  Request bodies for sign-up / sign-in and the parameter objects handed
       to AuthService.
How:   The request models reject malformed input with FastAPI's 422 before
       any service code runs. Routes copy the validated fields into the
       frozen *Params models, which carry plaintext only as far as the hasher.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# bcrypt only reads the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_LEN = 8


def _check_password(v: str) -> str:
    if len(v) < MIN_PASSWORD_LEN:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LEN} characters")
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return v


class SignUpRequest(BaseModel):
    """Body of POST /auth/signup."""

    # Length limits are configurable and enforced by AuthService.sign_up (400)
    name: str = Field(min_length=1, max_length=255)
    username: str = Field(max_length=255, pattern=r"^[A-Za-z0-9_.\-]+$")
    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class SignInRequest(BaseModel):
    """Body of POST /auth/signin."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)


class SignUpParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    username: str
    email: str
    password: str


class SignInParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    password: str
