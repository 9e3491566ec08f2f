"""
Request and response models for the auth endpoints.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# bcrypt only reads this many bytes of a password
MAX_PASSWORD_BYTES = 72


class LoginRequest(BaseModel):
    """Model for user login."""
    email: str
    password: str = Field(..., repr=False)


class RegisterRequest(BaseModel):
    """Model for user registration."""
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, repr=False)
    driver_license: Optional[str] = Field(default=None, alias="driverLicense")
    cellphone: Optional[str] = Field(default=None, alias="cellPhone")

    @field_validator('username')
    @classmethod
    def username_must_not_be_blank(cls, v):
        if not v.strip():
            raise ValueError('Username must not be blank')
        return v.strip()

    @field_validator('password')
    @classmethod
    def password_must_fit_bcrypt(cls, v):
        if len(v.encode('utf-8')) > MAX_PASSWORD_BYTES:
            raise ValueError(f'Password must be at most {MAX_PASSWORD_BYTES} bytes')
        return v


class UserData(BaseModel):
    """
    Profile shared with callers and the customer registry.

    Never carries a password or its hash; unset fields are left out of the
    serialized form.
    """
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    email: Optional[str] = None
    driver_license: Optional[str] = Field(default=None, alias="driverLicense")
    cellphone: Optional[str] = None
