"""
JWT token handling for authentication.

This module provides functionality for:
- Assembling the claim set of a user
- Issuing signed bearer tokens
- Validating bearer tokens
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

import jwt
from jwt.exceptions import PyJWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from rental_auth.base_microservice import InvalidStateError
from rental_auth.auth.config import AuthSettings, get_settings
from rental_auth.auth.models import User

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = 1
DEFAULT_ROLE_CLAIM = "CLIENT_USER"

# Authentication scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)


class ClaimType(str, Enum):
    NAME = "name"
    ID = "id"
    ROLE = "role"


class TokenData(BaseModel):
    """Token payload model."""
    user_id: int
    username: str
    roles: List[str] = []
    exp: Optional[int] = None  # Expiration time


class TokenIssuer:
    """
    Builds and validates HS256 bearer tokens for authenticated users.
    """
    def __init__(self, settings: AuthSettings):
        self.settings = settings

    def _signing_key(self) -> bytes:
        if not self.settings.jwt_key:
            raise InvalidStateError("JWT signing key is not configured")
        return self.settings.jwt_key.encode("utf-8")

    @staticmethod
    def build_claims(user: User) -> Dict[str, Any]:
        """
        Assemble the identity claims of a user.

        One `role` entry is emitted per named role; a user without roles gets
        the default client role so every token carries at least one.
        """
        roles = user.role_names()
        if not roles:
            roles = [DEFAULT_ROLE_CLAIM]

        return {
            ClaimType.NAME.value: user.username,
            ClaimType.ID.value: str(user.id),
            ClaimType.ROLE.value: roles,
        }

    def issue(self, user: User, now: Optional[datetime] = None) -> str:
        """
        Create a signed access token for a user.

        Args:
            user: Authenticated user with roles loaded
            now: Issuance time, defaults to the current UTC time

        Returns:
            Encoded JWT token string
        """
        issued_at = now or datetime.now(timezone.utc)
        to_encode = self.build_claims(user)
        to_encode.update({
            "iss": self.settings.jwt_issuer,
            "aud": self.settings.jwt_audience,
            "iat": issued_at,
            "exp": issued_at + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS),
        })
        return jwt.encode(to_encode, self._signing_key(), algorithm=ALGORITHM)

    def decode(self, token: str) -> Dict[str, Any]:
        """Verify signature, expiry, issuer and audience and return the raw claims."""
        return jwt.decode(
            token,
            self._signing_key(),
            algorithms=[ALGORITHM],
            audience=self.settings.jwt_audience,
            issuer=self.settings.jwt_issuer,
        )

    def verify(self, token: str) -> Optional[TokenData]:
        """
        Verify a JWT token and return its data.

        Returns:
            TokenData if valid, None otherwise
        """
        try:
            payload = self.decode(token)
            return TokenData(
                user_id=int(payload[ClaimType.ID.value]),
                username=payload[ClaimType.NAME.value],
                roles=payload.get(ClaimType.ROLE.value, []),
                exp=payload.get("exp"),
            )
        except PyJWTError:
            return None
        except (KeyError, ValueError, TypeError):
            # Handle tokens signed by us but missing identity claims
            return None


def verify_token(token: str, settings: AuthSettings) -> Optional[TokenData]:
    return TokenIssuer(settings).verify(token)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: AuthSettings = Depends(get_settings),
) -> TokenData:
    """
    FastAPI dependency to get the current authenticated user from token.

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    try:
        token_data = verify_token(token, settings)
    except InvalidStateError:
        token_data = None
    if token_data is None:
        raise credentials_exception

    return token_data
