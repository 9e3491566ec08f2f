"""
Configuration for the authentication service.

Settings are read from the environment once and passed explicitly to the
token issuer, the customer registry client and the auth service.
"""
import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel


class AuthSettings(BaseModel):
    """Read-only settings consumed by the auth service."""
    jwt_key: str = ""
    jwt_issuer: str = "loccar-auth"
    jwt_audience: str = "loccar"
    registry_base_url: Optional[str] = None
    registry_timeout_seconds: float = 10.0
    seed_roles: bool = True

    @classmethod
    def from_env(cls) -> "AuthSettings":
        return cls(
            jwt_key=os.getenv("JWT_KEY", ""),
            jwt_issuer=os.getenv("JWT_ISSUER", "loccar-auth"),
            jwt_audience=os.getenv("JWT_AUDIENCE", "loccar"),
            registry_base_url=os.getenv("CUSTOMER_REGISTRY_BASE_URL") or None,
            registry_timeout_seconds=float(os.getenv("CUSTOMER_REGISTRY_TIMEOUT", 10)),
            seed_roles=os.getenv("SEED_DEFAULT_ROLES", "true").lower() == "true",
        )


@lru_cache
def get_settings() -> AuthSettings:
    """FastAPI dependency returning the process-wide settings."""
    return AuthSettings.from_env()
