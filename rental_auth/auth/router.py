"""
Authentication router.

This module provides FastAPI router for authentication endpoints:
- User login
- User registration
- Logout
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rental_auth.base_microservice import BaseMicroservice, Base, engine, OutcomeCode, ServiceResult
from rental_auth.auth.config import AuthSettings, get_settings
from rental_auth.auth.jwt import TokenData, TokenIssuer, get_current_user
from rental_auth.auth.registry import CustomerRegistryClient
from rental_auth.auth.repository import AuthRepository, get_db_session, seed_default_roles
from rental_auth.auth.schemas import LoginRequest, RegisterRequest
from rental_auth.auth.users import AuthService

# Create router
router = APIRouter(tags=["auth"])

# Create service instance
base_service = BaseMicroservice()


async def start_auth_service(settings: AuthSettings = None):
    """Initialize the auth service: create missing tables and provision roles."""
    settings = settings or get_settings()
    base_service.log_event("service.startup", {"service": "auth"})

    try:
        # Import models so every table is registered on the metadata
        from rental_auth.auth import models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        if settings.seed_roles:
            await seed_default_roles()
            base_service.logger.info("Initialized default roles")
    except Exception as e:
        base_service.log_error(e, context="Auth service startup")
        raise


def get_registry_client(settings: AuthSettings = Depends(get_settings)) -> CustomerRegistryClient:
    return CustomerRegistryClient(
        settings.registry_base_url,
        timeout=settings.registry_timeout_seconds,
    )


def get_auth_service(
    db: AsyncSession = Depends(get_db_session),
    settings: AuthSettings = Depends(get_settings),
    registry: CustomerRegistryClient = Depends(get_registry_client),
) -> AuthService:
    return AuthService(
        settings=settings,
        repository=AuthRepository(db),
        registry=registry,
        token_issuer=TokenIssuer(settings),
    )


# --- Basic Auth Endpoints ---

@router.post("/login")
async def login(
    request: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Authenticate a user and return a bearer token.

    Returns:
        Envelope with the token as data
    """
    result = await service.login(request)
    return base_service.envelope_response(result)


@router.post("/register")
async def register(
    request: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
):
    """
    Register a new user.

    Returns:
        Envelope with the registered profile as data
    """
    result = await service.register(request)
    return base_service.envelope_response(result)


@router.post("/logout")
async def logout(
    token_data: TokenData = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """
    Acknowledge a logout for the authenticated user.
    """
    result = await service.logout()
    return base_service.envelope_response(result)


@router.get("/ping")
async def ping():
    """
    Health check endpoint for the auth service.
    """
    return base_service.envelope_response(
        ServiceResult.of(
            OutcomeCode.OK,
            "Auth service is alive",
            {"timestamp": datetime.utcnow().isoformat()},
        )
    )
