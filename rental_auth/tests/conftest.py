"""
Shared fixtures for the auth service tests.
"""
import os

# Point the shared engine at SQLite before the package is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

import httpx
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rental_auth.base_microservice import Base
from rental_auth.auth.config import AuthSettings
from rental_auth.auth.jwt import TokenIssuer
from rental_auth.auth.models import User, Role, hash_password
from rental_auth.auth.registry import CustomerRegistryClient
from rental_auth.auth.repository import AuthRepository, seed_default_roles
from rental_auth.auth.users import AuthService

REGISTRY_URL = "http://registry.loccar.local"


@pytest.fixture
def settings():
    return AuthSettings(
        jwt_key="test-signing-key-for-loccar-auth-0123456789abcdef",
        jwt_issuer="loccar-auth-test",
        jwt_audience="loccar-test",
        registry_base_url=REGISTRY_URL,
        registry_timeout_seconds=2.0,
        seed_roles=False,
    )


@pytest.fixture
def token_issuer(settings):
    return TokenIssuer(settings)


@pytest.fixture
def make_user():
    """Build a detached user with the given roles."""
    def _make_user(
        id=1,
        username="A",
        email="a@b.com",
        password="123456",
        roles=(("User", 1),),
        is_active=True,
    ):
        return User(
            id=id,
            username=username,
            email=email,
            password_hash=hash_password(password),
            is_active=is_active,
            roles=[Role(id=role_id, name=name) for name, role_id in roles],
        )
    return _make_user


@pytest.fixture
def registry_calls():
    return []


@pytest.fixture
def make_registry(registry_calls):
    """
    Build a registry client whose transport answers with a fixed status,
    or raises when given an exception instead.
    """
    def _make_registry(status_code=201, error=None, base_url=REGISTRY_URL):
        def handler(request: httpx.Request) -> httpx.Response:
            registry_calls.append(request)
            if error is not None:
                raise error
            return httpx.Response(status_code)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return CustomerRegistryClient(base_url, timeout=2.0, client=client)
    return _make_registry


@pytest.fixture
def repository():
    repo = AsyncMock(spec=AuthRepository)
    repo.find_user_by_email.return_value = None
    repo.register_user.side_effect = lambda user: user
    return repo


@pytest.fixture
def make_service(settings, repository, make_registry):
    def _make_service(repo=None, registry=None, service_settings=None):
        service_settings = service_settings or settings
        return AuthService(
            settings=service_settings,
            repository=repo or repository,
            registry=registry or make_registry(),
            token_issuer=TokenIssuer(service_settings),
        )
    return _make_service


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    factory = sessionmaker(db_engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as session:
        await seed_default_roles(session)
    return factory


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
