"""
Test cases for the SQLAlchemy user store, run against in-memory SQLite.
"""
import pytest
from sqlalchemy import func, insert, select
from sqlalchemy.orm import selectinload

from rental_auth.auth.models import User, Role, user_roles
from rental_auth.auth.repository import (
    AuthRepository, DEFAULT_ROLES, EmailAlreadyRegisteredError, seed_default_roles,
)


async def _add_user(session, email, username="TestUser", is_active=True, role_ids=()):
    roles = []
    for role_id in role_ids:
        roles.append(await session.get(Role, role_id))
    user = User(
        username=username,
        email=email,
        password_hash="hashedpassword",
        is_active=is_active,
        roles=roles,
    )
    session.add(user)
    await session.commit()
    return user


async def _count(session, column):
    result = await session.execute(select(func.count(column)))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_find_user_by_email_returns_user_with_roles(db_session):
    await _add_user(db_session, "test@email.com", role_ids=[1])

    user = await AuthRepository(db_session).find_user_by_email("test@email.com")

    assert user is not None
    assert user.username == "TestUser"
    assert user.password_hash == "hashedpassword"
    assert [role.name for role in user.roles] == ["CLIENT_USER"]


@pytest.mark.asyncio
@pytest.mark.parametrize("lookup", ["test@email.com", "TEST@EMAIL.COM", "Test@Email.COM"])
async def test_find_user_by_email_ignores_case(db_session, lookup):
    await _add_user(db_session, "Test@Email.COM")

    user = await AuthRepository(db_session).find_user_by_email(lookup)

    assert user is not None
    assert user.email == "Test@Email.COM"


@pytest.mark.asyncio
@pytest.mark.parametrize("email", ["nonexistent@email.com", "", "   ", None])
async def test_find_user_by_email_returns_none_without_match(db_session, email):
    await _add_user(db_session, "test@email.com")

    assert await AuthRepository(db_session).find_user_by_email(email) is None


@pytest.mark.asyncio
async def test_find_user_by_email_skips_inactive_users(db_session):
    await _add_user(db_session, "gone@email.com", is_active=False)
    repository = AuthRepository(db_session)

    assert await repository.find_user_by_email("gone@email.com") is None
    found = await repository.find_user_by_email("gone@email.com", include_inactive=True)
    assert found is not None
    assert found.is_active is False


@pytest.mark.asyncio
async def test_find_user_by_email_treats_unset_flag_as_active(db_session):
    await db_session.execute(
        insert(User).values(
            username="Legacy",
            email="legacy@email.com",
            password_hash="hashedpassword",
            is_active=None,
        )
    )
    await db_session.commit()

    user = await AuthRepository(db_session).find_user_by_email("legacy@email.com")

    assert user is not None
    assert user.is_active is None


@pytest.mark.asyncio
async def test_register_user_defaults_active_flag(db_session, session_factory):
    user = User(username="New", email="new@email.com", password_hash="h", is_active=None)

    await AuthRepository(db_session).register_user(user)

    async with session_factory() as check:
        stored = await AuthRepository(check).find_user_by_email("new@email.com")
    assert stored is not None
    assert stored.is_active is True
    assert stored.created_at is not None


@pytest.mark.asyncio
async def test_register_user_attaches_existing_role_without_inserting_it(db_session, session_factory):
    roles_before = await _count(db_session, Role.id)
    user = User(
        username="New",
        email="new@email.com",
        password_hash="h",
        roles=[Role(id=1)],
    )

    await AuthRepository(db_session).register_user(user)

    async with session_factory() as check:
        assert await _count(check, Role.id) == roles_before
        assert await _count(check, user_roles.c.user_id) == 1
        result = await check.execute(
            select(User).options(selectinload(User.roles)).where(User.email == "new@email.com")
        )
        stored = result.scalar_one()
        assert [(role.id, role.name) for role in stored.roles] == [(1, "CLIENT_USER")]


@pytest.mark.asyncio
async def test_register_user_reuses_role_already_loaded_in_session(db_session, session_factory):
    loaded = await db_session.get(Role, 1)
    user = User(username="New", email="new@email.com", password_hash="h", roles=[Role(id=1)])

    await AuthRepository(db_session).register_user(user)

    assert user.roles == [loaded]
    async with session_factory() as check:
        assert await _count(check, Role.id) == len(DEFAULT_ROLES)


@pytest.mark.asyncio
async def test_register_user_twice_with_shared_role(db_session, session_factory):
    repository = AuthRepository(db_session)

    await repository.register_user(User(username="One", email="one@email.com", password_hash="h", roles=[Role(id=1)]))
    await repository.register_user(User(username="Two", email="two@email.com", password_hash="h", roles=[Role(id=1)]))

    async with session_factory() as check:
        assert await _count(check, Role.id) == len(DEFAULT_ROLES)
        assert await _count(check, user_roles.c.user_id) == 2


@pytest.mark.asyncio
async def test_register_user_rejects_duplicate_email_at_store_level(db_session, session_factory):
    await _add_user(db_session, "Taken@Email.com")
    duplicate = User(username="Other", email="taken@email.com", password_hash="h", roles=[Role(id=1)])

    with pytest.raises(EmailAlreadyRegisteredError):
        await AuthRepository(db_session).register_user(duplicate)

    async with session_factory() as check:
        assert await _count(check, User.id) == 1


@pytest.mark.asyncio
async def test_seed_default_roles_is_idempotent(db_session):
    await seed_default_roles(db_session)
    await seed_default_roles(db_session)

    result = await db_session.execute(select(Role).order_by(Role.id))
    assert {role.id: role.name for role in result.scalars()} == DEFAULT_ROLES
