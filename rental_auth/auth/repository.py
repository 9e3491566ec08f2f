"""
User store backed by SQLAlchemy.

This module provides functionality for:
- Case-insensitive user lookup by email
- Persisting new users with attachment of existing roles
- Provisioning reference roles
"""
from typing import Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload, make_transient_to_detached
from sqlalchemy.orm.util import identity_key

from rental_auth.base_microservice import AsyncSessionLocal
from rental_auth.auth.models import User, Role

# Reference roles provisioned at startup
DEFAULT_ROLES: Dict[int, str] = {
    1: "CLIENT_USER",
    2: "ADMIN",
}


class EmailAlreadyRegisteredError(Exception):
    """Raised when the store rejects a user because the email is taken."""
    def __init__(self, email: str):
        super().__init__(f"Email already registered: {email}")
        self.email = email


async def get_db_session():
    """Dependency for getting a database session."""
    async with AsyncSessionLocal() as session:
        yield session


class AuthRepository:
    """
    Store operations needed by the auth service.
    """
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_user_by_email(self, email: str, include_inactive: bool = False) -> Optional[User]:
        """
        Find a user by email, ignoring case.

        Args:
            email: Email to look up
            include_inactive: Also match users flagged inactive

        Returns:
            User with roles loaded, or None if there is no match
        """
        if not email or not email.strip():
            return None

        stmt = (
            select(User)
            .options(selectinload(User.roles))
            .where(func.lower(User.email) == email.lower())
        )
        if not include_inactive:
            # Legacy rows have no flag and count as active
            stmt = stmt.where(or_(User.is_active.is_(True), User.is_active.is_(None)))

        result = await self.db.execute(stmt)
        return result.scalars().first()

    def _attach_role(self, role_id: int) -> Role:
        identity_map = self.db.sync_session.identity_map
        tracked = identity_map.get(identity_key(Role, role_id))
        if tracked is not None:
            return tracked

        # Mark an id-only reference as already persisted so the flush
        # only writes the association row
        stub = Role(id=role_id)
        make_transient_to_detached(stub)
        self.db.add(stub)
        return stub

    async def register_user(self, user: User) -> User:
        """
        Persist a new user.

        Roles on the user are treated as references to existing rows: only
        their ids are used and no role row is inserted.

        Raises:
            EmailAlreadyRegisteredError: If the unique email index rejects the insert
        """
        if user.is_active is None:
            user.is_active = True

        role_ids = [role.id for role in user.roles if role.id]
        user.roles = [self._attach_role(role_id) for role_id in role_ids]

        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if await self.find_user_by_email(user.email, include_inactive=True) is not None:
                raise EmailAlreadyRegisteredError(user.email)
            raise
        return user


async def seed_default_roles(db: AsyncSession = None) -> None:
    """Provision the reference roles if they are missing."""
    close_db = False
    if db is None:
        db = AsyncSessionLocal()
        close_db = True

    try:
        result = await db.execute(select(Role.id))
        existing_ids = set(result.scalars().all())
        for role_id, name in DEFAULT_ROLES.items():
            if role_id not in existing_ids:
                db.add(Role(id=role_id, name=name))
        await db.commit()
    finally:
        if close_db:
            await db.close()
