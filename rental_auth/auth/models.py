"""
Authentication models for the rental platform.

This module defines SQLAlchemy models for:
- Users
- Roles (pre-provisioned reference data)
- Refresh tokens
"""
from datetime import datetime

import bcrypt
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Table, Index, func
from sqlalchemy.orm import relationship

from rental_auth.base_microservice import Base

# Role given to every newly registered user
DEFAULT_ROLE_ID = 1

# Association table for many-to-many relationship between users and roles
user_roles = Table(
    'user_roles',
    Base.metadata,
    Column('user_id', Integer, ForeignKey('users.id'), primary_key=True),
    Column('role_id', Integer, ForeignKey('roles.id'), primary_key=True)
)


def hash_password(password: str) -> str:
    """Generate a salted one-way bcrypt hash."""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a plaintext password against a bcrypt hash.

    Inputs bcrypt refuses (over-long passwords, non-bcrypt hashes) count as
    a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


class User(Base):
    """User model for authentication and authorization."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, nullable=False)
    email = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    # NULL is treated as active for legacy rows
    is_active = Column(Boolean, nullable=True, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    roles = relationship("Role", secondary=user_roles)
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")

    def role_names(self) -> list[str]:
        return [role.name for role in self.roles if role.name]


# Email uniqueness is case-insensitive and enforced by the store
Index("uq_users_email_lower", func.lower(User.email), unique=True)


class Role(Base):
    """Role model. Rows are reference data attached to users by id."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String, unique=True, nullable=False)


class RefreshToken(Base):
    """Refresh token model. Kept in the schema, not issued by the current flows."""
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    token = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="refresh_tokens")
