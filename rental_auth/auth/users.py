"""
Authentication application service.

This module provides functionality for:
- User login and token issuance
- User registration with relay to the customer registry
- Logout acknowledgement

Every operation returns a ServiceResult; expected failures are reported
through its code rather than raised.
"""
from typing import Optional

import httpx

from rental_auth.base_microservice import (
    BaseMicroservice, InvalidStateError, OutcomeCode, ServiceResult,
)
from rental_auth.auth.config import AuthSettings
from rental_auth.auth.jwt import TokenIssuer
from rental_auth.auth.models import DEFAULT_ROLE_ID, Role, User, verify_password, hash_password
from rental_auth.auth.registry import CustomerRegistryClient
from rental_auth.auth.repository import AuthRepository, EmailAlreadyRegisteredError
from rental_auth.auth.schemas import LoginRequest, RegisterRequest, UserData

UNAUTHORIZED_MESSAGE = "Unauthorized user"
LOGIN_SUCCESS_MESSAGE = "User logged in successfully"
EMAIL_TAKEN_MESSAGE = "A user with this email already exists"
REGISTER_SUCCESS_MESSAGE = "User registered successfully"
REGISTRY_FAILED_MESSAGE = "Registration with partner system failed"
LOGOUT_SUCCESS_MESSAGE = "Logout successful. Remove the token from local storage."


class AuthService(BaseMicroservice):
    """
    Orchestrates the user store, credential hashing, token issuance and the
    customer registry.
    """
    def __init__(
        self,
        settings: AuthSettings,
        repository: AuthRepository,
        registry: CustomerRegistryClient,
        token_issuer: Optional[TokenIssuer] = None,
    ):
        super().__init__("rental_auth.auth")
        self.settings = settings
        self.repository = repository
        self.registry = registry
        self.token_issuer = token_issuer or TokenIssuer(settings)

    async def login(self, login_request: LoginRequest) -> ServiceResult[str]:
        """
        Authenticate a user and issue a bearer token.

        Unknown email and wrong password produce the same outcome.
        """
        try:
            user = await self.repository.find_user_by_email(login_request.email)
            if user is None or not verify_password(login_request.password, user.password_hash):
                self.log_event("user.login.failed", {"email": login_request.email})
                return ServiceResult[str].of(OutcomeCode.UNAUTHORIZED, UNAUTHORIZED_MESSAGE)

            token = self.token_issuer.issue(user)
            self.log_event("user.login", {"id": user.id, "username": user.username})
            return ServiceResult[str].of(OutcomeCode.OK, LOGIN_SUCCESS_MESSAGE, token)
        except ValueError as e:
            self.log_error(e, context="User login")
            return ServiceResult[str].of(OutcomeCode.BAD_REQUEST, f"Invalid data: {e}")
        except InvalidStateError as e:
            self.log_error(e, context="User login")
            return ServiceResult[str].of(OutcomeCode.INTERNAL_ERROR, f"Operation error: {e}")
        except Exception as e:
            self.log_error(e, context="User login")
            return ServiceResult[str].of(OutcomeCode.INTERNAL_ERROR, f"An unexpected error occurred: {e}")

    async def register(self, request: RegisterRequest) -> ServiceResult[UserData]:
        """
        Register a new user and relay the profile to the customer registry.

        The local user stays committed when the registry rejects the profile;
        a retry then stops at the duplicate-email check. A missing registry
        address fails before anything is stored.
        """
        try:
            self.registry.register_url()

            existing_user = await self.repository.find_user_by_email(request.email, include_inactive=True)
            if existing_user is not None:
                self.log_event("user.register.conflict", {"email": request.email})
                return ServiceResult[UserData].of(OutcomeCode.BAD_REQUEST, EMAIL_TAKEN_MESSAGE)

            new_user = User(
                username=request.username,
                email=request.email,
                password_hash=hash_password(request.password),
                roles=[Role(id=DEFAULT_ROLE_ID)],
            )
            try:
                await self.repository.register_user(new_user)
            except EmailAlreadyRegisteredError:
                # Lost the race against a concurrent registration
                self.log_event("user.register.conflict", {"email": request.email})
                return ServiceResult[UserData].of(OutcomeCode.BAD_REQUEST, EMAIL_TAKEN_MESSAGE)

            user_data = UserData(
                username=request.username,
                email=request.email,
                driver_license=request.driver_license,
                cellphone=request.cellphone,
            )

            if not await self.registry.register_customer(user_data):
                self.log_event("customer.sync.failed", {"id": new_user.id, "email": request.email})
                return ServiceResult[UserData].of(OutcomeCode.BAD_GATEWAY, REGISTRY_FAILED_MESSAGE)

            self.log_event("user.registered", {"id": new_user.id, "username": request.username})
            return ServiceResult[UserData].of(OutcomeCode.CREATED, REGISTER_SUCCESS_MESSAGE, user_data)
        except httpx.HTTPError as e:
            self.log_error(e, context="Customer registry")
            return ServiceResult[UserData].of(OutcomeCode.BAD_GATEWAY, f"Communication error: {e}")
        except ValueError as e:
            self.log_error(e, context="User registration")
            return ServiceResult[UserData].of(OutcomeCode.BAD_REQUEST, f"Invalid data: {e}")
        except InvalidStateError as e:
            self.log_error(e, context="User registration")
            return ServiceResult[UserData].of(OutcomeCode.INTERNAL_ERROR, f"Operation error: {e}")
        except Exception as e:
            self.log_error(e, context="User registration")
            return ServiceResult[UserData].of(OutcomeCode.INTERNAL_ERROR, f"An unexpected error occurred: {e}")

    async def logout(self) -> ServiceResult[str]:
        """
        Acknowledge a logout. Tokens are not stored; the client discards its own.
        """
        try:
            self.log_event("user.logout", {})
            return ServiceResult[str].of(OutcomeCode.OK, LOGOUT_SUCCESS_MESSAGE, "User logged out")
        except Exception as e:
            self.log_error(e, context="User logout")
            return ServiceResult[str].of(
                OutcomeCode.INTERNAL_ERROR, f"An unexpected error occurred during logout: {e}"
            )
