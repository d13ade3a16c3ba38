# schooldesk/services/auth_service.py
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import func, or_, select

from schooldesk.core.config import get_token_expires_delta, settings
from schooldesk.core.errors import (
    AccountDeactivatedException,
    AuthorizationError,
    ConflictError,
    InvalidCredentialsException,
    NotFoundError,
)
from schooldesk.core.logging import logger
from schooldesk.core.security import (
    compare_secrets,
    create_access_token,
    get_password_hash,
    pwd_context,
    sanitize_token,
    verify_password,
)
from schooldesk.models.tenant import Tenant
from schooldesk.models.user import User
from schooldesk.schemas.auth import AuthenticatedUser, CallerIdentity, LoginResponse
from schooldesk.schemas.enums import UserRole
from .base_service import BaseService
from .tenant_resolver import resolve_tenant


class SecurityLogging:
    """Secure logging utilities for authentication system"""

    @staticmethod
    def log_auth_event(
        event_type: str,
        user_id: Optional[int] = None,
        error: Optional[Exception] = None,
        **kwargs: Any
    ) -> None:
        """Standardized auth event logging"""
        log_data = {"event": event_type}
        if user_id is not None:
            log_data["user_id"] = user_id
        if error is not None:
            log_data["error_code"] = getattr(error, "error_code", error.__class__.__name__)
        for key, value in kwargs.items():
            log_data[key] = sanitize_token(value) if isinstance(value, str) else value

        message = f"Auth event: {event_type}"
        if error is not None:
            logger.warning(f"{message} ({sanitize_token(str(error))})", extra=log_data)
        else:
            logger.info(message, extra=log_data)


class BootstrapDisabledError(AuthorizationError):
    """Raised when a super admin would be provisioned without the setup token"""
    def __init__(self, message: str = "Super admin bootstrap is disabled"):
        super().__init__(message=message, error_code="BOOTSTRAP_DISABLED")


class AuthService(BaseService):
    async def _find_by_identifier(self, identifier: str) -> Optional[User]:
        identifier = identifier.strip()
        result = await self.db.execute(
            select(User)
            .where(or_(User.username == identifier, func.lower(User.email) == identifier.lower()))
            .order_by(User.id)
        )
        return result.scalars().first()

    def _check_password(self, user: Optional[User], password: str) -> User:
        """
        Verify the password before looking at the active flag so that a
        deactivated account is only revealed to someone who knows its password.
        """
        if user is None:
            # Spend the same hashing time as a real check
            pwd_context.dummy_verify()
            raise InvalidCredentialsException()
        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsException()
        if not user.is_active:
            raise AccountDeactivatedException()
        return user

    async def _school_name(self, tenant_id: Optional[int]) -> Optional[str]:
        if tenant_id is None:
            return None
        result = await self.db.execute(select(Tenant.school_name).where(Tenant.id == tenant_id))
        return result.scalar_one_or_none()

    async def _issue(
        self,
        user: User,
        tenant_id: Optional[int],
        impersonated_by: Optional[int] = None,
        message: Optional[str] = None
    ) -> LoginResponse:
        expires_delta: timedelta = get_token_expires_delta(impersonation=impersonated_by is not None)
        token = create_access_token(
            user_id=user.id,
            role=UserRole(user.role),
            tenant_id=tenant_id,
            school_id=user.school_id,
            impersonated_by=impersonated_by,
            expires_delta=expires_delta
        )
        return LoginResponse(
            access_token=token,
            expires_in=int(expires_delta.total_seconds()),
            user=AuthenticatedUser(
                id=user.id,
                username=user.username,
                full_name=user.full_name,
                email=user.email,
                role=UserRole(user.role),
                tenant_id=tenant_id,
                school_name=await self._school_name(tenant_id),
                permissions=list(user.permissions or []),
                impersonated=impersonated_by is not None
            ),
            message=message
        )

    async def authenticate_user(self, identifier: str, password: str) -> LoginResponse:
        """Staff login by username or email"""
        try:
            user = self._check_password(await self._find_by_identifier(identifier), password)
        except (InvalidCredentialsException, AccountDeactivatedException) as e:
            SecurityLogging.log_auth_event("login_failed", error=e, identifier=identifier)
            raise

        resolution = resolve_tenant(CallerIdentity(subject_id=user.id, role=user.role), user)
        tenant_id = None if resolution.degraded else resolution.tenant_id

        user.last_login = datetime.now(timezone.utc)
        await self.db.commit()

        SecurityLogging.log_auth_event("login_success", user_id=user.id, tenant_id=tenant_id)
        return await self._issue(user, tenant_id)

    async def _super_admin_exists(self) -> bool:
        result = await self.db.execute(
            select(func.count(User.id)).where(User.role == UserRole.SUPER_ADMIN.value)
        )
        return (result.scalar() or 0) > 0

    def _check_setup_token(self, setup_token: Optional[str]) -> None:
        if not settings.SUPER_ADMIN_SETUP_TOKEN:
            raise BootstrapDisabledError()
        if not compare_secrets(setup_token, settings.SUPER_ADMIN_SETUP_TOKEN):
            raise BootstrapDisabledError("Invalid setup token")

    async def _create_super_admin(self, email: str, password: str, full_name: str) -> User:
        email = email.strip().lower()
        result = await self.db.execute(
            select(User.id).where(or_(User.username == email, func.lower(User.email) == email))
        )
        if result.first() is not None:
            raise ConflictError("An account with this email already exists")

        user = User(
            username=email,
            email=email,
            full_name=full_name,
            password_hash=get_password_hash(password),
            role=UserRole.SUPER_ADMIN.value,
            permissions=["*"],
            is_active=True,
            tenant_id=None
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def authenticate_super_admin(
        self,
        email: str,
        password: str,
        setup_token: Optional[str] = None
    ) -> LoginResponse:
        """
        Super admin login.

        When no super admin exists yet, the first login provisions one from the
        submitted credentials, but only with the configured setup token.
        """
        email = email.strip().lower()
        result = await self.db.execute(
            select(User)
            .where(
                func.lower(User.email) == email,
                User.role == UserRole.SUPER_ADMIN.value
            )
            .order_by(User.id)
        )
        user = result.scalars().first()

        if user is None and not await self._super_admin_exists():
            try:
                self._check_setup_token(setup_token)
            except BootstrapDisabledError as e:
                SecurityLogging.log_auth_event("super_admin_bootstrap_rejected", error=e, email=email)
                raise
            user = await self._create_super_admin(email, password, full_name="Super Admin")
            user.last_login = datetime.now(timezone.utc)
            await self.db.commit()
            SecurityLogging.log_auth_event("super_admin_bootstrapped", user_id=user.id)
            return await self._issue(user, None, message="Super admin account created")

        try:
            user = self._check_password(user, password)
        except (InvalidCredentialsException, AccountDeactivatedException) as e:
            SecurityLogging.log_auth_event("super_admin_login_failed", error=e, email=email)
            raise

        user.last_login = datetime.now(timezone.utc)
        await self.db.commit()
        SecurityLogging.log_auth_event("super_admin_login_success", user_id=user.id)
        return await self._issue(user, None)

    async def register_super_admin(
        self,
        name: str,
        email: str,
        password: str,
        setup_token: Optional[str]
    ) -> User:
        self._check_setup_token(setup_token)
        user = await self._create_super_admin(email, password, full_name=name)
        await self.db.commit()
        SecurityLogging.log_auth_event("super_admin_registered", user_id=user.id)
        return user

    async def impersonate(self, tenant_id: int, super_admin: User) -> LoginResponse:
        """Short-lived session as the school's admin, stamped with who asked for it"""
        result = await self.db.execute(select(Tenant).where(Tenant.id == tenant_id))
        tenant = result.scalar_one_or_none()
        if tenant is None:
            raise NotFoundError("School not found", details={"tenant_id": tenant_id})

        result = await self.db.execute(
            select(User)
            .where(
                User.tenant_id == tenant_id,
                User.role == UserRole.SCHOOL_ADMIN.value,
                User.is_active.is_(True)
            )
            .order_by(User.id)
        )
        admin = result.scalars().first()
        if admin is None:
            raise NotFoundError("No active school admin found for this school", details={"tenant_id": tenant_id})

        SecurityLogging.log_auth_event(
            "impersonation_started",
            user_id=super_admin.id,
            tenant_id=tenant_id,
            target_user=admin.id
        )
        return await self._issue(
            admin,
            tenant_id,
            impersonated_by=super_admin.id,
            message=f"Now logged in as {tenant.school_name}"
        )

    async def seed_super_admin(self) -> Optional[User]:
        """Create the configured super admin at startup if it is missing"""
        if not settings.SUPER_ADMIN_EMAIL or not settings.SUPER_ADMIN_PASSWORD:
            return None

        email = settings.SUPER_ADMIN_EMAIL.strip().lower()
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email, User.role == UserRole.SUPER_ADMIN.value)
        )
        if result.scalars().first() is not None:
            return None

        user = await self._create_super_admin(email, settings.SUPER_ADMIN_PASSWORD, full_name="Super Admin")
        await self.db.commit()
        logger.info(f"Super admin created: {email}", extra={"event": "super_admin_seeded"})
        return user
