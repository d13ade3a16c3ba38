# schooldesk/services/user_service.py
from typing import List

from sqlalchemy import select

from schooldesk.core.errors import ConflictError, PermissionDenied, ValidationError
from schooldesk.core.logging import logger
from schooldesk.core.permissions import PERMISSIONS, default_permissions, is_super_admin
from schooldesk.core.security import get_password_hash
from schooldesk.models.user import User
from schooldesk.schemas.enums import UserRole
from schooldesk.schemas.user import UserCreate
from .base_service import BaseService


class UserService(BaseService):
    async def list_users(self, tenant_id: int) -> List[User]:
        result = await self.db.execute(
            select(User).where(User.tenant_id == tenant_id).order_by(User.created_at.desc(), User.id.desc())
        )
        return list(result.scalars().all())

    async def create_user(self, tenant_id: int, data: UserCreate, created_by: User) -> User:
        """Create a staff account inside the caller's school"""
        if is_super_admin(data.role):
            raise PermissionDenied("School users cannot create super admin accounts")

        result = await self.db.execute(select(User.id).where(User.username == data.username))
        if result.first() is not None:
            raise ConflictError("Username already exists", details={"username": data.username})

        if data.permissions is None:
            permissions = default_permissions(data.role)
        else:
            unknown = [p for p in data.permissions if p != "*" and p not in PERMISSIONS and not p.endswith(".*")]
            if unknown:
                raise ValidationError("Unknown permissions", details={"permissions": unknown})
            permissions = list(dict.fromkeys(data.permissions))

        user = User(
            username=data.username,
            email=data.email.lower() if data.email else None,
            full_name=data.full_name,
            password_hash=get_password_hash(data.password),
            role=data.role.value,
            permissions=permissions,
            is_active=True,
            tenant_id=tenant_id
        )
        self.db.add(user)
        await self.db.commit()

        logger.info(
            f"User {user.username} created with role {user.role}",
            extra={"tenant_id": tenant_id, "user_id": created_by.id}
        )
        return user

    async def deactivate_user(self, tenant_id: int, user_id: int, actor: User) -> User:
        if user_id == actor.id:
            raise ValidationError("You cannot deactivate your own account")

        user = await self._get_scoped(User, user_id, tenant_id, label="User")
        if user.role == UserRole.SUPER_ADMIN.value:
            raise PermissionDenied("Super admin accounts cannot be deactivated here")

        user.is_active = False
        await self.db.commit()
        logger.info(
            f"User {user.username} deactivated",
            extra={"tenant_id": tenant_id, "user_id": actor.id}
        )
        return user
