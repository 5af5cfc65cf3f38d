"""
Admin user repository for database operations.
"""

from typing import Optional
from uuid import uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.admin_user import AdminUser

logger = structlog.get_logger(__name__)


class AdminUserRepository:
    """Repository for admin user database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[AdminUser]:
        """Get an admin by email address."""
        result = await self.db.execute(select(AdminUser).where(AdminUser.email == email))
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        email: str,
        name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> AdminUser:
        """
        Get the admin for an email, creating the row on first use.

        A concurrent insert for the same email loses on the unique
        constraint and re-reads the winner's row.
        """
        admin = await self.get_by_email(email)
        if admin:
            return admin

        admin = AdminUser(
            id=str(uuid4()),
            email=email,
            name=name or email,
            avatar_url=avatar_url,
        )
        self.db.add(admin)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_by_email(email)
            if existing is None:
                raise
            return existing

        logger.info("admin_user_created", admin_id=admin.id)
        return admin
