from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update, func

from ftrmsg.models.profile import Profile, TIER_PRO
from .base_repository import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    """Repository for Profile operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Profile, session)

    async def apply_storage_delta(self, user_id: UUID, delta_bytes: int) -> bool:
        """
        Atomically add `delta_bytes` to the storage counter, clamped at zero.

        Runs as a single UPDATE so concurrent deltas for one owner compose.
        """
        try:
            query = (
                update(Profile)
                .where(Profile.id == user_id)
                .values(
                    storage_used_bytes=func.greatest(0, Profile.storage_used_bytes + delta_bytes),
                    updated_at=func.now(),
                )
            )
            result = await self.session.execute(query)
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error applying storage delta {delta_bytes} for {user_id}: {e}")
            raise

    async def mark_free_message_used(self, user_id: UUID) -> bool:
        """
        Flip the free-message flag only if it is still unset.

        Returns False when another request already consumed it.
        """
        try:
            query = (
                update(Profile)
                .where(
                    Profile.id == user_id,
                    Profile.free_message_used.is_(False),
                )
                .values(free_message_used=True, updated_at=func.now())
            )
            result = await self.session.execute(query)
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error marking free message used for {user_id}: {e}")
            raise

    async def upgrade_to_pro(
        self,
        user_id: UUID,
        storage_limit_bytes: int,
        stripe_customer_id: Optional[str] = None
    ) -> bool:
        """Set tier to pro with its storage limit."""
        values = {
            "tier": TIER_PRO,
            "storage_limit_bytes": storage_limit_bytes,
            "updated_at": func.now(),
        }
        if stripe_customer_id:
            values["stripe_customer_id"] = stripe_customer_id
        try:
            result = await self.session.execute(
                update(Profile).where(Profile.id == user_id).values(**values)
            )
            return result.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error upgrading profile {user_id} to pro: {e}")
            raise
