"""
UserRepository for database operations on User model
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from database_models import User


class UserRepository:
    """
    Repository class for User database operations.
    Encapsulates all database logic for the User model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve a user by email address.

        Args:
            email: User's email address (case-insensitive search)

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user_by_stripe_customer_id(self, customer_id: str) -> Optional[User]:
        """
        Retrieve the user owning a Stripe customer.

        Args:
            customer_id: Stripe customer ID (cus_...)

        Returns:
            User object if found, None otherwise
        """
        if not customer_id:
            return None
        result = await self.db.execute(
            select(User).where(User.stripe_customer_id == customer_id)
        )
        return result.scalar_one_or_none()

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new user in the database.

        Args:
            user_data: Dictionary containing user data. Must include:
                - email: str
                Optional:
                - email_verified: bool (defaults to False)
                - currency: str (defaults to "USD")
                - subscription_tier: str (defaults to "free")
                - receipt_scans_used: int (defaults to 0)

        Returns:
            Created User object
        """
        user = User(
            email=user_data["email"].lower(),
            email_verified=user_data.get("email_verified", False),
            currency=user_data.get("currency", "USD"),
            subscription_tier=user_data.get("subscription_tier", "free"),
            subscription_status=user_data.get("subscription_status", "inactive"),
            receipt_scans_used=user_data.get("receipt_scans_used", 0),
            stripe_customer_id=user_data.get("stripe_customer_id"),
        )
        self.db.add(user)
        await self.db.flush()  # Flush to get the ID without committing
        await self.db.refresh(user)
        return user

    async def update_user(self, user: User, updates: dict) -> User:
        """
        Update user fields.

        Args:
            user: User object to update
            updates: Dictionary of fields to update (e.g., {"subscription_tier": "pro"})

        Returns:
            Updated User object
        """
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def increment_receipt_scans(self, user: User, limit: int = 0) -> bool:
        """
        Count one more receipt scan in a single conditional UPDATE, so concurrent
        scans cannot both pass the limit check.

        Args:
            user: User to charge the scan to
            limit: Scans allowed for the tier, 0 for unlimited

        Returns:
            True if the scan was counted, False if the user was already at the limit.
            The user object is refreshed either way.
        """
        stmt = (
            update(User)
            .where(User.id == user.id)
            .values(receipt_scans_used=User.receipt_scans_used + 1)
            .execution_options(synchronize_session=False)
        )
        if limit:
            stmt = stmt.where(User.receipt_scans_used < limit)

        result = await self.db.execute(stmt)
        await self.db.refresh(user)
        return (result.rowcount or 0) > 0
