"""
User profile response models
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.billing.entitlements import entitlements_summary


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    email: str
    email_verified: bool = Field(default=False, serialization_alias="emailVerified")
    currency: str = "USD"
    subscription_tier: str = Field(default="free", serialization_alias="subscriptionTier")
    subscription_status: str = Field(default="inactive", serialization_alias="subscriptionStatus")
    receipt_scans_used: int = Field(default=0, serialization_alias="receiptScansUsed")
    stripe_customer_id: Optional[str] = Field(default=None, serialization_alias="stripeCustomerId")
    current_billing_period_start: Optional[datetime] = Field(
        default=None, serialization_alias="currentBillingPeriodStart"
    )
    current_billing_period_end: Optional[datetime] = Field(
        default=None, serialization_alias="currentBillingPeriodEnd"
    )


def user_payload(user) -> dict:
    """camelCase profile with the entitlement summary attached."""
    payload = UserProfile.model_validate(user).model_dump(mode="json", by_alias=True)
    payload["entitlements"] = entitlements_summary(user)
    return payload
