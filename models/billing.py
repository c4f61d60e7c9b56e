"""
Billing request models
"""
from typing import Literal

from pydantic import BaseModel, Field


class CreateSubscriptionRequest(BaseModel):
    tier_id: str = Field(alias="tierId")
    interval: Literal["monthly", "yearly"] = "monthly"

    model_config = {"populate_by_name": True}
