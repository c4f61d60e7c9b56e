"""
Notification response models
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    user_id: int = Field(serialization_alias="userId")
    type: str
    message: str
    actor_id: Optional[int] = Field(default=None, serialization_alias="actorId")
    read: bool = False
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def notification_payload(notification) -> dict:
    """Serialize a Notification row the way it is sent over the channel and REST."""
    return NotificationOut.model_validate(notification).to_payload()
