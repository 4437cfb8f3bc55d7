from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: str
    type: Optional[str] = "info"
    link: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None
