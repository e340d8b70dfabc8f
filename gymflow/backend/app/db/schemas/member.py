from pydantic import BaseModel

from ..models.notification_preference import NotificationChannel


class NotificationPreference(BaseModel):
    event: str
    channel: NotificationChannel
    enabled: bool

    class Config:
        from_attributes = True


class NotificationPreferenceUpdate(BaseModel):
    event: str
    channel: NotificationChannel = NotificationChannel.email
    enabled: bool
