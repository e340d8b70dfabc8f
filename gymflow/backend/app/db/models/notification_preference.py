from enum import Enum as PyEnum
from sqlalchemy import Boolean, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from ..session import Base


class NotificationChannel(str, PyEnum):
    email = "email"
    push = "push"
    sms = "sms"


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"
    __table_args__ = (
        UniqueConstraint(
            "member_id", "event", "channel", name="uq_notification_preference_member_event_channel"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"))
    event: Mapped[str] = mapped_column(String(64))
    channel: Mapped[NotificationChannel] = mapped_column(Enum(NotificationChannel))
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
