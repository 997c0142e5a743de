from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..base import Base

class BotRole:
    """Права пользователя в боте (не путать с ролями ростера)."""
    USER = "user"
    EVENT_CREATOR = "event_creator"
    ADMIN = "admin"

    ALL = (USER, EVENT_CREATOR, ADMIN)
    CAN_CREATE_EVENTS = (EVENT_CREATOR, ADMIN)

class User(Base):
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    username: Mapped[str] = mapped_column(String(255))
    bot_role: Mapped[str] = mapped_column(String(50), default=BotRole.USER, server_default=BotRole.USER, nullable=False)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Организованные пользователем события, ближайшие первыми
    events: Mapped[list["Event"]] = relationship(back_populates="owner", order_by="Event.event_timestamp")

    @property
    def can_create_events(self) -> bool:
        return self.bot_role in BotRole.CAN_CREATE_EVENTS
