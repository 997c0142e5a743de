from sqlalchemy import BigInteger, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..base import Base

class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=True, index=True)
    message_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=True)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, nullable=True)
    event_timestamp: Mapped[int] = mapped_column(BigInteger, index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=120, server_default="120")
    roster_kind: Mapped[str] = mapped_column(String(20))

    owner: Mapped["User"] = relationship(back_populates="events")
    roles: Mapped[list["EventRole"]] = relationship(
        back_populates="event", cascade="all, delete-orphan", lazy="selectin"
    )
    signups: Mapped[list["RosterSignup"]] = relationship(
        back_populates="event", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def end_timestamp(self) -> int:
        return self.event_timestamp + self.duration_minutes * 60
