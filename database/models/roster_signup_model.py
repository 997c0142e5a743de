from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..base import Base

class RosterSignup(Base):
    __tablename__ = "roster_assignments"

    # id записи служит signup_id: чем меньше, тем раньше записался
    id: Mapped[int] = mapped_column(primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"))
    user_id: Mapped[int] = mapped_column(BigInteger)
    role_name: Mapped[str] = mapped_column(String(20))
    position: Mapped[int] = mapped_column(Integer)
    signed_up_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    event: Mapped["Event"] = relationship(back_populates="signups")

    # Окончательный арбитраж одновременных записей
    __table_args__ = (
        UniqueConstraint("event_id", "role_name", "position", name="uq_roster_position"),
        UniqueConstraint("event_id", "user_id", name="uq_roster_user"),
        CheckConstraint("position >= 1", name="ck_roster_position"),
    )
