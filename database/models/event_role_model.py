from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..base import Base

class EventRole(Base):
    __tablename__ = "event_roles"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"))
    role_name: Mapped[str] = mapped_column(String(20))
    capacity: Mapped[int] = mapped_column(Integer)

    event: Mapped["Event"] = relationship(back_populates="roles")

    __table_args__ = (
        UniqueConstraint("event_id", "role_name", name="uq_event_role"),
        CheckConstraint("capacity > 0", name="ck_event_role_capacity"),
    )
