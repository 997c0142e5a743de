from sqlalchemy import BigInteger, CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from ..base import Base

class AvailabilitySlot(Base):
    __tablename__ = "availability_slots"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)  # 0 = понедельник
    hour: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20))

    __table_args__ = (
        UniqueConstraint("user_id", "day_of_week", "hour", name="uq_availability_cell"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day"),
        CheckConstraint("hour BETWEEN 0 AND 23", name="ck_availability_hour"),
    )
