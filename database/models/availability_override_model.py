from datetime import date

from sqlalchemy import BigInteger, CheckConstraint, Date, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from ..base import Base

class AvailabilityOverride(Base):
    __tablename__ = "availability_overrides"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, index=True)
    on_date: Mapped[date] = mapped_column(Date)
    hour: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20))  # available | blocked

    __table_args__ = (
        UniqueConstraint("user_id", "on_date", "hour", name="uq_override_cell"),
        CheckConstraint("hour BETWEEN 0 AND 23", name="ck_override_hour"),
    )
