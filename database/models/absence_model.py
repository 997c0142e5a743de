from datetime import date, datetime

from sqlalchemy import BigInteger, CheckConstraint, Date, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column
from ..base import Base

class Absence(Base):
    """Период отсутствия: все дни от start_date до end_date включительно закрыты."""
    __tablename__ = "absences"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, index=True)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    reason: Mapped[str] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_absence_range"),
    )
