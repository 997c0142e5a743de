from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column
from ..base import Base

class UserPreferences(Base):
    __tablename__ = "user_preferences"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    view_mode: Mapped[str] = mapped_column(String(20))
    timezone: Mapped[str] = mapped_column(String(64))
