"""Per-user notification watermark table."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from reviewhub.db.base import Base


class NotificationWatermarkRow(Base):
    __tablename__ = "notification_watermarks"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    session_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_checked: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
