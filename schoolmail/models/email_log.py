"""Email audit log model definitions."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from schoolmail.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmailLog(Base):
    """Represents one completed broadcast."""
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True)
    subject = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    recipients = Column(String, nullable=False)  # selector as given, not the resolved list
    class_name = Column(String, nullable=True)
    sent_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    attachments = Column(JSON, nullable=True)  # [{"filename", "contentType"}]
    sent_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    sender = relationship("User", lazy="joined")
