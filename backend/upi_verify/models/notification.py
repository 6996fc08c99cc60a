"""
Notification Model — In-app notifications for admins and customers.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, Boolean, Text

from upi_verify.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    type = Column(String(32), nullable=False)
    # Types: payment_submitted, payment_received, order_confirmed, payment_rejected

    recipient = Column(String(36), nullable=False, index=True)   # "admin" or a user id
    title = Column(String(128), nullable=False)
    message = Column(Text, nullable=False)
    related_data = Column(JSON, default=dict)
    priority = Column(String(8), default="normal")               # normal | high

    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
