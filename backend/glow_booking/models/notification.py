"""
Модель уведомления (outbox)
"""
from sqlalchemy import Column, Integer, ForeignKey, String, Text, TIMESTAMP
from sqlalchemy.sql import func
from ..database import Base


class Notification(Base):
    """
    Исходящее уведомление.
    Пишется в той же транзакции, что и изменение записи, отправляется после commit.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True, index=True)
    channel = Column(String(20), nullable=False)  # email, telegram
    recipient = Column(String(100), nullable=False)  # email или chat_id
    subject = Column(String(255), nullable=True)
    text_body = Column(Text, nullable=False)
    html_body = Column(Text, nullable=True)
    reply_markup = Column(Text, nullable=True)  # JSON inline-клавиатуры Telegram
    status = Column(String(20), default="pending", index=True)  # pending, sent, failed
    attempts = Column(Integer, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    sent_at = Column(TIMESTAMP, nullable=True)

    def __repr__(self):
        return f"<Notification {self.channel} -> {self.recipient} (Status: {self.status})>"
