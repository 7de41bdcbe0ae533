"""
Модель записи на прием
"""
from enum import Enum

from sqlalchemy import Column, Integer, ForeignKey, String, Numeric, Text, Boolean, TIMESTAMP, Index, text
from sqlalchemy.sql import func
from ..database import Base


class AppointmentStatus(str, Enum):
    """Статусы записи"""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Статусы оплаты"""
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    """Способы оплаты"""
    CASH = "CASH"
    ONLINE = "ONLINE"


# Слот занимают только активные (не отменённые) записи
ACTIVE_SLOT_PREDICATE = text("status <> 'CANCELLED'")


class Appointment(Base):
    """Запись на прием"""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Контакты клиента (гость или владелец аккаунта)
    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), nullable=False)
    customer_email = Column(String(100), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)

    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)

    # Снимок услуги на момент записи, не меняется при правке каталога
    service_name = Column(String(100), nullable=False)
    service_price = Column(Numeric(10, 2), nullable=False)

    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    time_slot = Column(String(20), nullable=False)  # "10:00-11:00"
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True)
    notes = Column(Text, nullable=True)

    # payment_info
    payment_transaction_id = Column(String(100), nullable=True)
    payment_amount = Column(Numeric(10, 2), nullable=True)
    payment_currency = Column(String(3), nullable=False, default="INR")
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)

    reminder_sent = Column(Boolean, default=False)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index(
            "uq_appointments_active_slot",
            "date",
            "time_slot",
            unique=True,
            postgresql_where=ACTIVE_SLOT_PREDICATE,
            sqlite_where=ACTIVE_SLOT_PREDICATE,
        ),
    )

    @property
    def service_snapshot(self) -> dict:
        return {"name": self.service_name, "price": float(self.service_price)}

    @property
    def payment_info(self) -> dict:
        return {
            "transaction_id": self.payment_transaction_id,
            "amount": float(self.payment_amount) if self.payment_amount is not None else None,
            "currency": self.payment_currency,
            "status": self.payment_status,
            "method": self.payment_method,
        }

    def __repr__(self):
        return f"<Appointment {self.date} {self.time_slot} (Status: {self.status})>"
