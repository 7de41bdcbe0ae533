"""
Pydantic схемы запросов и ответов
Неизвестные поля в запросах отклоняются (extra = "forbid")
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from .models.appointment import AppointmentStatus, PaymentMethod

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"  # YYYY-MM-DD


# ==================== Requests ====================

class PaymentProof(BaseModel):
    """Данные, которые шлюз возвращает клиенту после оплаты"""

    razorpay_order_id: str = Field(..., min_length=1, max_length=100)
    razorpay_payment_id: str = Field(..., min_length=1, max_length=100)
    razorpay_signature: str = Field(..., min_length=1, max_length=256)

    class Config:
        extra = "forbid"


class AppointmentCreate(BaseModel):
    customer_name: str = Field(..., max_length=100)
    customer_phone: str = Field(..., max_length=20)
    customer_email: EmailStr
    service_id: int
    date: str = Field(..., pattern=DATE_PATTERN)
    time_slot: str = Field(..., max_length=20)  # "10:00-11:00"
    notes: Optional[str] = Field(None, max_length=1000)
    staff_id: Optional[int] = None
    customer_id: Optional[int] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment: Optional[PaymentProof] = None

    class Config:
        extra = "forbid"

    @field_validator("customer_name", "customer_phone", "time_slot")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("customer_email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("customer_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.lower()
        if len(v) > 100:
            raise ValueError("Email is too long")
        return v

    @field_validator("staff_id", "customer_id", mode="before")
    @classmethod
    def empty_as_none(cls, v):
        # Форма присылает "" если мастер не выбран
        return None if v == "" else v

    @model_validator(mode="after")
    def payment_implies_online(self):
        if self.payment is not None:
            self.payment_method = PaymentMethod.ONLINE
        return self


class AppointmentUpdate(BaseModel):
    status: Optional[AppointmentStatus] = None
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    time_slot: Optional[str] = Field(None, max_length=20)

    class Config:
        extra = "forbid"

    @field_validator("time_slot")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def has_changes(self):
        if self.status is None and self.date is None and self.time_slot is None:
            raise ValueError("Nothing to update: provide status, date or time_slot")
        return self


class CreateOrderRequest(BaseModel):
    amount: float = Field(..., gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    receipt: Optional[str] = Field(None, max_length=40)

    class Config:
        extra = "forbid"


class VerifyPaymentRequest(PaymentProof):
    appointment_id: Optional[int] = None


# ==================== Responses ====================

class ServiceSnapshot(BaseModel):
    name: str
    price: float


class PaymentInfo(BaseModel):
    transaction_id: Optional[str] = None
    amount: Optional[float] = None
    currency: str
    status: str
    method: str


class AppointmentResponse(BaseModel):
    id: int
    customer_name: str
    customer_phone: str
    customer_email: str
    customer_id: Optional[int] = None
    service_id: int
    staff_id: Optional[int] = None
    service_snapshot: ServiceSnapshot
    date: str
    time_slot: str
    status: str
    notes: Optional[str] = None
    payment_info: PaymentInfo
    reminder_sent: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StatusSummary(BaseModel):
    total: int
    pending: int
    confirmed: int
    completed: int
    cancelled: int


class PopularService(BaseModel):
    name: str
    count: int


class AnalyticsResponse(BaseModel):
    summary: StatusSummary
    popular_services: List[PopularService]


class PaymentOrderResponse(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: Optional[str] = None


class VerifyPaymentResponse(BaseModel):
    success: bool
    message: str
    payment_id: str
    appointment: Optional[AppointmentResponse] = None
