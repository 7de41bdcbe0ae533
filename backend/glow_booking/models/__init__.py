"""
SQLAlchemy модели для базы данных
"""
from .customer import Customer
from .service import Service
from .staff import Staff
from .appointment import Appointment, AppointmentStatus, PaymentStatus, PaymentMethod
from .notification import Notification

__all__ = [
    "Customer",
    "Service",
    "Staff",
    "Appointment",
    "AppointmentStatus",
    "PaymentStatus",
    "PaymentMethod",
    "Notification"
]
