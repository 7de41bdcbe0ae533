"""
Бизнес-логика записи на прием
"""
from .analytics import AnalyticsService
from .booking import BookingService
from .payments import RazorpayGateway, verify_payment
from .slots import SlotConflictChecker

__all__ = [
    "AnalyticsService",
    "BookingService",
    "RazorpayGateway",
    "SlotConflictChecker",
    "verify_payment",
]
