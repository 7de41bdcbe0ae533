"""
Конфигурация приложения
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings(BaseSettings):
    """Настройки приложения"""

    # Database
    DATABASE_URL: str
    DB_CONNECT_TIMEOUT: int = 10  # секунды

    # Security
    SECRET_KEY: str = "local-development-secret-key-change-in-production"

    # Admin Panel
    ADMIN_PASSWORD: str = "glowgrace2024"

    # Салон
    SALON_NAME: str = "Glow & Grace"
    SITE_URL: str = "http://localhost:8000"
    ADMIN_EMAIL: str = "admin@example.com"

    # Email (уведомления клиентам и администратору)
    SMTP_HOST: Optional[str] = None  # smtp.gmail.com
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None  # app password
    SMTP_USE_SSL: bool = False  # True для порта 465
    SMTP_FROM_NAME: str = "Glow & Grace Beauty Parlour"
    SMTP_FROM_EMAIL: Optional[str] = None  # если отличается от SMTP_USER

    # Telegram для салона (копия новых записей, кнопки подтверждения)
    TELEGRAM_SALON_BOT_TOKEN: Optional[str] = None
    TELEGRAM_SALON_CHAT_ID: Optional[str] = None

    # Payment (Razorpay)
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"
    DEFAULT_CURRENCY: str = "INR"

    # Таймаут любого внешнего вызова (SMTP, Telegram, платёжный шлюз)
    EXTERNAL_TIMEOUT_SECONDS: float = 10.0

    # Outbox
    NOTIFICATION_MAX_ATTEMPTS: int = 3

    # Development
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        # Путь к .env относительно корня проекта
        env_file = Path(__file__).resolve().parent.parent.parent / ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Получить настройки приложения (с кешированием)"""
    return Settings()
