"""
Модель мастера
"""
from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP
from sqlalchemy.sql import func
from ..database import Base


class Staff(Base):
    """Мастер салона. Выбор мастера при записи - только пожелание клиента"""

    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    role = Column(String(100), nullable=True)  # Senior Stylist, Makeup Artist
    specialization = Column(String(255), nullable=True)  # "Hair,Face"
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP, server_default=func.now())

    def __repr__(self):
        return f"<Staff {self.name} ({self.role})>"
