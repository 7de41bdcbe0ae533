"""
Статистика для админ-панели
"""
import logging
import time

from sqlalchemy import func
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import TransientInfraError
from ..models.appointment import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Количество записей по статусам и самые популярные услуги"""

    def __init__(self, db: Session, max_retries: int = 3, retry_delay: float = 0.2):
        self.db = db
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _status_counts(self) -> dict:
        rows = self.db.query(
            Appointment.status, func.count(Appointment.id)
        ).group_by(Appointment.status).all()

        counts = {status.value: 0 for status in AppointmentStatus}
        for status, count in rows:
            counts[status] = count

        return {
            "total": sum(counts.values()),
            "pending": counts[AppointmentStatus.PENDING.value],
            "confirmed": counts[AppointmentStatus.CONFIRMED.value],
            "completed": counts[AppointmentStatus.COMPLETED.value],
            "cancelled": counts[AppointmentStatus.CANCELLED.value],
        }

    def _popular_services(self, top_n: int) -> list:
        # Группировка по названию из снимка: переименование услуги в каталоге историю не меняет
        count = func.count(Appointment.id)
        rows = self.db.query(
            Appointment.service_name, count
        ).group_by(
            Appointment.service_name
        ).order_by(
            count.desc(), func.min(Appointment.id)
        ).limit(top_n).all()

        return [{"name": name, "count": total} for name, total in rows]

    def get_analytics(self, top_n: int = 5) -> dict:
        """
        Сводка по всем записям (включая отменённые)

        Returns:
            dict: {"summary": {...}, "popular_services": [{"name", "count"}, ...]}
        """
        for attempt in range(self.max_retries):
            try:
                result = {
                    "summary": self._status_counts(),
                    "popular_services": self._popular_services(top_n),
                }
                self.db.commit()
                return result
            except OperationalError as e:
                self.db.rollback()
                logger.warning(f"Повтор {attempt + 1}/{self.max_retries} чтения статистики: {e.__class__.__name__}")
                if attempt == self.max_retries - 1:
                    raise TransientInfraError("Analytics are temporarily unavailable") from e
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Ошибка чтения статистики: {e}")
                raise TransientInfraError("Analytics are temporarily unavailable") from e

            time.sleep(self.retry_delay * (2 ** attempt))
