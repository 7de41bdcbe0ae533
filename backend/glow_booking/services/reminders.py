"""
Напоминания клиентам о записях на завтра
"""
import logging
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import TransientInfraError
from ..models.appointment import Appointment, AppointmentStatus
from .email_templates import appointment_reminder
from .notifications import enqueue_email

logger = logging.getLogger(__name__)


def send_daily_reminders(db: Session, today: Optional[date] = None) -> List[int]:
    """
    Поставить в outbox напоминания по подтверждённым записям на завтра.
    Каждая запись получает напоминание один раз (флаг reminder_sent).

    Returns:
        List[int]: id уведомлений для отправки
    """
    tomorrow = ((today or date.today()) + timedelta(days=1)).isoformat()

    try:
        appointments = db.query(Appointment).filter(
            Appointment.date == tomorrow,
            Appointment.status == AppointmentStatus.CONFIRMED.value,
            Appointment.reminder_sent.is_(False)
        ).order_by(Appointment.time_slot).all()

        queued = []
        for apt in appointments:
            queued.append(enqueue_email(db, apt.customer_email, appointment_reminder(apt), apt.id))
            apt.reminder_sent = True

        db.flush()
        ids = [n.id for n in queued]
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Ошибка постановки напоминаний на {tomorrow}: {e}")
        raise TransientInfraError("Could not queue reminders") from e

    logger.info(f"Напоминаний на {tomorrow} поставлено в очередь: {len(ids)}")
    return ids
