"""
Проверка занятости слотов
"""
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import TransientInfraError, ValidationError
from ..models.appointment import Appointment, AppointmentStatus


class SlotConflictChecker:
    """
    Слот - пара (дата, метка времени), обе сравниваются как строки.
    Слот занят, если на него есть запись со статусом, отличным от CANCELLED.
    """

    def __init__(self, db: Session):
        self.db = db

    def _active_query(self, date: str, time_slot: str):
        return self.db.query(Appointment.id).filter(
            Appointment.date == date,
            Appointment.time_slot == time_slot,
            Appointment.status != AppointmentStatus.CANCELLED.value
        )

    def is_slot_taken(
        self,
        date: str,
        time_slot: str,
        exclude_appointment_id: Optional[int] = None
    ) -> bool:
        """
        Проверить, занят ли слот другой активной записью.
        exclude_appointment_id - при переносе запись не конфликтует сама с собой.
        Ошибка чтения не считается "слот свободен" - запись прерывается.
        """
        if not date or not time_slot:
            raise ValidationError("Date and time slot are required")

        query = self._active_query(date, time_slot)
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        try:
            return query.first() is not None
        except SQLAlchemyError as e:
            raise TransientInfraError(f"Could not check slot availability: {e.__class__.__name__}") from e

    def get_booked_slots(self, date: str) -> List[str]:
        """
        Получить занятые метки времени на дату
        """
        try:
            rows = self.db.query(Appointment.time_slot).filter(
                Appointment.date == date,
                Appointment.status != AppointmentStatus.CANCELLED.value
            ).order_by(Appointment.time_slot).all()
        except SQLAlchemyError as e:
            raise TransientInfraError(f"Could not load booked slots: {e.__class__.__name__}") from e

        return [row.time_slot for row in rows]
