"""
Машина состояний записи

PENDING -> CONFIRMED | CANCELLED
CONFIRMED -> COMPLETED | CANCELLED
COMPLETED, CANCELLED - конечные
"""
import logging
from typing import Dict, FrozenSet, Optional, Union

from sqlalchemy.orm import Session

from ..exceptions import InvalidTransitionError, ValidationError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.notification import Notification
from .email_templates import status_changed
from .notifications import enqueue_email

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

# При входе в эти статусы клиент получает письмо
NOTIFY_ON_ENTER = frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED})


def parse_status(value: Union[str, AppointmentStatus]) -> AppointmentStatus:
    """Привести строку к статусу, неизвестное значение - ошибка клиента"""
    try:
        return AppointmentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in AppointmentStatus)
        raise ValidationError(f"Unknown status '{value}'. Allowed: {allowed}")


def is_terminal(status: Union[str, AppointmentStatus]) -> bool:
    return not TRANSITIONS[parse_status(status)]


def can_transition(current: Union[str, AppointmentStatus], target: Union[str, AppointmentStatus]) -> bool:
    return parse_status(target) in TRANSITIONS[parse_status(current)]


def ensure_transition(current: Union[str, AppointmentStatus], target: Union[str, AppointmentStatus]) -> None:
    """Проверить переход без изменения записи"""
    if not can_transition(current, target):
        raise InvalidTransitionError(parse_status(current).value, parse_status(target).value)


def apply_status(
    db: Session,
    appointment: Appointment,
    target: Union[str, AppointmentStatus]
) -> Optional[Notification]:
    """
    Перевести запись в новый статус и поставить письмо клиенту в outbox.
    Повтор текущего статуса - не переход: ничего не меняется и не отправляется.

    Returns:
        Notification, если переход требует уведомления
    """
    target = parse_status(target)
    current = parse_status(appointment.status)

    if target == current:
        return None

    ensure_transition(current, target)
    appointment.status = target.value
    logger.info(f"Запись #{appointment.id}: {current.value} -> {target.value}")

    if target in NOTIFY_ON_ENTER:
        return enqueue_email(
            db,
            appointment.customer_email,
            status_changed(appointment, target),
            appointment_id=appointment.id
        )
    return None
