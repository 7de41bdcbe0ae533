"""
API роутер для записей на прием
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.appointment import Appointment
from ..schemas import (
    AnalyticsResponse,
    AppointmentCreate,
    AppointmentResponse,
    AppointmentUpdate,
    PaymentProof,
)
from ..services.analytics import AnalyticsService
from ..services.booking import BookingService
from ..services.notifications import deliver_notifications

router = APIRouter(prefix="/api/appointments", tags=["appointments"])


def _respond(db: Session, appointment: Appointment) -> AppointmentResponse:
    response = AppointmentResponse.model_validate(appointment)
    # Чтение после commit открывает транзакцию - закрываем до фоновой отправки
    db.commit()
    return response


def _schedule_delivery(background_tasks: BackgroundTasks, service: BookingService) -> None:
    if service.outbox:
        background_tasks.add_task(deliver_notifications, list(service.outbox))


@router.post("", response_model=AppointmentResponse, status_code=201)
def create_appointment(
    data: AppointmentCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Создать запись (статус PENDING)"""
    service = BookingService(db)
    appointment = service.create_appointment(data)
    _schedule_delivery(background_tasks, service)
    return _respond(db, appointment)


@router.get("", response_model=List[AppointmentResponse])
def get_appointments(
    date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    status: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Список записей, опционально по дате и статусу"""
    appointments = BookingService(db).get_appointments(date=date, status=status)
    return [AppointmentResponse.model_validate(a) for a in appointments]


@router.get("/analytics", response_model=AnalyticsResponse)
def get_analytics(db: Session = Depends(get_db)):
    """Сводка по статусам и топ-5 услуг"""
    return AnalyticsService(db).get_analytics()


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    return BookingService(db).get_appointment(appointment_id)


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Сменить статус и/или перенести запись"""
    service = BookingService(db)
    appointment = service.update_appointment(appointment_id, data)
    _schedule_delivery(background_tasks, service)
    return _respond(db, appointment)


@router.post("/{appointment_id}/payment", response_model=AppointmentResponse)
def confirm_payment(
    appointment_id: int,
    proof: PaymentProof,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Принять онлайн-оплату по записи"""
    service = BookingService(db)
    appointment = service.confirm_online_payment(appointment_id, proof)
    _schedule_delivery(background_tasks, service)
    return _respond(db, appointment)
