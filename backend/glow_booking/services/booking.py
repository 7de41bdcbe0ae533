"""
Сервис записи на прием: создание, перенос, смена статуса, оплата

Инвариант: на пару (date, time_slot) не больше одной записи со статусом != CANCELLED.
Проверка слота - быстрый путь с понятной ошибкой, окончательно конфликт решает
частичный уникальный индекс uq_appointments_active_slot.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..exceptions import (
    BookingError,
    ConflictError,
    NotFoundError,
    PaymentGatewayError,
    SignatureMismatchError,
    TransientInfraError,
    ValidationError,
)
from ..models.appointment import Appointment, AppointmentStatus, PaymentMethod, PaymentStatus
from ..models.customer import Customer
from ..models.notification import Notification
from ..models.service import Service
from ..models.staff import Staff
from ..schemas import AppointmentCreate, AppointmentUpdate, PaymentProof
from .email_templates import (
    booking_created_admin,
    booking_created_customer,
    confirm_reject_keyboard,
    new_booking_telegram,
    payment_received_telegram,
    rescheduled_telegram,
)
from .notifications import enqueue_email, enqueue_salon_telegram
from .payments import verify_payment
from .slots import SlotConflictChecker
from .status import apply_status, ensure_transition, is_terminal, parse_status

logger = logging.getLogger(__name__)

SLOT_TAKEN = "Time slot already booked"
TARGET_SLOT_TAKEN = "Target slot is already booked"


class BookingService:
    """
    Оркестратор записи.
    После успешной операции id уведомлений для отправки лежат в self.outbox.
    """

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.slots = SlotConflictChecker(db)
        self.outbox: List[int] = []
        self._queued: List[Notification] = []

    # ==================== Helpers ====================

    def _queue(self, notification: Optional[Notification]) -> None:
        if notification is not None:
            self._queued.append(notification)

    def _get(self, model, object_id: int, message: str):
        try:
            obj = self.db.get(model, object_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransientInfraError(f"Could not load {model.__tablename__}: {e.__class__.__name__}") from e
        if obj is None:
            raise NotFoundError(message)
        return obj

    def _commit(self, date: str, time_slot: str, conflict_message: str) -> None:
        """
        Зафиксировать транзакцию. Нарушение индекса активного слота -> ConflictError,
        сбой хранилища -> TransientInfraError. В обоих случаях ничего не сохраняется.
        """
        try:
            self.db.flush()
            self.outbox = [n.id for n in self._queued]
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            self.outbox = []
            if self.slots.is_slot_taken(date, time_slot):
                logger.warning(f"Конфликт слота при записи: {date} {time_slot}")
                raise ConflictError(conflict_message) from e
            raise ValidationError("Appointment violates a data constraint") from e
        except DBAPIError as e:
            self.db.rollback()
            self.outbox = []
            logger.error(f"Ошибка хранилища при сохранении записи: {e.__class__.__name__}")
            raise TransientInfraError("Appointment store is unavailable, try again") from e
        finally:
            self._queued = []

    def _rollback(self) -> None:
        self.db.rollback()
        self._queued = []
        self.outbox = []

    # ==================== Queries ====================

    def get_appointment(self, appointment_id: int) -> Appointment:
        return self._get(Appointment, appointment_id, "Appointment not found")

    def get_appointments(
        self,
        date: Optional[str] = None,
        status: Optional[str] = None
    ) -> List[Appointment]:
        """Список записей по дате и статусу, по возрастанию даты и слота"""
        query = self.db.query(Appointment)
        if date:
            query = query.filter(Appointment.date == date)
        if status:
            query = query.filter(Appointment.status == parse_status(status).value)

        try:
            return query.order_by(Appointment.date, Appointment.time_slot, Appointment.id).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransientInfraError(f"Could not load appointments: {e.__class__.__name__}") from e

    # ==================== Create ====================

    def create_appointment(self, data: AppointmentCreate) -> Appointment:
        """
        Создать запись со статусом PENDING и снимком услуги.
        Письма клиенту и администратору ставятся в outbox в той же транзакции.
        """
        self.outbox = []
        try:
            if self.slots.is_slot_taken(data.date, data.time_slot):
                logger.warning(f"Слот занят: {data.date} {data.time_slot}")
                raise ConflictError(SLOT_TAKEN)

            service = self._get(Service, data.service_id, "Service not found")
            if not service.is_active:
                raise NotFoundError("Service not found")

            if data.staff_id is not None:
                staff = self._get(Staff, data.staff_id, "Staff not found")
                if not staff.is_active:
                    raise NotFoundError("Staff not found")

            if data.customer_id is not None:
                self._get(Customer, data.customer_id, "Customer not found")

            appointment = Appointment(
                customer_name=data.customer_name,
                customer_phone=data.customer_phone,
                customer_email=data.customer_email,
                customer_id=data.customer_id,
                service_id=service.id,
                staff_id=data.staff_id,
                service_name=service.name,
                service_price=service.price,
                date=data.date,
                time_slot=data.time_slot,
                status=AppointmentStatus.PENDING.value,
                notes=data.notes,
                payment_currency=self.settings.DEFAULT_CURRENCY,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=data.payment_method.value,
                reminder_sent=False
            )

            if data.payment is not None:
                self._check_signature(data.payment)
                self._mark_paid(appointment, data.payment.razorpay_payment_id)

            self.db.add(appointment)
            self.db.flush()
        except BookingError:
            self._rollback()
            raise
        except IntegrityError as e:
            self._rollback()
            if self.slots.is_slot_taken(data.date, data.time_slot):
                raise ConflictError(SLOT_TAKEN) from e
            raise ValidationError("Appointment violates a data constraint") from e
        except DBAPIError as e:
            self._rollback()
            raise TransientInfraError("Appointment store is unavailable, try again") from e

        self._queue(enqueue_email(
            self.db, appointment.customer_email, booking_created_customer(appointment), appointment.id
        ))
        self._queue(enqueue_email(
            self.db, self.settings.ADMIN_EMAIL, booking_created_admin(appointment), appointment.id
        ))
        self._queue(enqueue_salon_telegram(
            self.db,
            new_booking_telegram(appointment),
            appointment.id,
            reply_markup=confirm_reject_keyboard(appointment.id)
        ))

        self._commit(data.date, data.time_slot, SLOT_TAKEN)
        logger.info(
            f"Создана запись #{appointment.id}: {appointment.service_name} "
            f"{appointment.date} {appointment.time_slot}"
        )
        return appointment

    # ==================== Update ====================

    def update_appointment(self, appointment_id: int, data: AppointmentUpdate) -> Appointment:
        """
        Перенос и/или смена статуса.
        Недопустимый переход или занятый целевой слот отклоняют весь запрос целиком.
        """
        self.outbox = []
        try:
            appointment = self.get_appointment(appointment_id)

            resulting_status = appointment.status
            if data.status is not None:
                target = parse_status(data.status)
                if target.value != appointment.status:
                    ensure_transition(appointment.status, target)
                resulting_status = target.value

            new_date = data.date or appointment.date
            new_slot = data.time_slot or appointment.time_slot
            old_date, old_slot = appointment.date, appointment.time_slot
            moved = (new_date, new_slot) != (old_date, old_slot)

            # Отмененная запись слот не занимает
            occupies = resulting_status != AppointmentStatus.CANCELLED.value
            if moved:
                if occupies and self.slots.is_slot_taken(new_date, new_slot, exclude_appointment_id=appointment.id):
                    logger.warning(f"Перенос #{appointment.id} отклонён: {new_date} {new_slot} занят")
                    raise ConflictError(TARGET_SLOT_TAKEN)
                appointment.date = new_date
                appointment.time_slot = new_slot
                logger.info(f"Запись #{appointment.id} перенесена: {old_date} {old_slot} -> {new_date} {new_slot}")

            if data.status is not None:
                self._queue(apply_status(self.db, appointment, data.status))

            if moved:
                self._queue(enqueue_salon_telegram(
                    self.db, rescheduled_telegram(appointment, old_date, old_slot), appointment.id
                ))
        except BookingError:
            self._rollback()
            raise

        self._commit(appointment.date, appointment.time_slot, TARGET_SLOT_TAKEN)
        return appointment

    # ==================== Payment ====================

    def _check_signature(self, proof: PaymentProof) -> None:
        secret = self.settings.RAZORPAY_KEY_SECRET
        if not secret:
            raise PaymentGatewayError("Payment gateway is not configured")

        if not verify_payment(
            proof.razorpay_order_id,
            proof.razorpay_payment_id,
            proof.razorpay_signature,
            secret
        ):
            logger.warning(f"Неверная подпись платежа: order={proof.razorpay_order_id}")
            raise SignatureMismatchError()

    def _mark_paid(self, appointment: Appointment, payment_id: str) -> None:
        appointment.payment_status = PaymentStatus.PAID.value
        appointment.payment_method = PaymentMethod.ONLINE.value
        appointment.payment_transaction_id = payment_id
        appointment.payment_amount = appointment.service_price
        appointment.payment_currency = appointment.payment_currency or self.settings.DEFAULT_CURRENCY

    def confirm_online_payment(self, appointment_id: int, proof: PaymentProof) -> Appointment:
        """
        Принять онлайн-оплату по записи.
        Сначала подпись: при несовпадении запись не меняется вообще.
        Оплаченная запись в PENDING переходит в CONFIRMED.
        """
        self.outbox = []
        self._check_signature(proof)

        try:
            appointment = self.get_appointment(appointment_id)

            if (
                appointment.payment_status == PaymentStatus.PAID.value
                and appointment.payment_transaction_id == proof.razorpay_payment_id
            ):
                return appointment

            if appointment.payment_status == PaymentStatus.PAID.value:
                raise ValidationError("Appointment is already paid")

            if is_terminal(appointment.status):
                raise ValidationError(f"Cannot accept payment for a {appointment.status} appointment")

            self._mark_paid(appointment, proof.razorpay_payment_id)
            if appointment.status == AppointmentStatus.PENDING.value:
                self._queue(apply_status(self.db, appointment, AppointmentStatus.CONFIRMED))
            self._queue(enqueue_salon_telegram(
                self.db, payment_received_telegram(appointment), appointment.id
            ))
        except BookingError:
            self._rollback()
            raise

        self._commit(appointment.date, appointment.time_slot, SLOT_TAKEN)
        logger.info(f"Оплата {proof.razorpay_payment_id} принята по записи #{appointment.id}")
        return appointment
