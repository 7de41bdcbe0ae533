"""Tests for the booking orchestrator."""

import threading

import pydantic
import pytest

from conftest import SECRET, booking_request
from glow_booking.database import SessionLocal
from glow_booking.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    SignatureMismatchError,
    ValidationError,
)
from glow_booking.models.appointment import Appointment
from glow_booking.models.notification import Notification
from glow_booking.models.service import Service
from glow_booking.schemas import AppointmentUpdate, PaymentProof
from glow_booking.services.booking import BookingService
from glow_booking.services.payments import create_payment_signature
from glow_booking.services.slots import SlotConflictChecker


def _proof(order_id="order_1", payment_id="pay_1", signature=None):
    return PaymentProof(
        razorpay_order_id=order_id,
        razorpay_payment_id=payment_id,
        razorpay_signature=signature or create_payment_signature(order_id, payment_id, SECRET),
    )


def _count(db, model):
    return db.query(model).count()


def _skip_first_slot_check(monkeypatch):
    """Первая проверка слота пропускает занятость, как при гонке двух запросов"""
    real = SlotConflictChecker.is_slot_taken
    calls = []

    def is_slot_taken(self, *args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            return False
        return real(self, *args, **kwargs)

    monkeypatch.setattr(SlotConflictChecker, "is_slot_taken", is_slot_taken)
    return calls


# ==================== Create ====================

def test_create_pending_with_snapshot(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"], notes="First visit"))

    assert apt.id is not None
    assert apt.status == "PENDING"
    assert apt.service_snapshot == {"name": "Basic Haircut", "price": 50.0}
    assert apt.payment_info["status"] == "PENDING"
    assert apt.payment_info["method"] == "CASH"
    assert apt.payment_info["currency"] == "INR"
    assert apt.reminder_sent is False


def test_create_queues_customer_and_admin_emails(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))

    rows = db.query(Notification).order_by(Notification.id).all()
    assert [n.id for n in rows] == service.outbox
    assert [n.recipient for n in rows] == ["priya@example.com", "owner@glowgrace.test"]
    assert "Provisional Booking" in rows[0].subject
    assert "PENDING confirmation" in rows[0].text_body
    assert rows[1].subject == "New Appointment Booking"
    assert all(n.appointment_id == apt.id and n.status == "pending" for n in rows)


def test_create_posts_to_salon_chat(db, catalog, telegram_on):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))

    telegram = db.query(Notification).filter(Notification.channel == "telegram").one()
    assert telegram.recipient == "-100500"
    assert f"apt_confirm_{apt.id}" in telegram.reply_markup
    assert len(service.outbox) == 3


def test_create_conflict(db, catalog):
    BookingService(db).create_appointment(booking_request(catalog["haircut"]))

    service = BookingService(db)
    with pytest.raises(ConflictError) as exc:
        service.create_appointment(booking_request(catalog["manicure"]))

    assert exc.value.message == "Time slot already booked"
    assert service.outbox == []
    assert _count(db, Appointment) == 1
    assert _count(db, Notification) == 2


@pytest.mark.parametrize("email", ["x..y@example.com", "a@-b.com", "priya@", "not-an-email"])
def test_malformed_email_rejected(catalog, email):
    with pytest.raises(pydantic.ValidationError):
        booking_request(catalog["haircut"], customer_email=email)


def test_email_normalized(catalog):
    request = booking_request(catalog["haircut"], customer_email="  Priya.Sharma@Example.COM ")
    assert request.customer_email == "priya.sharma@example.com"


def test_unique_index_decides_create_conflict(db, catalog, monkeypatch):
    BookingService(db).create_appointment(booking_request(catalog["haircut"]))
    calls = _skip_first_slot_check(monkeypatch)

    service = BookingService(db)
    with pytest.raises(ConflictError) as exc:
        service.create_appointment(booking_request(catalog["facial"]))

    assert exc.value.message == "Time slot already booked"
    assert len(calls) == 2
    assert service.outbox == []
    assert _count(db, Appointment) == 1
    assert _count(db, Notification) == 2


def test_conflict_checked_before_service(db, catalog):
    BookingService(db).create_appointment(booking_request(catalog["haircut"]))

    with pytest.raises(ConflictError):
        BookingService(db).create_appointment(booking_request(99999))


@pytest.mark.parametrize("key", ["retired", None])
def test_unknown_or_inactive_service(db, catalog, key):
    service_id = catalog[key] if key else 99999

    with pytest.raises(NotFoundError) as exc:
        BookingService(db).create_appointment(booking_request(service_id))

    assert exc.value.message == "Service not found"
    assert _count(db, Appointment) == 0


def test_staff_reference_validated(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"], staff_id=catalog["sarah"]))
    assert apt.staff_id == catalog["sarah"]

    for staff_id in (catalog["gone"], 99999):
        with pytest.raises(NotFoundError) as exc:
            service.create_appointment(booking_request(catalog["haircut"], time_slot="12:00-13:00", staff_id=staff_id))
        assert exc.value.message == "Staff not found"


def test_customer_reference_validated(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"], customer_id=catalog["customer"]))
    assert apt.customer_id == catalog["customer"]

    with pytest.raises(NotFoundError) as exc:
        service.create_appointment(booking_request(catalog["haircut"], time_slot="12:00-13:00", customer_id=99999))
    assert exc.value.message == "Customer not found"


def test_snapshot_survives_catalog_edit(db, catalog):
    apt = BookingService(db).create_appointment(booking_request(catalog["haircut"]))
    apt_id = apt.id

    haircut = db.get(Service, catalog["haircut"])
    haircut.name = "Premium Haircut"
    haircut.price = 75
    db.commit()

    stored = BookingService(db).get_appointment(apt_id)
    assert stored.service_snapshot == {"name": "Basic Haircut", "price": 50.0}


def test_concurrent_bookings_one_winner(catalog):
    request = booking_request(catalog["haircut"], time_slot="15:00-16:00")
    results = []
    lock = threading.Lock()
    start = threading.Barrier(5)

    def book():
        session = SessionLocal()
        try:
            start.wait()
            BookingService(session).create_appointment(request)
            outcome = "created"
        except ConflictError:
            outcome = "conflict"
        finally:
            session.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=book) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["conflict"] * 4 + ["created"]

    session = SessionLocal()
    try:
        active = session.query(Appointment).filter(
            Appointment.date == "2030-03-10",
            Appointment.time_slot == "15:00-16:00",
            Appointment.status != "CANCELLED"
        ).count()
        session.commit()
    finally:
        session.close()
    assert active == 1


def test_cancelled_slot_can_be_rebooked(db, catalog):
    service = BookingService(db)
    first = service.create_appointment(booking_request(catalog["haircut"]))
    service.update_appointment(first.id, AppointmentUpdate(status="CANCELLED"))

    second = service.create_appointment(booking_request(catalog["facial"]))

    assert second.id != first.id
    assert second.status == "PENDING"
    assert first.status == "CANCELLED"


# ==================== Update ====================

def test_list_filters_and_order(db, catalog):
    service = BookingService(db)
    service.create_appointment(booking_request(catalog["haircut"], date="2030-03-11", time_slot="09:00-10:00"))
    late = service.create_appointment(booking_request(catalog["manicure"], time_slot="16:00-17:00"))
    service.create_appointment(booking_request(catalog["facial"], time_slot="09:00-10:00"))
    service.update_appointment(late.id, AppointmentUpdate(status="CONFIRMED"))

    everything = service.get_appointments()
    assert [(a.date, a.time_slot) for a in everything] == [
        ("2030-03-10", "09:00-10:00"),
        ("2030-03-10", "16:00-17:00"),
        ("2030-03-11", "09:00-10:00"),
    ]
    assert len(service.get_appointments(date="2030-03-10")) == 2
    assert [a.id for a in service.get_appointments(status="CONFIRMED")] == [late.id]

    with pytest.raises(ValidationError):
        service.get_appointments(status="LOST")


def test_get_missing_appointment(db):
    with pytest.raises(NotFoundError) as exc:
        BookingService(db).get_appointment(424242)
    assert exc.value.message == "Appointment not found"


def test_reschedule_to_free_slot(db, catalog, telegram_on):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))

    service.update_appointment(apt.id, AppointmentUpdate(date="2030-03-12", time_slot="13:00-14:00"))

    assert (apt.date, apt.time_slot) == ("2030-03-12", "13:00-14:00")
    notice = db.get(Notification, service.outbox[0])
    assert "RESCHEDULED" in notice.text_body
    assert "2030-03-10 10:00-11:00" in notice.text_body


def test_reschedule_into_taken_slot(db, catalog):
    service = BookingService(db)
    service.create_appointment(booking_request(catalog["haircut"]))
    other = service.create_appointment(booking_request(catalog["facial"], time_slot="11:00-12:00"))
    other_id = other.id

    with pytest.raises(ConflictError) as exc:
        service.update_appointment(other_id, AppointmentUpdate(time_slot="10:00-11:00", status="CONFIRMED"))

    assert exc.value.message == "Target slot is already booked"
    stored = service.get_appointment(other_id)
    assert (stored.time_slot, stored.status) == ("11:00-12:00", "PENDING")


def test_reschedule_into_cancelled_slot(db, catalog):
    service = BookingService(db)
    gone = service.create_appointment(booking_request(catalog["haircut"]))
    service.update_appointment(gone.id, AppointmentUpdate(status="CANCELLED"))
    other = service.create_appointment(booking_request(catalog["facial"], time_slot="11:00-12:00"))

    service.update_appointment(other.id, AppointmentUpdate(time_slot="10:00-11:00"))
    assert other.time_slot == "10:00-11:00"


def test_unique_index_decides_reschedule_conflict(db, catalog, monkeypatch):
    service = BookingService(db)
    service.create_appointment(booking_request(catalog["haircut"]))
    other = service.create_appointment(booking_request(catalog["facial"], time_slot="11:00-12:00"))
    other_id = other.id
    db.commit()
    calls = _skip_first_slot_check(monkeypatch)

    with pytest.raises(ConflictError) as exc:
        service.update_appointment(other_id, AppointmentUpdate(time_slot="10:00-11:00"))

    assert exc.value.message == "Target slot is already booked"
    assert len(calls) == 2
    assert service.outbox == []
    stored = service.get_appointment(other_id)
    assert (stored.date, stored.time_slot) == ("2030-03-10", "11:00-12:00")


def test_cancelled_booking_moves_into_taken_slot(db, catalog):
    service = BookingService(db)
    taken = service.create_appointment(booking_request(catalog["haircut"]))
    gone = service.create_appointment(booking_request(catalog["facial"], time_slot="11:00-12:00"))
    service.update_appointment(gone.id, AppointmentUpdate(status="CANCELLED"))

    service.update_appointment(gone.id, AppointmentUpdate(time_slot="10:00-11:00"))

    assert (gone.time_slot, gone.status) == ("10:00-11:00", "CANCELLED")
    assert taken.status == "PENDING"


def test_cancel_and_move_into_taken_slot(db, catalog):
    service = BookingService(db)
    service.create_appointment(booking_request(catalog["haircut"]))
    other = service.create_appointment(booking_request(catalog["facial"], time_slot="11:00-12:00"))

    service.update_appointment(other.id, AppointmentUpdate(status="CANCELLED", time_slot="10:00-11:00"))

    assert (other.time_slot, other.status) == ("10:00-11:00", "CANCELLED")


def test_same_slot_is_not_a_move(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))

    service.update_appointment(apt.id, AppointmentUpdate(date="2030-03-10", time_slot="10:00-11:00"))
    assert service.outbox == []


def test_illegal_status_rejects_whole_patch(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))
    apt_id = apt.id

    with pytest.raises(InvalidTransitionError):
        service.update_appointment(apt_id, AppointmentUpdate(status="COMPLETED", time_slot="17:00-18:00"))

    stored = service.get_appointment(apt_id)
    assert (stored.status, stored.time_slot) == ("PENDING", "10:00-11:00")


def test_confirm_then_complete(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))

    service.update_appointment(apt.id, AppointmentUpdate(status="CONFIRMED"))
    confirmed_mail = db.get(Notification, service.outbox[0])
    assert "CONFIRMED" in confirmed_mail.subject

    service.update_appointment(apt.id, AppointmentUpdate(status="COMPLETED"))
    assert apt.status == "COMPLETED"
    assert service.outbox == []


def test_cancelled_is_terminal(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))
    service.update_appointment(apt.id, AppointmentUpdate(status="CANCELLED"))

    with pytest.raises(InvalidTransitionError):
        service.update_appointment(apt.id, AppointmentUpdate(status="CONFIRMED"))


# ==================== Payment ====================

def test_create_with_verified_payment(db, catalog):
    apt = BookingService(db).create_appointment(
        booking_request(catalog["facial"], payment=_proof().model_dump())
    )

    assert apt.status == "PENDING"
    assert apt.payment_info == {
        "transaction_id": "pay_1",
        "amount": 80.0,
        "currency": "INR",
        "status": "PAID",
        "method": "ONLINE",
    }


def test_create_with_forged_payment(db, catalog):
    proof = _proof(signature="f" * 64).model_dump()

    with pytest.raises(SignatureMismatchError):
        BookingService(db).create_appointment(booking_request(catalog["facial"], payment=proof))

    assert _count(db, Appointment) == 0
    assert _count(db, Notification) == 0


def test_confirm_online_payment(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))

    service.confirm_online_payment(apt.id, _proof())

    assert apt.status == "CONFIRMED"
    assert apt.payment_status == "PAID"
    assert apt.payment_method == "ONLINE"
    assert apt.payment_transaction_id == "pay_1"
    assert float(apt.payment_amount) == 50.0
    assert len(service.outbox) == 1

    service.confirm_online_payment(apt.id, _proof())
    assert service.outbox == []
    assert apt.status == "CONFIRMED"


def test_confirm_payment_bad_signature_changes_nothing(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))
    apt_id = apt.id

    with pytest.raises(SignatureMismatchError):
        service.confirm_online_payment(apt_id, _proof(signature="0" * 64))

    stored = service.get_appointment(apt_id)
    assert (stored.status, stored.payment_status) == ("PENDING", "PENDING")


def test_payment_for_cancelled_appointment(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))
    service.update_appointment(apt.id, AppointmentUpdate(status="CANCELLED"))

    with pytest.raises(ValidationError):
        service.confirm_online_payment(apt.id, _proof())
    assert apt.payment_status == "PENDING"


def test_second_payment_for_paid_appointment(db, catalog):
    service = BookingService(db)
    apt = service.create_appointment(booking_request(catalog["haircut"]))
    apt_id = apt.id
    service.confirm_online_payment(apt_id, _proof())

    with pytest.raises(ValidationError) as exc:
        service.confirm_online_payment(apt_id, _proof("order_2", "pay_2"))

    assert exc.value.message == "Appointment is already paid"
    assert service.outbox == []
    assert service.get_appointment(apt_id).payment_transaction_id == "pay_1"
