"""
Скрипт для снятия дублей активных записей на один слот
Нужен перед созданием индекса uq_appointments_active_slot на старой базе:
в каждом слоте остаётся самая ранняя запись, остальные переводятся в CANCELLED.
Запуск: python cleanup_duplicates.py
"""
from sqlalchemy import func

from glow_booking.database import SessionLocal
from glow_booking.models.appointment import Appointment, AppointmentStatus

ACTIVE = [AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value, AppointmentStatus.COMPLETED.value]


def cleanup_duplicates():
    db = SessionLocal()

    try:
        # Найти занятые несколько раз слоты
        duplicates = db.query(
            Appointment.date,
            Appointment.time_slot,
            func.count(Appointment.id).label("count")
        ).filter(
            Appointment.status.in_(ACTIVE)
        ).group_by(
            Appointment.date,
            Appointment.time_slot
        ).having(func.count(Appointment.id) > 1).all()

        if not duplicates:
            print("Дублей не найдено!")
            db.commit()
            return

        print(f"Найдено {len(duplicates)} слотов с дублями:")

        cancelled_count = 0
        for dup in duplicates:
            appointments = db.query(Appointment).filter(
                Appointment.date == dup.date,
                Appointment.time_slot == dup.time_slot,
                Appointment.status.in_(ACTIVE)
            ).order_by(Appointment.id).all()

            print(f"\n  {dup.date} {dup.time_slot}:")

            for i, apt in enumerate(appointments):
                if i == 0:
                    print(f"    ID {apt.id} - ОСТАВИТЬ ({apt.customer_name}, {apt.status})")
                else:
                    print(f"    ID {apt.id} - ОТМЕНИТЬ ({apt.customer_name}, {apt.status})")
                    apt.status = AppointmentStatus.CANCELLED.value
                    cancelled_count += 1

        confirm = input(f"\nОтменить {cancelled_count} дублей? (y/n): ")
        if confirm.lower() == "y":
            db.commit()
            print(f"Отменено {cancelled_count} дублей")
        else:
            db.rollback()
            print("Отменено")

    finally:
        db.close()


if __name__ == "__main__":
    cleanup_duplicates()
