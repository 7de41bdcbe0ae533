"""
Скрипт инициализации базы данных
Создаёт таблицы и добавляет каталог услуг и мастеров
Запуск: python init_db.py
"""
from glow_booking.database import SessionLocal, init_db
from glow_booking.models.service import Service
from glow_booking.models.staff import Staff

# Начальные услуги
INITIAL_SERVICES = [
    {
        "name": "Basic Haircut",
        "category": "Hair",
        "description": "Wash, cut and style",
        "duration_minutes": 60,
        "price": 50,
        "is_active": True
    },
    {
        "name": "Gel Manicure",
        "category": "Nails",
        "description": "Long lasting gel polish",
        "duration_minutes": 45,
        "price": 35,
        "is_active": True
    },
    {
        "name": "Full Facial",
        "category": "Face",
        "description": "Deep cleansing and hydration",
        "duration_minutes": 90,
        "price": 80,
        "is_active": True
    },
]

# Мастера
INITIAL_STAFF = [
    {"name": "Sarah Jones", "role": "Senior Stylist", "specialization": "Hair"},
    {"name": "Emily Blunt", "role": "Makeup Artist", "specialization": "Face,Bridal"},
    {"name": "Jessica Lee", "role": "Nail Technician", "specialization": "Nails"},
]


def seed(model, rows, label):
    db = SessionLocal()
    try:
        existing = db.query(model).count()
        if existing > 0:
            print(f"{label} уже существуют ({existing} шт.), пропускаем...")
            db.commit()
            return

        for data in rows:
            db.add(model(**data))

        db.commit()
        print(f"Добавлено {len(rows)}: {label}")
    finally:
        db.close()


if __name__ == "__main__":
    print("Создание таблиц...")
    init_db()
    print("Таблицы созданы!")

    seed(Service, INITIAL_SERVICES, "Услуги")
    seed(Staff, INITIAL_STAFF, "Мастера")

    print("\nИнициализация завершена!")
    print("Теперь можно запустить сервер: python -m uvicorn glow_booking.main:app --reload")
