"""
Общие фикстуры тестов.
База - временный SQLite файл, адрес задаётся до импорта glow_booking.
"""
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="glow_booking_tests_")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_secret"
os.environ["ADMIN_EMAIL"] = "owner@glowgrace.test"
os.environ["SMTP_HOST"] = ""
os.environ["TELEGRAM_SALON_BOT_TOKEN"] = ""
os.environ["TELEGRAM_SALON_CHAT_ID"] = ""
os.environ["DB_CONNECT_TIMEOUT"] = "15"

import pytest  # noqa: E402

from glow_booking.database import Base, SessionLocal, engine, init_db  # noqa: E402
from glow_booking.models.customer import Customer  # noqa: E402
from glow_booking.models.service import Service  # noqa: E402
from glow_booking.models.staff import Staff  # noqa: E402
from glow_booking.schemas import AppointmentCreate  # noqa: E402
from glow_booking.services import notifications  # noqa: E402

SECRET = "test_secret"


@pytest.fixture(autouse=True)
def clean_db():
    """Чистые таблицы для каждого теста"""
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield
    engine.dispose()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


class SentLog:
    """Записывает всё, что ушло бы наружу"""

    def __init__(self):
        self.emails = []
        self.telegram = []
        self.fail_for = set()

    async def send_email(self, to, subject, text_body, html_body=None):
        if to in self.fail_for:
            raise ConnectionError(f"SMTP refused {to}")
        self.emails.append({"to": to, "subject": subject, "text": text_body, "html": html_body})
        return True

    async def send_telegram_message(self, chat_id, text, reply_markup=None, parse_mode="HTML"):
        self.telegram.append({"chat_id": chat_id, "text": text, "reply_markup": reply_markup})
        return True

    async def answer_callback_query(self, callback_id, text):
        self.telegram.append({"callback_id": callback_id, "text": text})
        return True

    async def edit_message_reply_markup(self, chat_id, message_id, reply_markup=None):
        return True


@pytest.fixture(autouse=True)
def sent(monkeypatch):
    log = SentLog()
    service = notifications.notification_service
    monkeypatch.setattr(service, "send_email", log.send_email)
    monkeypatch.setattr(service, "send_telegram_message", log.send_telegram_message)
    monkeypatch.setattr(service, "answer_callback_query", log.answer_callback_query)
    monkeypatch.setattr(service, "edit_message_reply_markup", log.edit_message_reply_markup)
    return log


@pytest.fixture
def telegram_on(monkeypatch):
    service = notifications.notification_service
    monkeypatch.setattr(service, "salon_bot_token", "123:test")
    monkeypatch.setattr(service, "salon_chat_id", "-100500")


@pytest.fixture
def catalog():
    """Услуги, мастер и клиент. Возвращает их id"""
    session = SessionLocal()
    try:
        haircut = Service(name="Basic Haircut", category="Hair", duration_minutes=60, price=50)
        manicure = Service(name="Gel Manicure", category="Nails", duration_minutes=45, price=35)
        facial = Service(name="Full Facial", category="Face", duration_minutes=90, price=80)
        retired = Service(name="Old Perm", category="Hair", duration_minutes=120, price=90, is_active=False)
        sarah = Staff(name="Sarah Jones", role="Senior Stylist", specialization="Hair")
        gone = Staff(name="Former Stylist", role="Stylist", is_active=False)
        customer = Customer(name="Priya Sharma", email="priya@example.com", phone="9876543210")
        session.add_all([haircut, manicure, facial, retired, sarah, gone, customer])
        session.commit()
        ids = {
            "haircut": haircut.id,
            "manicure": manicure.id,
            "facial": facial.id,
            "retired": retired.id,
            "sarah": sarah.id,
            "gone": gone.id,
            "customer": customer.id,
        }
        session.commit()
        return ids
    finally:
        session.close()


def booking_request(service_id, date="2030-03-10", time_slot="10:00-11:00", **extra):
    data = {
        "customer_name": "Priya Sharma",
        "customer_phone": "9876543210",
        "customer_email": "priya@example.com",
        "service_id": service_id,
        "date": date,
        "time_slot": time_slot,
    }
    data.update(extra)
    return AppointmentCreate(**data)
