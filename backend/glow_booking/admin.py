"""
Админ-панель салона
Доступ: http://localhost:8000/admin
Логин: admin / Пароль: из .env (ADMIN_PASSWORD)

Записи и outbox здесь только для просмотра: статусы меняются через API,
чтобы работали проверка слота и машина состояний.
"""
import secrets

from sqladmin import Admin, ModelView
from sqladmin.authentication import AuthenticationBackend
from starlette.requests import Request

from .config import get_settings
from .models.appointment import Appointment
from .models.notification import Notification
from .models.service import Service
from .models.staff import Staff

settings = get_settings()

ADMIN_USERNAME = "admin"


class AdminAuth(AuthenticationBackend):
    """Вход по паролю, флаг в сессии"""

    async def login(self, request: Request) -> bool:
        form = await request.form()
        username = str(form.get("username") or "")
        password = str(form.get("password") or "")

        if username == ADMIN_USERNAME and secrets.compare_digest(password, settings.ADMIN_PASSWORD):
            request.session.update({"authenticated": True})
            return True
        return False

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        return request.session.get("authenticated", False)


# ==================== МОДЕЛИ ДЛЯ АДМИНКИ ====================

class AppointmentAdmin(ModelView, model=Appointment):
    """Записи клиентов"""
    name = "Запись"
    name_plural = "Записи"
    icon = "fa-solid fa-calendar-check"

    can_create = False
    can_edit = False
    can_delete = False

    column_list = [
        Appointment.id,
        Appointment.date,
        Appointment.time_slot,
        Appointment.status,
        Appointment.customer_name,
        Appointment.service_name,
        Appointment.payment_status,
        Appointment.created_at
    ]
    column_searchable_list = [Appointment.customer_name, Appointment.customer_email, Appointment.status]
    column_sortable_list = [Appointment.date, Appointment.created_at, Appointment.status]
    column_default_sort = [(Appointment.date, True)]

    column_labels = {
        "id": "ID",
        "date": "Дата",
        "time_slot": "Время",
        "status": "Статус",
        "customer_name": "Клиент",
        "customer_email": "Email",
        "customer_phone": "Телефон",
        "service_name": "Услуга",
        "service_price": "Цена",
        "payment_status": "Оплата",
        "payment_method": "Способ оплаты",
        "notes": "Заметки",
        "created_at": "Создано"
    }


class ServiceAdmin(ModelView, model=Service):
    """Услуги"""
    name = "Услуга"
    name_plural = "Услуги"
    icon = "fa-solid fa-spa"

    column_list = [
        Service.id,
        Service.name,
        Service.category,
        Service.price,
        Service.duration_minutes,
        Service.is_active
    ]
    column_searchable_list = [Service.name, Service.category]
    column_sortable_list = [Service.name, Service.price, Service.category]

    column_labels = {
        "id": "ID",
        "name": "Название",
        "category": "Категория",
        "description": "Описание",
        "price": "Цена (₹)",
        "duration_minutes": "Длительность (мин)",
        "is_active": "Активна"
    }


class StaffAdmin(ModelView, model=Staff):
    """Мастера"""
    name = "Мастер"
    name_plural = "Мастера"
    icon = "fa-solid fa-user-tie"

    column_list = [Staff.id, Staff.name, Staff.role, Staff.specialization, Staff.is_active]
    column_searchable_list = [Staff.name, Staff.role]

    column_labels = {
        "id": "ID",
        "name": "Имя",
        "role": "Должность",
        "specialization": "Специализация",
        "is_active": "Работает"
    }


class NotificationAdmin(ModelView, model=Notification):
    """Outbox уведомлений"""
    name = "Уведомление"
    name_plural = "Уведомления"
    icon = "fa-solid fa-envelope"

    can_create = False
    can_edit = False

    column_list = [
        Notification.id,
        Notification.appointment_id,
        Notification.channel,
        Notification.recipient,
        Notification.subject,
        Notification.status,
        Notification.attempts,
        Notification.created_at
    ]
    column_sortable_list = [Notification.created_at, Notification.status]
    column_default_sort = [(Notification.id, True)]

    column_labels = {
        "appointment_id": "Запись",
        "channel": "Канал",
        "recipient": "Получатель",
        "subject": "Тема",
        "status": "Статус",
        "attempts": "Попыток",
        "last_error": "Ошибка",
        "created_at": "Создано",
        "sent_at": "Отправлено"
    }


def setup_admin(app, engine):
    """Настройка админ-панели"""
    authentication_backend = AdminAuth(secret_key=settings.SECRET_KEY)

    admin = Admin(
        app,
        engine,
        authentication_backend=authentication_backend,
        title=f"{settings.SALON_NAME} Admin",
        base_url="/admin"
    )

    admin.add_view(AppointmentAdmin)
    admin.add_view(ServiceAdmin)
    admin.add_view(StaffAdmin)
    admin.add_view(NotificationAdmin)

    return admin
