"""
Glow & Grace - API онлайн-записи в салон
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from .admin import setup_admin
from .config import get_settings
from .database import SessionLocal, engine, get_db, init_db
from .exceptions import BookingError
from .models.appointment import AppointmentStatus
from .routes import appointments_router, payments_router
from .schemas import AppointmentUpdate
from .services.booking import BookingService
from .services.notifications import deliver_notifications, notification_service, retry_failed_notifications
from .services.reminders import send_daily_reminders

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Запуск приложения...")
    init_db()
    yield
    logger.info("Остановка приложения")


# FastAPI приложение
app = FastAPI(
    title=f"{settings.SALON_NAME} - Booking API",
    description="API для системы онлайн-записи",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else [settings.SITE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Session Middleware (для админки)
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.__class__.__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Подключение роутеров
app.include_router(appointments_router)
app.include_router(payments_router)

# Админ-панель
setup_admin(app, engine)


@app.get("/health")
async def health_check():
    return {"status": "ok", "environment": settings.ENVIRONMENT}


# ==================== НАПОМИНАНИЯ И OUTBOX ====================

@app.post("/api/admin/send-reminders")
def trigger_reminders(background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    """Поставить напоминания на завтра (для cron)"""
    ids = send_daily_reminders(db)
    if ids:
        background_tasks.add_task(deliver_notifications, ids)
    return {"success": True, "reminders_queued": len(ids)}


@app.post("/api/admin/retry-notifications")
async def trigger_retry():
    """Повторить отправку неудачных уведомлений"""
    sent = await retry_failed_notifications()
    return {"success": True, "sent": sent}


# ==================== TELEGRAM ====================

CALLBACK_ACTIONS = {
    "apt_confirm_": (AppointmentStatus.CONFIRMED, "✅ Запись подтверждена!"),
    "apt_reject_": (AppointmentStatus.CANCELLED, "❌ Запись отклонена"),
}


def _apply_operator_decision(appointment_id: int, status: AppointmentStatus) -> list:
    """Смена статуса кнопкой оператора. Возвращает id уведомлений"""
    db = SessionLocal()
    try:
        service = BookingService(db)
        service.update_appointment(appointment_id, AppointmentUpdate(status=status))
        return list(service.outbox)
    finally:
        db.close()


@app.post("/api/telegram/webhook")
async def telegram_webhook(request: Request, background_tasks: BackgroundTasks):
    """Webhook для обработки inline-кнопок подтверждения / отклонения записи"""
    try:
        data = await request.json()
    except ValueError:
        return {"ok": True}

    callback = data.get("callback_query") if isinstance(data, dict) else None
    if not callback:
        return {"ok": True}

    callback_id = callback.get("id", "")
    callback_data = callback.get("data", "")
    message = callback.get("message") or {}

    for prefix, (status, answer) in CALLBACK_ACTIONS.items():
        if not callback_data.startswith(prefix):
            continue

        try:
            apt_id = int(callback_data[len(prefix):])
        except ValueError:
            logger.warning(f"Некорректный callback: {callback_data}")
            break

        try:
            ids = await asyncio.to_thread(_apply_operator_decision, apt_id, status)
        except BookingError as e:
            logger.warning(f"Callback {callback_data} отклонён: {e.message}")
            await notification_service.answer_callback_query(callback_id, f"⚠️ {e.message}")
            break

        if ids:
            background_tasks.add_task(deliver_notifications, ids)

        await notification_service.answer_callback_query(callback_id, answer)
        if message.get("chat") and message.get("message_id"):
            await notification_service.edit_message_reply_markup(message["chat"]["id"], message["message_id"])
        break

    return {"ok": True}
