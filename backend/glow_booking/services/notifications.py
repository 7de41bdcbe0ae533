"""
Сервис для отправки уведомлений
Outbox: строки Notification пишутся вместе с записью, отправляются после commit.
Ошибка доставки никогда не откатывает запись - она фиксируется в строке outbox.
"""
import asyncio
import json
import logging
import smtplib
import ssl
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, List, NamedTuple, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import SessionLocal
from ..models.notification import Notification
from .email_templates import EmailContent

settings = get_settings()
logger = logging.getLogger(__name__)

CHANNEL_EMAIL = "email"
CHANNEL_TELEGRAM = "telegram"


class NotificationService:
    """Доставка писем (SMTP) и сообщений салону (Telegram)"""

    def __init__(self):
        self.timeout = settings.EXTERNAL_TIMEOUT_SECONDS
        self.salon_bot_token = settings.TELEGRAM_SALON_BOT_TOKEN
        self.salon_chat_id = settings.TELEGRAM_SALON_CHAT_ID

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.salon_bot_token and self.salon_chat_id)

    def _sender_address(self) -> str:
        email = settings.SMTP_FROM_EMAIL or settings.SMTP_USER or "no-reply@glowandgrace.com"
        return f"{settings.SMTP_FROM_NAME} <{email}>"

    def _send_smtp(self, to: str, subject: str, text_body: str, html_body: Optional[str]) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._sender_address()
        msg["To"] = to
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body or text_body, "html", "utf-8"))

        if settings.SMTP_USE_SSL:
            context = ssl.create_default_context()
            server = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, context=context, timeout=self.timeout)
        else:
            server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=self.timeout)
            server.starttls(context=ssl.create_default_context())

        try:
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(msg["From"], [to], msg.as_string())
        finally:
            server.quit()

    async def send_email(
        self,
        to: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None
    ) -> bool:
        """
        Отправить письмо

        Args:
            to: Адрес получателя
            subject: Тема
            text_body: Текстовая версия
            html_body: HTML-версия (по умолчанию - текстовая)

        Returns:
            bool: True если отправлено успешно
        """
        if not settings.SMTP_HOST:
            # SMTP не настроен - письмо только в лог
            logger.info(f"MOCK EMAIL (SMTP не настроен) -> {to}: {subject}")
            return True

        try:
            await asyncio.to_thread(self._send_smtp, to, subject, text_body, html_body)
            logger.info(f"Письмо отправлено: {to} ({subject})")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Ошибка отправки письма {to}: {e}")
            return False

    async def send_telegram_message(
        self,
        chat_id: str,
        text: str,
        reply_markup: Optional[dict] = None,
        parse_mode: str = "HTML"
    ) -> bool:
        """
        Отправить сообщение в Telegram

        Args:
            chat_id: ID чата получателя
            text: Текст сообщения
            reply_markup: Inline-клавиатура
            parse_mode: Режим парсинга (Markdown или HTML)

        Returns:
            bool: True если отправлено успешно
        """
        if not chat_id or not self.salon_bot_token:
            logger.warning("Telegram не настроен, пропускаем отправку")
            return False

        data = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode
        }
        if reply_markup:
            data["reply_markup"] = reply_markup

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"https://api.telegram.org/bot{self.salon_bot_token}/sendMessage",
                    json=data
                )

            if response.status_code == 200:
                logger.info(f"Уведомление отправлено в чат {chat_id}")
                return True
            logger.error(f"Ошибка отправки в Telegram: {response.status_code} {response.text[:200]}")
            return False

        except httpx.HTTPError as e:
            logger.error(f"Исключение при отправке в Telegram: {e}")
            return False

    async def _bot_call(self, method: str, data: dict) -> bool:
        if not self.salon_bot_token:
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"https://api.telegram.org/bot{self.salon_bot_token}/{method}",
                    json=data
                )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Telegram {method} не выполнен: {e}")
            return False

    async def answer_callback_query(self, callback_id: str, text: str) -> bool:
        """Ответ на callback query (убирает часики)"""
        return await self._bot_call("answerCallbackQuery", {"callback_query_id": callback_id, "text": text})

    async def edit_message_reply_markup(self, chat_id: int, message_id: int, reply_markup: Optional[dict] = None) -> bool:
        """Изменить кнопки сообщения"""
        data = {"chat_id": chat_id, "message_id": message_id}
        if reply_markup:
            data["reply_markup"] = reply_markup
        return await self._bot_call("editMessageReplyMarkup", data)


# Глобальный экземпляр сервиса
notification_service = NotificationService()


# ==================== Outbox ====================

def enqueue_email(
    db: Session,
    to: str,
    content: EmailContent,
    appointment_id: Optional[int] = None
) -> Notification:
    """Поставить письмо в очередь (в текущей транзакции)"""
    notification = Notification(
        appointment_id=appointment_id,
        channel=CHANNEL_EMAIL,
        recipient=to,
        subject=content.subject,
        text_body=content.text,
        html_body=content.html,
        status="pending"
    )
    db.add(notification)
    return notification


def enqueue_salon_telegram(
    db: Session,
    text: str,
    appointment_id: Optional[int] = None,
    reply_markup: Optional[dict] = None
) -> Optional[Notification]:
    """Поставить сообщение салону в очередь. Без настроенного чата - ничего"""
    if not notification_service.telegram_enabled:
        return None

    notification = Notification(
        appointment_id=appointment_id,
        channel=CHANNEL_TELEGRAM,
        recipient=str(notification_service.salon_chat_id),
        text_body=text,
        reply_markup=json.dumps(reply_markup) if reply_markup else None,
        status="pending"
    )
    db.add(notification)
    return notification


class _Outgoing(NamedTuple):
    id: int
    channel: str
    recipient: str
    subject: Optional[str]
    text_body: str
    html_body: Optional[str]
    reply_markup: Optional[str]


async def _deliver_one(message: _Outgoing) -> bool:
    if message.channel == CHANNEL_EMAIL:
        return await notification_service.send_email(
            message.recipient,
            message.subject or "",
            message.text_body,
            message.html_body
        )
    if message.channel == CHANNEL_TELEGRAM:
        return await notification_service.send_telegram_message(
            message.recipient,
            message.text_body,
            json.loads(message.reply_markup) if message.reply_markup else None
        )
    logger.error(f"Неизвестный канал уведомления: {message.channel}")
    return False


async def deliver_notifications(notification_ids: Iterable[int]) -> int:
    """
    Отправить уведомления из outbox по id.
    Вызывается фоновой задачей после commit. Ошибки логируются и не пробрасываются.

    Returns:
        int: количество отправленных
    """
    ids = list(notification_ids)
    if not ids:
        return 0

    sent = 0
    db = SessionLocal()
    try:
        messages = [
            _Outgoing(n.id, n.channel, n.recipient, n.subject, n.text_body, n.html_body, n.reply_markup)
            for n in db.query(Notification).filter(
                Notification.id.in_(ids),
                Notification.status != "sent"
            ).order_by(Notification.id).all()
        ]
        # Во время сетевых вызовов транзакция не держится
        db.commit()

        for message in messages:
            error = None
            try:
                ok = await _deliver_one(message)
            except Exception as e:
                logger.exception(f"Ошибка доставки уведомления #{message.id}")
                ok, error = False, str(e)

            notification = db.get(Notification, message.id)
            notification.attempts = (notification.attempts or 0) + 1
            if ok:
                notification.status = "sent"
                notification.sent_at = datetime.now()
                notification.last_error = None
                sent += 1
            else:
                notification.status = "failed"
                notification.last_error = error or "delivery failed"
            db.commit()

    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Ошибка БД при доставке уведомлений {ids}: {e}")
    finally:
        db.close()

    return sent


async def retry_failed_notifications(max_attempts: Optional[int] = None) -> int:
    """Повторить отправку неудачных уведомлений (для cron / админки)"""
    if max_attempts is None:
        max_attempts = settings.NOTIFICATION_MAX_ATTEMPTS

    db = SessionLocal()
    try:
        ids: List[int] = [
            row.id for row in db.query(Notification.id).filter(
                Notification.status == "failed",
                Notification.attempts < max_attempts
            ).all()
        ]
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Ошибка БД при выборке неудачных уведомлений: {e}")
        return 0
    finally:
        db.close()

    return await deliver_notifications(ids)
