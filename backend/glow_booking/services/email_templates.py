"""
Шаблоны писем и сообщений салона
Все HTML-письма собираются через get_base_template
"""
from datetime import datetime
from html import escape
from typing import NamedTuple

from ..config import get_settings
from ..models.appointment import Appointment, AppointmentStatus

settings = get_settings()

THEME = {
    "gold": "#D4AF37",
    "dark": "#333333",
    "text": "#555555",
    "muted": "#999999",
    "background": "#f9f9f9",
}


class EmailContent(NamedTuple):
    subject: str
    text: str
    html: str


def get_base_template(title: str, body_html: str) -> str:
    """Общий каркас письма с шапкой и подвалом салона"""
    salon = escape(settings.SALON_NAME)
    return f"""<!DOCTYPE html>
<html>
<body style="font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif; line-height: 1.6; color: {THEME['dark']}; background-color: {THEME['background']}; padding: 20px;">
  <div style="max-width: 600px; margin: 0 auto; background: #ffffff; padding: 30px; border-radius: 8px;">
    <div style="text-align: center; border-bottom: 2px solid {THEME['gold']}; padding-bottom: 20px; margin-bottom: 20px;">
      <h1 style="color: {THEME['dark']}; font-size: 24px; text-transform: uppercase; letter-spacing: 2px; margin: 0;">{salon}</h1>
    </div>
    <div style="font-size: 16px; color: {THEME['text']};">
      <h2>{escape(title)}</h2>
      <div style="margin-top: 20px;">{body_html}</div>
    </div>
    <div style="margin-top: 30px; text-align: center; font-size: 12px; color: {THEME['muted']}; border-top: 1px solid #eee; padding-top: 20px;">
      <p>&copy; {datetime.now().year} {salon} Beauty Parlour. All rights reserved.</p>
    </div>
  </div>
</body>
</html>"""


def _details_html(appointment: Appointment) -> str:
    return (
        f"<p><strong>Service:</strong> {escape(appointment.service_name)}</p>"
        f"<p><strong>Date:</strong> {escape(appointment.date)}</p>"
        f"<p><strong>Time:</strong> {escape(appointment.time_slot)}</p>"
        f"<p><strong>Price:</strong> {appointment.service_price} {escape(appointment.payment_currency or '')}</p>"
    )


def booking_created_customer(appointment: Appointment) -> EmailContent:
    """Письмо клиенту: запись создана и ждёт подтверждения"""
    name = appointment.customer_name
    subject = f"Provisional Booking - {settings.SALON_NAME}"
    text = (
        f"Dear {name},\n\n"
        f"Your appointment for {appointment.service_name} on {appointment.date} at {appointment.time_slot} "
        f"is successfully booked and PENDING confirmation.\n\n"
        f"We will notify you once it is confirmed.\n\n"
        f"Thank you,\n{settings.SALON_NAME}"
    )
    body = (
        f"<p>Dear {escape(name)},</p>"
        f"<p>Your appointment is successfully booked and <b>PENDING</b> confirmation.</p>"
        f"{_details_html(appointment)}"
        f"<p>We will notify you once it is confirmed.</p>"
    )
    return EmailContent(subject, text, get_base_template("Booking Received", body))


def booking_created_admin(appointment: Appointment) -> EmailContent:
    """Письмо администратору о новой записи"""
    subject = "New Appointment Booking"
    text = (
        f"New appointment #{appointment.id} from {appointment.customer_name} "
        f"({appointment.customer_email}, {appointment.customer_phone}) for {appointment.service_name} "
        f"on {appointment.date} at {appointment.time_slot}. Payment: {appointment.payment_method}/{appointment.payment_status}."
    )
    body = (
        f"<p>New appointment: <b>{escape(appointment.customer_name)}</b> "
        f"({escape(appointment.customer_email)}, {escape(appointment.customer_phone)})</p>"
        f"{_details_html(appointment)}"
        f"<p><strong>Notes:</strong> {escape(appointment.notes or '-')}</p>"
    )
    return EmailContent(subject, text, get_base_template(f"New Booking #{appointment.id}", body))


def status_changed(appointment: Appointment, status: AppointmentStatus) -> EmailContent:
    """Письмо клиенту о подтверждении или отмене записи"""
    subject = f"Appointment {status.value} - {settings.SALON_NAME}"
    text = f"Dear {appointment.customer_name},\n\nYour appointment (ID: {appointment.id}) has been {status.value}.\n\n"
    if status == AppointmentStatus.CONFIRMED:
        text += "Please arrive 5 minutes early. We look forward to seeing you!\n"
    else:
        text += "We are sorry for the inconvenience. Please contact us to reschedule.\n"
    text += f"\nThank you,\n{settings.SALON_NAME}"

    body = f"<p>{escape(text).replace(chr(10), '<br>')}</p>{_details_html(appointment)}"
    return EmailContent(subject, text, get_base_template(f"Appointment {status.value.title()}", body))


def appointment_reminder(appointment: Appointment) -> EmailContent:
    """Напоминание клиенту за день до визита"""
    subject = f"Reminder: Your Appointment Tomorrow - {settings.SALON_NAME}"
    text = (
        f"Dear {appointment.customer_name},\n\n"
        f"Reminder: your {appointment.service_name} appointment is scheduled for "
        f"{appointment.date} at {appointment.time_slot}. See you soon!\n\n"
        f"{settings.SALON_NAME}"
    )
    body = f"<p>Dear {escape(appointment.customer_name)},</p><p>See you tomorrow!</p>{_details_html(appointment)}"
    return EmailContent(subject, text, get_base_template("Appointment Reminder", body))


# ==================== Telegram ====================

def new_booking_telegram(appointment: Appointment) -> str:
    """Сообщение салону о новой записи (HTML для Telegram)"""
    now = datetime.now().strftime("%d.%m.%Y %H:%M")
    return f"""📅 <b>NEW BOOKING</b> 📅
━━━━━━━━━━━━━━━━━━

👤 <b>Customer:</b> {escape(appointment.customer_name)}
📞 <b>Phone:</b> {escape(appointment.customer_phone)}
📧 <b>Email:</b> {escape(appointment.customer_email)}

💆 <b>Service:</b> {escape(appointment.service_name)}
💰 <b>Price:</b> {appointment.service_price} {escape(appointment.payment_currency or '')}
💳 <b>Payment:</b> {appointment.payment_method} / {appointment.payment_status}

📆 <b>Date:</b> {escape(appointment.date)}
🕐 <b>Time:</b> {escape(appointment.time_slot)}
💬 <b>Notes:</b> {escape(appointment.notes or "—")}

🕐 {now} • ID #{appointment.id}"""


def confirm_reject_keyboard(appointment_id: int) -> dict:
    """Inline-кнопки подтверждения для салона"""
    return {
        "inline_keyboard": [
            [
                {"text": "✅ Confirm", "callback_data": f"apt_confirm_{appointment_id}"},
                {"text": "❌ Reject", "callback_data": f"apt_reject_{appointment_id}"}
            ]
        ]
    }


def rescheduled_telegram(appointment: Appointment, old_date: str, old_slot: str) -> str:
    return (
        f"🔄 <b>BOOKING RESCHEDULED</b> #{appointment.id}\n\n"
        f"👤 {escape(appointment.customer_name)}\n"
        f"💆 {escape(appointment.service_name)}\n\n"
        f"📅 Was: {escape(old_date)} {escape(old_slot)}\n"
        f"📅 Now: {escape(appointment.date)} {escape(appointment.time_slot)}"
    )


def payment_received_telegram(appointment: Appointment) -> str:
    return (
        f"💰 <b>PAYMENT RECEIVED</b> #{appointment.id}\n\n"
        f"👤 {escape(appointment.customer_name)}\n"
        f"💆 {escape(appointment.service_name)}\n"
        f"💳 {appointment.payment_amount} {escape(appointment.payment_currency or '')} "
        f"({escape(appointment.payment_transaction_id or '')})"
    )
