"""
API роутер онлайн-оплаты (Razorpay)
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..exceptions import PaymentGatewayError, SignatureMismatchError
from ..schemas import (
    AppointmentResponse,
    CreateOrderRequest,
    PaymentOrderResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from ..services.booking import BookingService
from ..services.notifications import deliver_notifications
from ..services.payments import RazorpayGateway, get_payment_gateway, verify_payment

router = APIRouter(prefix="/api/payments", tags=["payments"])
logger = logging.getLogger(__name__)


@router.post("/create-order", response_model=PaymentOrderResponse)
async def create_order(
    data: CreateOrderRequest,
    gateway: RazorpayGateway = Depends(get_payment_gateway)
):
    """Создать заказ в Razorpay, сумма в основных единицах валюты"""
    order = await gateway.create_order(data.amount, currency=data.currency, receipt=data.receipt)
    return PaymentOrderResponse(
        id=order["id"],
        amount=order["amount"],
        currency=order["currency"],
        receipt=order.get("receipt"),
        status=order.get("status")
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
def verify(
    data: VerifyPaymentRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """
    Проверить подпись платежа.
    С appointment_id оплата сразу применяется к записи.
    """
    if data.appointment_id is not None:
        service = BookingService(db)
        appointment = service.confirm_online_payment(data.appointment_id, data)
        if service.outbox:
            background_tasks.add_task(deliver_notifications, list(service.outbox))
        response = AppointmentResponse.model_validate(appointment)
        db.commit()
        return VerifyPaymentResponse(
            success=True,
            message="Payment verified successfully",
            payment_id=data.razorpay_payment_id,
            appointment=response
        )

    secret = get_settings().RAZORPAY_KEY_SECRET
    if not secret:
        raise PaymentGatewayError("Payment gateway is not configured")

    if not verify_payment(data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature, secret):
        logger.warning(f"Неверная подпись платежа: order={data.razorpay_order_id}")
        raise SignatureMismatchError()

    logger.info(f"Платёж {data.razorpay_payment_id} подтверждён")
    return VerifyPaymentResponse(
        success=True,
        message="Payment verified successfully",
        payment_id=data.razorpay_payment_id
    )
