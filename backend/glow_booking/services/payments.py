"""
Онлайн-оплата через Razorpay

- verify_payment: проверка подписи платежа (HMAC-SHA256 над "order_id|payment_id")
- RazorpayGateway: создание заказа во внешнем шлюзе
"""
import hashlib
import hmac
import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

import httpx

from ..config import get_settings
from ..exceptions import PaymentGatewayError, TransientInfraError, ValidationError

logger = logging.getLogger(__name__)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """HMAC-SHA256 от payload, hex"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def constant_time_compare(a: str, b: str) -> bool:
    """Сравнение строк за постоянное время"""
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def create_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Подпись, которую шлюз присылает вместе с платежом"""
    return compute_hmac_sha256(secret, f"{order_id}|{payment_id}".encode("utf-8"))


def verify_payment(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """
    Проверить подпись платежа.
    Чистая функция: ничего не сохраняет, False - платёж не принимается.
    """
    if not order_id or not payment_id or not signature or not secret:
        return False

    expected = create_payment_signature(order_id, payment_id, secret)
    return constant_time_compare(expected, signature)


def to_minor_units(amount: Union[Decimal, float, int, str]) -> int:
    """Сумма в минимальных единицах валюты (пайсы, копейки)"""
    value = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(value)


class RazorpayGateway:
    """Клиент Razorpay Orders API"""

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.api_url = (api_url or settings.RAZORPAY_API_URL).rstrip("/")
        self.timeout = timeout or settings.EXTERNAL_TIMEOUT_SECONDS
        self.default_currency = settings.DEFAULT_CURRENCY
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    async def create_order(
        self,
        amount: Union[Decimal, float, int],
        currency: Optional[str] = None,
        receipt: Optional[str] = None
    ) -> dict:
        """
        Создать заказ в шлюзе

        Args:
            amount: Сумма в основных единицах (рупии)
            currency: Валюта, по умолчанию из настроек
            receipt: Номер квитанции, по умолчанию receipt_<ms>

        Returns:
            dict: ответ шлюза (id, amount, currency, receipt, status)
        """
        if amount is None or Decimal(str(amount)) <= 0:
            raise ValidationError("Amount is required")
        if not self.configured:
            raise PaymentGatewayError("Payment gateway is not configured")

        payload = {
            "amount": to_minor_units(amount),
            "currency": currency or self.default_currency,
            "receipt": receipt or f"receipt_{int(time.time() * 1000)}",
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                transport=self._transport
            ) as client:
                response = await client.post("/orders", json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"Таймаут Razorpay при создании заказа {payload['receipt']}")
            raise TransientInfraError("Payment gateway timed out") from e
        except httpx.TransportError as e:
            logger.error(f"Razorpay недоступен: {e}")
            raise TransientInfraError("Payment gateway is unreachable") from e

        if response.status_code >= 500:
            logger.error(f"Razorpay {response.status_code}: {response.text[:200]}")
            raise TransientInfraError("Payment gateway is temporarily unavailable")
        if response.status_code >= 400:
            logger.error(f"Razorpay отклонил заказ {response.status_code}: {response.text[:200]}")
            raise PaymentGatewayError("Something went wrong with payment gateway")

        order = response.json()
        logger.info(f"Заказ Razorpay создан: {order.get('id')} ({payload['amount']} {payload['currency']})")
        return order


def get_payment_gateway() -> RazorpayGateway:
    """Dependency для роутов"""
    return RazorpayGateway()
