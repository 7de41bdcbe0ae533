"""
Ошибки ядра записи.
Каждый класс знает свой HTTP-код, обработчик в main.py отдаёт {"detail": message}.
"""


class BookingError(Exception):
    """Базовая ошибка ядра записи"""

    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Некорректные или неполные входные данные"""

    status_code = 400


class InvalidTransitionError(ValidationError):
    """Недопустимая смена статуса записи"""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change appointment status from {current} to {target}")
        self.current = current
        self.target = target


class NotFoundError(BookingError):
    """Неизвестная услуга, мастер, клиент или запись"""

    status_code = 404


class ConflictError(BookingError):
    """Слот уже занят активной записью"""

    status_code = 409


class SignatureMismatchError(BookingError):
    """Подпись платежа не совпала"""

    status_code = 400

    def __init__(self, message: str = "Invalid payment signature"):
        super().__init__(message)


class PaymentGatewayError(BookingError):
    """Платёжный шлюз не настроен или отклонил запрос"""

    status_code = 502


class TransientInfraError(BookingError):
    """Хранилище, шлюз или почта недоступны / таймаут. Можно повторить"""

    status_code = 503
    retryable = True
