"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ExpenseCategory(str, Enum):
    """
    Категории расходов, известные клиенту Mini App.
    API принимает и хранит любую строку; OTHER подставляется, если категория не задана.
    """
    FOOD = "food"
    TRANSPORT = "transport"
    BILLS = "bills"
    OTHER = "other"


class AuthErrorReason(str, Enum):
    """Причины отказа в аутентификации по initData."""
    MISSING_HEADER = "missing_header"
    SERVER_MISCONFIGURED = "server_misconfigured"
    INVALID_PAYLOAD = "invalid_payload"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    INVALID_USER_DATA = "invalid_user_data"
    NO_USER = "no_user"


# Сообщения об ошибках аутентификации (совпадают с ответами клиенту)
AUTH_ERROR_MESSAGES: dict[AuthErrorReason, str] = {
    AuthErrorReason.MISSING_HEADER: "Missing authorization header",
    AuthErrorReason.SERVER_MISCONFIGURED: "Server misconfigured",
    AuthErrorReason.INVALID_PAYLOAD: "Invalid init data",
    AuthErrorReason.INVALID_SIGNATURE: "Invalid signature",
    AuthErrorReason.EXPIRED: "Init data expired",
    AuthErrorReason.INVALID_USER_DATA: "Invalid user data",
    AuthErrorReason.NO_USER: "No user in init data",
}
