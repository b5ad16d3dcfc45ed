"""
Валидация Telegram Mini App initData.
https://core.telegram.org/bots/webapps#validating-data-received-via-the-mini-app
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any
from urllib.parse import parse_qsl

from src.common.constants import AUTH_ERROR_MESSAGES, AuthErrorReason
from src.shared.models.group_dto import Identity


DEFAULT_MAX_AGE_SECONDS = 86400  # 24 часа


class TelegramAuthError(Exception):
    """Ошибка валидации Telegram данных."""

    def __init__(self, reason: AuthErrorReason) -> None:
        self.reason = reason
        self.message = AUTH_ERROR_MESSAGES[reason]
        super().__init__(self.message)


def build_data_check_string(pairs: list[tuple[str, str]]) -> str:
    """
    Каноническая строка для подписи: все пары, кроме hash,
    отсортированные по ключу, в виде key=value через перевод строки.
    """
    data_pairs = [(k, v) for k, v in pairs if k != "hash"]
    data_pairs.sort(key=lambda pair: pair[0])
    return "\n".join(f"{k}={v}" for k, v in data_pairs)


def compute_hash(data_check_string: str, bot_token: str) -> str:
    """Вычисляет hex HMAC-SHA256 строки данных ключом, производным от токена бота."""
    # Секретный ключ: HMAC-SHA256(key="WebAppData", msg=bot_token)
    secret_key = hmac.new(
        b"WebAppData",
        bot_token.encode(),
        hashlib.sha256,
    ).digest()

    return hmac.new(
        secret_key,
        data_check_string.encode(),
        hashlib.sha256,
    ).hexdigest()


def _first(pairs: list[tuple[str, str]], key: str) -> str | None:
    for k, v in pairs:
        if k == key:
            return v
    return None


def _parse_auth_date(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _stringify_id(value: Any) -> str:
    # 42.0 из JSON должен дать "42", как и целое
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _display_name(user: dict[str, Any]) -> str:
    parts = []
    for field in ("first_name", "last_name"):
        value = user.get(field)
        if value:
            text = str(value).strip()
            if text:
                parts.append(text)
    return " ".join(parts) or "Unknown"


def verify_init_data(
    init_data: str | None,
    bot_token: str | None,
    now: float | None = None,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
) -> Identity:
    """
    Валидировать initData от Telegram Mini App.

    Args:
        init_data: URL-encoded строка из заголовка Authorization
        bot_token: Токен бота (секрет сервера)
        now: Текущее время в unix-секундах (по умолчанию time.time())
        max_age_seconds: Максимальный возраст данных

    Returns:
        Identity с user_id и отображаемым именем

    Raises:
        TelegramAuthError: Если данные отсутствуют, невалидны или устарели
    """
    if not init_data:
        raise TelegramAuthError(AuthErrorReason.MISSING_HEADER)

    if not bot_token:
        raise TelegramAuthError(AuthErrorReason.SERVER_MISCONFIGURED)

    pairs = parse_qsl(init_data, keep_blank_values=True)

    received_hash = _first(pairs, "hash")
    if not received_hash:
        raise TelegramAuthError(AuthErrorReason.INVALID_PAYLOAD)

    calculated_hash = compute_hash(build_data_check_string(pairs), bot_token)
    # Сравнение байтов: hash может содержать не-ASCII символы
    if not hmac.compare_digest(calculated_hash.encode(), received_hash.encode()):
        raise TelegramAuthError(AuthErrorReason.INVALID_SIGNATURE)

    # Возраст проверяется только если auth_date передан
    auth_date = _parse_auth_date(_first(pairs, "auth_date"))
    if auth_date:
        current = time.time() if now is None else now
        if current - auth_date > max_age_seconds:
            raise TelegramAuthError(AuthErrorReason.EXPIRED)

    user: Any = None
    user_raw = _first(pairs, "user")
    if user_raw:
        try:
            user = json.loads(user_raw)
        except json.JSONDecodeError:
            raise TelegramAuthError(AuthErrorReason.INVALID_USER_DATA)

    if not isinstance(user, dict) or not user.get("id"):
        raise TelegramAuthError(AuthErrorReason.NO_USER)

    return Identity(user_id=_stringify_id(user["id"]), user_name=_display_name(user))


def extract_user_id(init_data: str | None) -> str | None:
    """
    Быстрое извлечение user_id из initData без проверки подписи.
    Используется только для логирования отказов.
    """
    if not init_data:
        return None
    try:
        user_raw = _first(parse_qsl(init_data, keep_blank_values=True), "user")
        if user_raw:
            user_id = json.loads(user_raw).get("id")
            return _stringify_id(user_id) if user_id else None
    except (ValueError, AttributeError):
        return None
    return None
