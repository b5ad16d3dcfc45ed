"""
Ошибки API групповых расходов.

Каждая ошибка знает свой HTTP-статус и сериализуется в {"error": message}.
Сервисы бросают их напрямую, обработчики в app.py превращают в ответы.
"""

from __future__ import annotations


class GroupExpenseError(Exception):
    """Базовая ошибка бизнес-логики групп."""

    http_status: int = 500

    def __init__(self, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if http_status is not None:
            self.http_status = http_status

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(http_status={self.http_status}, message={self.message!r})"


class ValidationError(GroupExpenseError):
    """Некорректные входные данные (400)."""
    http_status = 400


class InvalidInviteError(ValidationError):
    """Инвайт-код не найден или ведёт в другую группу (400)."""

    def __init__(self, message: str = "Invalid invite code") -> None:
        super().__init__(message)


class ForbiddenError(GroupExpenseError):
    """Пользователь аутентифицирован, но не имеет права на действие (403)."""
    http_status = 403


class NotFoundError(GroupExpenseError):
    """Группа или расход не найдены (404)."""
    http_status = 404


class MethodNotAllowedError(GroupExpenseError):
    """Метод не поддерживается ресурсом (405)."""
    http_status = 405

    def __init__(self, message: str = "Method not allowed") -> None:
        super().__init__(message)
