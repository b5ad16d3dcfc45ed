"""
FastAPI приложение API групповых расходов.

Backend для групп в Telegram Mini App трекера расходов.
Все endpoints групп требуют заголовок Authorization с initData.

Endpoints (префикс /api):
- GET    /groups                          - группы пользователя
- POST   /groups                          - создать группу
- GET    /groups/{id}                     - группа, участники, расходы
- DELETE /groups/{id}                     - удалить группу (создатель)
- POST   /groups/{id}/join?invite={code}  - вступить по инвайту
- GET    /groups/{id}/expenses            - расходы группы
- POST   /groups/{id}/expenses            - добавить расход
- PUT    /groups/{id}/expenses/{eid}      - изменить расход (автор)
- DELETE /groups/{id}/expenses/{eid}      - удалить расход (автор)
- GET    /groups/{id}/summary             - сводка расходов
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.common.logger import log_error, setup_logging
from src.config import settings
from src.services.group_expenses.dependencies import (
    cleanup_dependencies,
    get_redis,
    init_dependencies,
)
from src.services.group_expenses.errors import GroupExpenseError, MethodNotAllowedError
from src.services.group_expenses.routes import router
from src.services.group_expenses.telegram_auth import TelegramAuthError
from src.shared.models.common import HealthStatus


SERVICE_NAME = "group_expenses"


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    from src.infra.redis_client import close_redis, init_redis

    setup_logging()

    redis = await init_redis()

    init_dependencies(
        redis=redis,
        bot_token=settings.telegram.BOT_TOKEN,
        max_age_seconds=settings.telegram.INIT_DATA_MAX_AGE,
        name_max_length=settings.groups.GROUP_NAME_MAX_LENGTH,
        note_max_length=settings.groups.EXPENSE_NOTE_MAX_LENGTH,
        default_category=settings.groups.DEFAULT_CATEGORY,
    )

    yield

    cleanup_dependencies()
    await close_redis()


# === APP ===

app = FastAPI(
    title="Group Expenses API",
    description="Общие расходы групп для Telegram Mini App трекера расходов.",
    version=settings.system.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS для Mini App (загружается с домена Telegram WebView)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.deployment.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix=settings.deployment.API_PREFIX)


# === ОБРАБОТКА ОШИБОК ===
# Все ошибки отдаются клиенту как {"error": "..."}

@app.exception_handler(TelegramAuthError)
async def telegram_auth_error_handler(request: Request, exc: TelegramAuthError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": exc.message})


@app.exception_handler(GroupExpenseError)
async def group_expense_error_handler(request: Request, exc: GroupExpenseError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return JSONResponse(status_code=exc.status_code, content=MethodNotAllowedError().to_dict())
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid request body"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Ошибки Redis сюда же: повторов нет, клиент получает 500
    await log_error(
        f"Необработанная ошибка {request.method} {request.url.path}: {exc}",
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


# === HEALTH CHECK ===

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    """Проверка здоровья сервиса и подключения к Redis."""
    try:
        redis_ok = await get_redis().health_check()
    except RuntimeError:
        redis_ok = False

    return HealthStatus(
        service=SERVICE_NAME,
        status="healthy" if redis_ok else "degraded",
        version=settings.system.VERSION,
        dependencies={"redis": "healthy" if redis_ok else "unhealthy"},
    )


# === STARTUP ===

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.deployment.GROUP_EXPENSES_HOST, port=settings.deployment.GROUP_EXPENSES_PORT)
