# pedidos/main.py

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn
from dotenv import load_dotenv
from contextlib import asynccontextmanager

from pedidos.config import VERSION, settings
from pedidos.utils.log import Log
from pedidos.utils.errors import RouteNotFoundError, SecretsError, ServiceUnavailableError
from pedidos.utils.secrets import SecretsProvider
from pedidos.utils.sheets import SheetsGateway
from pedidos.utils.dynamodb import UserRepository
from pedidos.services.audit import AuditLog
from pedidos.services.maps import MapsClient
from pedidos.services.session import SessionManager
from pedidos.middleware.request_log import RequestLogMiddleware

import os
import multiprocessing

# --- загрузка переменных окружения ---
load_dotenv()

# --- sync логгер для раннего старта ---
boot_log = Log()
if os.environ.get("RUN_MAIN") == "true" or multiprocessing.current_process().name == "MainProcess":
    boot_log.log_info_sync(target="startup", message="Импорты main.py выполнены")


async def load_secrets(app: FastAPI):
    """
    Секреты из AWS Secrets Manager поверх переменных окружения.
    В development ошибка не мешает старту, в production старт прерывается.
    """
    app.state.secrets = None
    if not settings.SECRETS_ENABLED:
        boot_log.log_info_sync(target="startup", message="Secrets Manager отключён, используются переменные окружения")
        return

    provider = SecretsProvider()
    app.state.secrets = provider
    try:
        applied = await run_in_threadpool(provider.apply_to, settings)
    except SecretsError as e:
        if settings.is_production:
            boot_log.log_error_sync(target="startup", message=f"Секреты не загружены: {e}")
            raise
        boot_log.log_warning_sync(
            target="startup", message=f"Секреты не загружены, используются переменные окружения: {e}"
        )
        return
    boot_log.log_info_sync(target="startup", message="Секреты загружены", data={"fields": applied})


# ────────────── Lifespan ──────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    boot_log.log_info_sync(target="startup", message="lifespan: startup начат")

    await load_secrets(app)
    if not settings.AUTH_SECRET_KEY:
        boot_log.log_warning_sync(target="startup", message="AUTH_SECRET_KEY не задан, вход невозможен")

    app.state.log = Log()
    app.state.sessions = SessionManager()
    app.state.sheets = SheetsGateway()
    app.state.users = UserRepository()
    app.state.maps = MapsClient(log=app.state.log)
    app.state.audit = AuditLog(log=app.state.log)
    await app.state.log.log_info(
        target="startup",
        message="Сервисы инициализированы",
        data={"environment": settings.ENVIRONMENT, "serverStartTime": app.state.sessions.server_start_time},
    )

    yield

    # shutdown
    await app.state.log.log_info(target="shutdown", message="Остановка приложения")
    await app.state.log.shutdown()
    boot_log.log_info_sync(target="shutdown", message="Log корректно завершён")


# ────────────── Создаём FastAPI приложение ──────────────
app = FastAPI(title="Pedidos Beezy API", version=VERSION, lifespan=lifespan, debug=not settings.is_production)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# лог каждого запроса
app.add_middleware(RequestLogMiddleware)


# ────────────── Обработчики ошибок ──────────────
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
    else:
        content = {"success": False, "error": exc.detail, "detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(ServiceUnavailableError)
async def service_unavailable_handler(request: Request, exc: ServiceUnavailableError):
    # не чаще раза в минуту на каждый сервис
    await request.app.state.log.log_error_throttled(
        "connection", exc.service, f"Нет связи с {exc.service}: {exc}", {"path": request.url.path}
    )
    return JSONResponse(
        status_code=503,
        content={
            "success": False,
            "error": "Sin conexión a internet",
            "message": f"No se puede conectar a {exc.label}. Verifica tu conexión a internet.",
            "status": "NO_CONNECTION",
            "service": exc.service,
        },
    )


@app.exception_handler(RouteNotFoundError)
async def route_not_found_handler(request: Request, exc: RouteNotFoundError):
    return JSONResponse(status_code=404, content={"success": False, "error": str(exc)})


# ────────────── Подключение роутов ──────────────
from pedidos.routes import auth, order, client_order, client, note, catalog, maps, audit, health, horarios, inventory

app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(order.router, prefix="/api", tags=["orders"])
app.include_router(client_order.router, prefix="/api", tags=["client-orders"])
app.include_router(client.router, prefix="/api/client", tags=["client-portal"])
app.include_router(note.router, prefix="/api/notes", tags=["notes"])
app.include_router(catalog.router, prefix="/api", tags=["catalog"])
app.include_router(maps.router, prefix="/api", tags=["maps"])
app.include_router(audit.router, prefix="/api", tags=["audit"])
app.include_router(horarios.router, prefix="/api", tags=["horarios"])
app.include_router(inventory.router, prefix="/api/admin/inventario", tags=["inventory"])

# ────────────── Запуск uvicorn ──────────────
if __name__ == "__main__":
    boot_log.log_info_sync(target="startup", message="Запуск uvicorn.run")
    uvicorn.run(
        "pedidos.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        log_level="info",
        reload=not settings.is_production
    )
