# pedidos/services/health.py

"""
Проверка состояния внешних зависимостей.
unhealthy: нет DynamoDB, либо нет секретов в production.
degraded: не настроены Google Sheets или ключ Google Maps.
"""

import time

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import Request
from starlette.concurrency import run_in_threadpool

from pedidos.config import VERSION, settings
from pedidos.utils.dates import bolivia_now
from pedidos.utils.errors import SecretsError, UsersUnavailableError
from pedidos.utils.sheets import has_credentials

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"


async def check_secrets(request: Request) -> dict:
    if not settings.SECRETS_ENABLED:
        return {"status": "disabled", "message": "Usando variables de entorno"}
    provider = getattr(request.app.state, "secrets", None)
    if provider is None:
        return {"status": UNHEALTHY, "message": "Secrets Manager no inicializado"}
    try:
        await run_in_threadpool(provider.get_secrets)
    except SecretsError as e:
        return {"status": UNHEALTHY, "message": str(e)}
    return {"status": HEALTHY, "secretName": provider.secret_name}


async def check_dynamodb(request: Request) -> dict:
    users = request.app.state.users
    try:
        table_status = await run_in_threadpool(users.table_status)
    except (UsersUnavailableError, BotoCoreError, ClientError) as e:
        return {"status": UNHEALTHY, "message": str(e)}
    return {"status": HEALTHY, "table": users.table_name, "tableStatus": table_status}


def check_sheets() -> dict:
    if not has_credentials():
        return {"status": DEGRADED, "message": "Google Service Account no configurado"}
    return {"status": HEALTHY, "sheetId": settings.SHEET_ID}


def check_maps() -> dict:
    if not settings.GOOGLE_MAPS_API_KEY:
        return {"status": DEGRADED, "message": "GOOGLE_MAPS_API_KEY no configurada"}
    return {"status": HEALTHY}


def overall_status(services: dict) -> str:
    if services["dynamodb"]["status"] == UNHEALTHY:
        return UNHEALTHY
    if services["secretsManager"]["status"] == UNHEALTHY and settings.is_production:
        return UNHEALTHY
    if any(s["status"] not in (HEALTHY, "disabled") for s in services.values()):
        return DEGRADED
    return HEALTHY


async def health_service(request: Request) -> dict:
    started = time.perf_counter()
    services = {
        "secretsManager": await check_secrets(request),
        "dynamodb": await check_dynamodb(request),
        "googleSheets": check_sheets(),
        "googleMaps": check_maps(),
    }
    status = overall_status(services)
    if status != HEALTHY:
        await request.app.state.log.log_warning("health", f"Состояние сервиса: {status}", services)

    return {
        "status": status,
        "timestamp": bolivia_now().isoformat(),
        "uptime": round(request.app.state.sessions.uptime_ms() / 1000, 1),
        "environment": settings.ENVIRONMENT,
        "version": VERSION,
        "services": services,
        "responseTime": f"{round((time.perf_counter() - started) * 1000)}ms",
    }
