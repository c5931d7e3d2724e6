# pedidos/routes/health.py

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from pedidos.services.health import UNHEALTHY, health_service
from pedidos.utils.dates import bolivia_now

router = APIRouter()


@router.get("/health", summary="Состояние сервиса и внешних зависимостей")
@router.get("/api/health", summary="Состояние сервиса (алиас для фронтенда)")
async def health(request: Request):
    result = await health_service(request)
    # 503 только при unhealthy, degraded отвечает 200
    return JSONResponse(status_code=503 if result["status"] == UNHEALTHY else 200, content=result)


@router.get("/health/ready", summary="Готовность сервиса")
async def ready():
    return {"status": "ready", "timestamp": bolivia_now().isoformat()}


@router.get("/health/live", summary="Сервис жив")
async def live(request: Request):
    return {
        "status": "alive",
        "timestamp": bolivia_now().isoformat(),
        "uptime": round(request.app.state.sessions.uptime_ms() / 1000, 1),
    }
