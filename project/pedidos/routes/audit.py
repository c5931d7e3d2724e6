# pedidos/routes/audit.py

from fastapi import APIRouter, Depends, HTTPException, Request

from pedidos.routes.auth import staff_user
from pedidos.schemas.maps import SaveLogsRequest
from pedidos.services.form_log import save_form_logs

router = APIRouter()


@router.get("/audit/order/{id}", summary="История изменений заказа")
async def audit_order(id: str, request: Request, _=Depends(staff_user)):
    logs = await request.app.state.audit.logs_for_order(id)
    return {"success": True, "orderId": id, "count": len(logs), "logs": logs}


@router.get("/audit/stats", summary="Статистика операций и подозрительные действия")
async def audit_stats(request: Request, _=Depends(staff_user)):
    return {"success": True, "stats": await request.app.state.audit.stats()}


@router.get("/audit/files", summary="Файлы журнала аудита")
async def audit_files(request: Request, _=Depends(staff_user)):
    return {"success": True, **await request.app.state.audit.list_files()}


@router.post(
    "/save-logs",
    summary="Сохранить логи формы заказа в CSV",
    responses={400: {"description": "logs не массив"}},
)
async def save_logs(request: Request, body: SaveLogsRequest, _=Depends(staff_user)):
    if not isinstance(body.logs, list):
        raise HTTPException(status_code=400, detail="logs debe ser un array")
    try:
        path = await save_form_logs(body.logs)
    except OSError as e:
        await request.app.state.log.log_error("audit", f"Ошибка при сохранении логов формы: {str(e)}")
        raise
    await request.app.state.log.log_info("audit", "Логи формы сохранены", {"path": path, "count": len(body.logs)})
    return {"success": True, "message": f"Logs guardados en {path}", "count": len(body.logs)}
