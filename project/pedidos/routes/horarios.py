# pedidos/routes/horarios.py
# Расписания водителей и байкеров

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import FileResponse

from pedidos.routes.auth import staff_user
from pedidos.services.horarios import (
    availability_today_service,
    download_path,
    read_horarios_service,
    restore_horarios_service,
    save_horarios_service,
)

router = APIRouter()


@router.get(
    "/horarios",
    summary="Данные планировщика расписаний",
    responses={500: {"description": "Нет ни Google Sheets, ни локальной копии"}},
)
async def read_horarios(request: Request, _=Depends(staff_user)):
    try:
        return await read_horarios_service(request)
    except Exception as e:
        await request.app.state.log.log_error("horarios", f"Ошибка при чтении расписаний: {str(e)}")
        raise


@router.post("/horarios", summary="Сохранить данные планировщика", responses={400: {"description": "Тело не объект"}})
async def save_horarios(request: Request, payload: Any = Body(None), _=Depends(staff_user)):
    try:
        return await save_horarios_service(payload, request)
    except Exception as e:
        await request.app.state.log.log_error("horarios", f"Ошибка при сохранении расписаний: {str(e)}")
        raise


@router.get(
    "/horarios/disponibilidad-hoy",
    summary="Кто работает сегодня и кто свободен сейчас",
    responses={400: {"description": "ID таблицы расписаний не настроен"}},
)
async def availability_today(request: Request, tipo: str = Query("drivers"), _=Depends(staff_user)):
    try:
        return await availability_today_service(tipo, request)
    except Exception as e:
        await request.app.state.log.log_error("horarios", f"Ошибка доступности на сегодня: {str(e)}", {"tipo": tipo})
        raise


@router.get("/horarios/download", summary="Скачать horarios.json", responses={404: {"description": "Файла нет"}})
async def download_horarios(_=Depends(staff_user)):
    return FileResponse(download_path(), media_type="application/json", filename="horarios.json")


@router.put("/horarios/restore", summary="Восстановить данные из JSON", responses={400: {"description": "Тело не объект"}})
async def restore_horarios(request: Request, payload: Any = Body(None), _=Depends(staff_user)):
    try:
        return await restore_horarios_service(payload, request)
    except Exception as e:
        await request.app.state.log.log_error("horarios", f"Ошибка при восстановлении расписаний: {str(e)}")
        raise
