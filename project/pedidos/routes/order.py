# pedidos/routes/order.py

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from typing import Any, Optional

from pedidos.routes.auth import staff_user
from pedidos.schemas.order import OrderStatusUpdate
from pedidos.services.order import (
    create_order_service,
    update_order_service,
    read_orders_service,
    next_id_service,
    verify_id_service,
    update_order_status_service,
)
from pedidos.services.pricing import price_quote
from pedidos.utils.errors import SheetsUnavailableError

router = APIRouter()


# ────────────── CREATE ──────────────
@router.post(
    "/orders",
    status_code=status.HTTP_200_OK,
    summary="Создать заказ",
    response_description="ID сохранённого заказа; updated=true если исходный ID был занят",
    responses={
        200: {"description": "Заказ добавлен в лист"},
        401: {"description": "Некорректный пользователь или токен"},
        403: {"description": "Недостаточно прав"},
        503: {"description": "Нет связи с Google Sheets"},
    },
)
async def create_order(
    request: Request,
    order: dict[str, Any] = Body(...),
    _=Depends(staff_user),
):
    try:
        return await create_order_service(order, request)
    except Exception as e:
        await request.app.state.log.log_error("order", f"Ошибка при создании заказа: {str(e)}")
        raise


# ────────────── UPDATE ──────────────
@router.put(
    "/orders/{id}",
    status_code=status.HTTP_200_OK,
    summary="Обновить заказ",
    response_description="Номер строки и количество обновлённых ячеек",
    responses={
        200: {"description": "Заказ успешно обновлён"},
        401: {"description": "Некорректный пользователь или токен"},
        404: {"description": "Заказ не найден"},
        503: {"description": "Нет связи с Google Sheets"},
    },
)
async def update_order(
    id: str,
    request: Request,
    order: dict[str, Any] = Body(...),
    _=Depends(staff_user),
):
    try:
        return await update_order_service(id, order, request)
    except Exception as e:
        await request.app.state.log.log_error("order", f"Ошибка при обновлении заказа: {str(e)}", {"id": id})
        raise


# ────────────── READ ALL ──────────────
@router.get(
    "/read-orders",
    status_code=status.HTTP_200_OK,
    summary="Получить список заказов",
    response_description="Заказы как словари по заголовкам листа",
    responses={
        200: {"description": "Список заказов успешно получен"},
        401: {"description": "Некорректный пользователь или токен"},
        503: {"description": "Нет связи с Google Sheets, data пустой"},
    },
)
async def read_orders(request: Request, _=Depends(staff_user)):
    try:
        return await read_orders_service(request)
    except SheetsUnavailableError as e:
        await request.app.state.log.log_error_throttled(
            "order", "read-orders-offline", f"Нет связи с Google Sheets: {str(e)}"
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "error": "Sin conexión a internet",
                "message": "No se puede conectar a Google Sheets. Verifica tu conexión a internet.",
                "data": [],
                "count": 0,
            },
        )
    except Exception as e:
        await request.app.state.log.log_error("order", f"Ошибка при получении списка заказов: {str(e)}")
        raise


# ────────────── NEXT ID ──────────────
@router.get(
    "/next-id",
    summary="Следующий свободный ID заказа",
    responses={200: {"description": "nextId = max(валидных ID) + 1"}},
)
async def next_id(request: Request, _=Depends(staff_user)):
    try:
        return await next_id_service(request)
    except Exception as e:
        await request.app.state.log.log_error("order", f"Ошибка при расчёте следующего ID: {str(e)}")
        raise


@router.get("/verify-id/{id}", summary="Проверить, занят ли ID заказа")
async def verify_id(id: str, request: Request, _=Depends(staff_user)):
    try:
        return await verify_id_service(id, request)
    except Exception as e:
        await request.app.state.log.log_error("order", f"Ошибка при проверке ID: {str(e)}", {"id": id})
        raise


# ────────────── STATUS (устаревший) ──────────────
@router.put(
    "/update-order-status",
    summary="Обновить статус заказа (устаревший)",
    deprecated=True,
    responses={
        400: {"description": "Нет orderId или newStatus"},
        404: {"description": "Заказ не найден"},
    },
)
async def update_order_status(request: Request, body: OrderStatusUpdate, _=Depends(staff_user)):
    if body.orderId in (None, "") or not body.newStatus:
        raise HTTPException(status_code=400, detail="orderId y newStatus son requeridos")
    try:
        return await update_order_status_service(body.orderId, body.newStatus, body.additionalData or {}, request)
    except Exception as e:
        await request.app.state.log.log_error(
            "order", f"Ошибка при обновлении статуса: {str(e)}", {"orderId": body.orderId}
        )
        raise


# ────────────── PRICE ──────────────
@router.get(
    "/calculate-price",
    summary="Цена доставки по расстоянию и транспорту",
    response_description="precio в Bs и форматированная строка",
)
async def calculate_price(
    distance: Optional[str] = None,
    medio_transporte: str = "",
    _=Depends(staff_user),
):
    return price_quote(distance, medio_transporte)
