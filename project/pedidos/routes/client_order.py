# pedidos/routes/client_order.py

from fastapi import APIRouter, Depends, HTTPException, Request

from pedidos.routes.auth import staff_user
from pedidos.schemas.order import ClientOrderCancel, ClientOrderCreated
from pedidos.services.client_order import (
    read_client_orders_service,
    mark_client_order_created_service,
    cancel_client_order_service,
)

router = APIRouter()


# ────────────── READ ──────────────
@router.get(
    "/read-client-orders",
    summary="Заявки клиентов из вкладки Clientes",
    responses={401: {"description": "Некорректный пользователь или токен"}},
)
async def read_client_orders(request: Request, _=Depends(staff_user)):
    try:
        return await read_client_orders_service(request)
    except Exception as e:
        await request.app.state.log.log_error("client_order", f"Ошибка при чтении заявок клиентов: {str(e)}")
        raise


# ────────────── CREADO ──────────────
@router.post(
    "/cliente/actualizar-estado-pedido",
    summary="Отметить заявку клиента как CREADO",
    responses={
        400: {"description": "Нет idPedidoCliente или idPedidoOficial"},
        404: {"description": "Заявка не найдена"},
        500: {"description": "Во вкладке нет нужной колонки"},
    },
)
async def mark_created(request: Request, body: ClientOrderCreated, _=Depends(staff_user)):
    if body.idPedidoCliente in (None, "") or body.idPedidoOficial in (None, ""):
        raise HTTPException(status_code=400, detail="idPedidoCliente e idPedidoOficial son requeridos")
    try:
        return await mark_client_order_created_service(body.idPedidoCliente, body.idPedidoOficial, request)
    except Exception as e:
        await request.app.state.log.log_error(
            "client_order", f"Ошибка при обновлении заявки: {str(e)}", {"id": body.idPedidoCliente}
        )
        raise


# ────────────── CANCELADO ──────────────
@router.post(
    "/cliente/cancelar-pedido",
    summary="Отменить заявку клиента",
    responses={400: {"description": "Нет idPedido"}, 404: {"description": "Заявка не найдена"}},
)
async def cancel(request: Request, body: ClientOrderCancel, _=Depends(staff_user)):
    if body.idPedido in (None, ""):
        raise HTTPException(status_code=400, detail="idPedido es requerido")
    try:
        return await cancel_client_order_service(body.idPedido, request)
    except Exception as e:
        await request.app.state.log.log_error("client_order", f"Ошибка при отмене заявки: {str(e)}", {"id": body.idPedido})
        raise
