# pedidos/routes/client.py
# Портал клиента (роль cliente)

from fastapi import APIRouter, Depends, Request

from pedidos.routes.auth import client_user
from pedidos.services.client import client_orders_service, client_inventory_service

router = APIRouter()


@router.get(
    "/orders",
    summary="Заявки компании текущего клиента",
    responses={401: {"description": "Нет токена"}, 403: {"description": "Роль не cliente"}},
)
async def client_orders(request: Request, user: dict = Depends(client_user)):
    try:
        return await client_orders_service(user, request)
    except Exception as e:
        await request.app.state.log.log_error("client", f"Ошибка при чтении заявок клиента: {str(e)}", {"username": user.get("username")})
        raise


@router.get(
    "/inventario",
    summary="Инвентарь компании текущего клиента",
    responses={
        404: {"description": "Пользователь или вкладка инвентаря не найдены"},
        500: {"description": "INVENTARIO_SHEET_ID не настроен"},
    },
)
async def client_inventory(request: Request, user: dict = Depends(client_user)):
    try:
        return await client_inventory_service(user, request)
    except Exception as e:
        await request.app.state.log.log_error("client", f"Ошибка при чтении инвентаря: {str(e)}", {"username": user.get("username")})
        raise
