# pedidos/routes/inventory.py
# Инвентарь компаний: просмотр и правка остатков (только INVENTARIO_ADMINS)

from fastapi import APIRouter, Depends, HTTPException, Request, status

from pedidos.routes.auth import staff_user
from pedidos.schemas.inventory import StockUpdate
from pedidos.services.inventory import (
    company_inventory_service,
    inventory_admins,
    list_companies_service,
    update_stock_service,
)

router = APIRouter()


async def inventory_admin(request: Request, user: dict = Depends(staff_user)) -> dict:
    """Зависимость: сотрудник из списка INVENTARIO_ADMINS, иначе 403."""
    admins = inventory_admins()
    username = str(user.get("username") or "").lower().strip()
    if username not in admins:
        await request.app.state.log.log_warning("inventory", "Доступ к инвентарю запрещён", {"username": username})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"No tienes permisos para acceder al Inventario. Solo disponible para: {', '.join(admins)}",
        )
    return user


@router.get(
    "/empresas",
    summary="Компании (вкладки) таблицы инвентаря",
    responses={403: {"description": "Пользователь не в INVENTARIO_ADMINS"}, 500: {"description": "INVENTARIO_SHEET_ID не настроен"}},
)
async def list_companies(request: Request, _=Depends(inventory_admin)):
    try:
        return await list_companies_service(request)
    except Exception as e:
        await request.app.state.log.log_error("inventory", f"Ошибка при получении списка компаний: {str(e)}")
        raise


@router.get("/{empresa}", summary="Товары компании", responses={404: {"description": "Вкладки нет"}})
async def company_inventory(empresa: str, request: Request, _=Depends(inventory_admin)):
    try:
        return await company_inventory_service(empresa, request)
    except Exception as e:
        await request.app.state.log.log_error("inventory", f"Ошибка при чтении инвентаря: {str(e)}", {"empresa": empresa})
        raise


@router.put(
    "/{empresa}/actualizar",
    summary="Обновить остаток товара",
    responses={400: {"description": "Нет codigo или stockActual"}, 404: {"description": "Товар не найден"}},
)
async def update_stock(empresa: str, body: StockUpdate, request: Request, user: dict = Depends(inventory_admin)):
    try:
        return await update_stock_service(empresa, body.codigo, body.stockActual, user, request)
    except Exception as e:
        await request.app.state.log.log_error(
            "inventory", f"Ошибка при обновлении остатка: {str(e)}", {"empresa": empresa, "codigo": body.codigo}
        )
        raise
