# pedidos/services/client_order.py
# Заявки клиентов во вкладке Clientes (колонки ищутся по заголовку)

from fastapi import HTTPException, Request

from pedidos.config import settings
from pedidos.utils.dates import normalize_date_to_ddmmyyyy
from pedidos.utils.sheets import column_letter, rows_to_dicts

CLIENT_RANGE = "A:AD"


async def read_client_rows(request: Request) -> list[list[str]]:
    return await request.app.state.sheets.get_range(
        settings.SHEET_ID, settings.CLIENTES_SHEET_NAME, CLIENT_RANGE
    ) or []


def require_column(headers: list[str], name: str) -> int:
    if name not in headers:
        raise HTTPException(
            status_code=500,
            detail=f'No se encontró la columna "{name}" en la pestaña {settings.CLIENTES_SHEET_NAME}',
        )
    return headers.index(name)


def find_client_row(rows: list[list[str]], id_index: int, client_order_id) -> int:
    """Номер строки листа по ID заявки; -1 если нет."""
    for number, row in enumerate(rows[1:], start=2):
        if id_index < len(row) and str(row[id_index]) == str(client_order_id):
            return number
    return -1


async def read_client_orders_service(request: Request) -> dict:
    log = request.app.state.log

    rows = await read_client_rows(request)
    if not rows:
        return {"success": True, "data": [], "headers": [], "count": 0, "message": "No hay datos en la pestaña Clientes"}

    headers = rows[0]
    data = rows_to_dicts(headers, rows[1:])
    for item in data:
        if item.get("Fechas"):
            item["Fechas"] = normalize_date_to_ddmmyyyy(item["Fechas"])

    await log.log_info("client_order", f"{len(data)} заявок клиентов загружено")
    return {"success": True, "data": data, "headers": headers, "count": len(data)}


async def mark_client_order_created_service(client_order_id, official_order_id, request: Request) -> dict:
    """
    Заявка клиента → CREADO, в ID_pedido пишется номер официального заказа.
    """
    sheets = request.app.state.sheets
    log = request.app.state.log

    rows = await read_client_rows(request)
    if not rows:
        raise HTTPException(status_code=404, detail="No hay datos en la pestaña Clientes")

    headers = rows[0]
    id_index = require_column(headers, "ID")
    estado_letter = column_letter(require_column(headers, "Estado Pedido"))
    id_pedido_letter = column_letter(require_column(headers, "ID_pedido"))

    row_number = find_client_row(rows, id_index, client_order_id)
    if row_number == -1:
        raise HTTPException(
            status_code=404,
            detail=f"No se encontró el pedido con ID {client_order_id} en la pestaña Clientes",
        )

    await sheets.batch_update(
        settings.SHEET_ID,
        settings.CLIENTES_SHEET_NAME,
        {f"{estado_letter}{row_number}": "CREADO", f"{id_pedido_letter}{row_number}": official_order_id},
    )

    await log.log_info(
        "client_order", "Заявка клиента отмечена как CREADO", {"id": client_order_id, "orderId": official_order_id}
    )
    return {
        "success": True,
        "message": (
            f"Pedido cliente #{client_order_id} marcado como CREADO "
            f"con ID de pedido oficial #{official_order_id}"
        ),
        "rowIndex": row_number,
        "estadoPedidoColumn": estado_letter,
        "idPedidoColumn": id_pedido_letter,
    }


async def cancel_client_order_service(client_order_id, request: Request) -> dict:
    sheets = request.app.state.sheets
    log = request.app.state.log

    rows = await read_client_rows(request)
    if not rows:
        raise HTTPException(status_code=404, detail="No hay datos en la pestaña Clientes")

    headers = rows[0]
    id_index = require_column(headers, "ID")
    estado_letter = column_letter(require_column(headers, "Estado Pedido"))

    row_number = find_client_row(rows, id_index, client_order_id)
    if row_number == -1:
        raise HTTPException(status_code=404, detail=f"No se encontró el pedido con ID {client_order_id}")

    await sheets.batch_update(
        settings.SHEET_ID,
        settings.CLIENTES_SHEET_NAME,
        {f"{estado_letter}{row_number}": "CANCELADO"},
        value_input_option="USER_ENTERED",
    )

    await log.log_info("client_order", "Заявка клиента отменена", {"id": client_order_id})
    return {"success": True, "message": f"Pedido #{client_order_id} cancelado exitosamente", "idPedido": client_order_id}
