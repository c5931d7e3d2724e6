# pedidos/services/inventory.py

"""
Инвентарь компаний для администраторов склада.
Одна вкладка INVENTARIO_SHEET_ID на компанию, колонки ищутся по заголовку.
Каждое изменение остатка пишется строкой во вкладку истории.
"""

from fastapi import HTTPException, Request

from pedidos.config import settings
from pedidos.services.client import find_column, resolve_image_url
from pedidos.services.order import parse_int
from pedidos.utils.dates import bolivia_date, bolivia_now, bolivia_time
from pedidos.utils.sheets import column_letter

ADMIN_RANGE = "A1:L1000"
STATE_OK = "✅ Ok"
STATE_LOW = "❌ Bajo stock"

HISTORY_HEADERS = [
    "Fecha", "Hora", "Empresa", "Código", "Producto", "Categoría", "Foto",
    "Entradas", "Salidas", "Stock pasado", "Stock actual", "Stock mínimo",
    "Estado", "url_imagen",
]


def inventory_columns(headers: list[str]) -> dict[str, int]:
    return {
        "codigo": find_column(headers, "código", "codigo"),
        "producto": find_column(headers, "producto"),
        "categoria": find_column(headers, "categoría", "categoria"),
        "stockActual": find_column(headers, "stock actual", "stockactual"),
        "stockMinimo": find_column(headers, "stock mínimo", "stockminimo", "stock minimo"),
        "estado": find_column(headers, "estado"),
        "foto": find_column(headers, "foto"),
        "urlImagen": find_column(headers, "url_imagen", "url imagen"),
    }


def value_at(row: list, index: int) -> str:
    if index < 0 or index >= len(row) or row[index] is None:
        return ""
    return str(row[index])


def stock_state(stock: int, minimum: int) -> str:
    return STATE_OK if stock >= minimum else STATE_LOW


def inventory_admins() -> list[str]:
    return [name.lower() for name in settings.as_list(settings.INVENTARIO_ADMINS)]


def require_sheet() -> str:
    if not settings.INVENTARIO_SHEET_ID:
        raise HTTPException(status_code=500, detail="INVENTARIO_SHEET_ID no configurado")
    return settings.INVENTARIO_SHEET_ID


async def list_companies_service(request: Request) -> dict:
    sheet_id = require_sheet()
    titles = await request.app.state.sheets.worksheet_titles(sheet_id)
    empresas = [t for t in titles if t.strip() and t != settings.HISTORIAL_SHEET_NAME]
    await request.app.state.log.log_info("inventory", "Список компаний инвентаря", {"count": len(empresas)})
    return {"success": True, "empresas": empresas}


def build_stock_rows(headers: list[str], rows: list[list]) -> list[dict]:
    cols = inventory_columns(headers)
    products = []
    for number, row in enumerate(rows, start=2):
        if not value_at(row, cols["producto"]):
            continue
        image = value_at(row, cols["urlImagen"])
        products.append(
            {
                "codigo": value_at(row, cols["codigo"]),
                "producto": value_at(row, cols["producto"]),
                "categoria": value_at(row, cols["categoria"]),
                "stockActual": parse_int(value_at(row, cols["stockActual"])) or 0,
                "stockMinimo": parse_int(value_at(row, cols["stockMinimo"])) or 0,
                "estado": value_at(row, cols["estado"]),
                "urlImagen": resolve_image_url(image) or image,
                "rowIndex": number,
            }
        )
    return products


async def read_company_rows(empresa: str, request: Request) -> list[list]:
    rows = await request.app.state.sheets.get_range(require_sheet(), empresa, ADMIN_RANGE)
    if rows is None:
        raise HTTPException(status_code=404, detail=f'La pestaña "{empresa}" no existe en el inventario')
    return rows


async def company_inventory_service(empresa: str, request: Request) -> dict:
    rows = await read_company_rows(empresa, request)
    if not rows:
        return {"success": True, "data": [], "empresa": empresa}

    headers = rows[0]
    products = build_stock_rows(headers, rows[1:])
    await request.app.state.log.log_info("inventory", "Инвентарь компании загружен", {"empresa": empresa, "count": len(products)})
    return {"success": True, "data": products, "empresa": empresa, "headers": headers}


async def update_stock_service(empresa: str, codigo, stock_actual, user: dict, request: Request) -> dict:
    sheet_id = require_sheet()
    if codigo is None or str(codigo).strip() == "":
        raise HTTPException(status_code=400, detail="Código del producto es requerido")
    if stock_actual is None or str(stock_actual).strip() == "":
        raise HTTPException(status_code=400, detail="stockActual es requerido")
    stock = parse_int(str(stock_actual).strip())
    if stock is None:
        raise HTTPException(status_code=400, detail="stockActual debe ser un número")

    rows = await read_company_rows(empresa, request)
    if not rows:
        raise HTTPException(status_code=404, detail="No se encontraron datos en la pestaña")

    headers = rows[0]
    cols = inventory_columns(headers)
    code = str(codigo).strip()
    found = next(
        (
            (number, row)
            for number, row in enumerate(rows[1:], start=2)
            if cols["codigo"] >= 0 and value_at(row, cols["codigo"]).strip() == code
        ),
        None,
    )
    if found is None:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    row_number, row = found

    previous = parse_int(value_at(row, cols["stockActual"])) or 0
    minimum = parse_int(value_at(row, cols["stockMinimo"])) or 0
    state = stock_state(stock, minimum)

    cells = {}
    if cols["stockActual"] >= 0:
        cells[f"{column_letter(cols['stockActual'])}{row_number}"] = str(stock)
    if cols["estado"] >= 0:
        cells[f"{column_letter(cols['estado'])}{row_number}"] = state
    if cells:
        await request.app.state.sheets.batch_update(sheet_id, empresa, cells, value_input_option="USER_ENTERED")

    await request.app.state.log.log_info(
        "inventory",
        "Остаток обновлён",
        {"empresa": empresa, "codigo": code, "before": previous, "after": stock, "operator": user.get("username")},
    )

    difference = stock - previous
    change = {
        "empresa": empresa,
        "codigo": code,
        "producto": value_at(row, cols["producto"]),
        "categoria": value_at(row, cols["categoria"]),
        "foto": value_at(row, cols["foto"]),
        "entradas": max(difference, 0),
        "salidas": max(-difference, 0),
        "stockPasado": previous,
        "stockActual": stock,
        "stockMinimo": minimum,
        "estado": state,
        "urlImagen": value_at(row, cols["urlImagen"]),
    }
    try:
        await register_history(change, request)
    except Exception as e:
        await request.app.state.log.log_error("inventory", f"Ошибка записи в историю: {e}", {"codigo": code})

    return {"success": True, "message": "Stock actualizado correctamente"}


def history_row(headers: list[str], change: dict, now=None) -> list:
    now = now or bolivia_now()
    values = {
        ("fecha",): bolivia_date(now),
        ("hora",): bolivia_time(now),
        ("empresa",): change["empresa"],
        ("código", "codigo"): change["codigo"],
        ("producto",): change["producto"],
        ("categoría", "categoria"): change["categoria"],
        ("foto",): change["foto"],
        ("entradas",): change["entradas"],
        ("salidas",): change["salidas"],
        ("stock pasado", "stockpasado", "stock anterior"): change["stockPasado"],
        ("stock actual", "stockactual"): change["stockActual"],
        ("stock mínimo", "stockminimo", "stock minimo"): change["stockMinimo"],
        ("estado",): change["estado"],
        ("url_imagen", "url imagen"): change["urlImagen"],
    }
    placed = {find_column(headers, *needles): value for needles, value in values.items()}
    placed.pop(-1, None)
    if not placed:
        return []
    row = [""] * (max(placed) + 1)
    for index, value in placed.items():
        row[index] = value
    return row


async def register_history(change: dict, request: Request) -> bool:
    """Строка в HISTORIAL_SHEET_NAME; без таблицы истории ничего не пишется."""
    sheets = request.app.state.sheets
    sheet_id = settings.HISTORIAL_SHEET_ID or settings.INVENTARIO_SHEET_ID
    if not sheet_id:
        await request.app.state.log.log_warning("inventory", "HISTORIAL_SHEET_ID не настроен, история не пишется")
        return False

    title = settings.HISTORIAL_SHEET_NAME
    headers = await sheets.row_values(sheet_id, title, 1)
    if not headers:
        headers = list(HISTORY_HEADERS)
        await sheets.update_range(
            sheet_id, title, f"A1:{column_letter(len(headers) - 1)}1", [headers], value_input_option="USER_ENTERED"
        )

    await sheets.append_row(sheet_id, title, history_row(headers, change), value_input_option="USER_ENTERED")
    return True
