# pedidos/services/order.py

"""
Заказы во вкладке Registros (колонки A..AE).
Строка адресуется по позиции колонки, ID всегда в колонке A.
"""

import re
from typing import Any

from fastapi import HTTPException, Request

from pedidos.config import settings
from pedidos.services.audit import request_metadata
from pedidos.utils.dates import is_ddmmyyyy, normalize_date_to_ddmmyyyy
from pedidos.utils.sheets import column_letter, rows_to_dicts

HEADER_ORDER = [
    "ID",
    "Fecha Registro",
    "Hora Registro",
    "Operador",
    "Cliente",
    "Recojo",
    "Entrega",
    "Direccion Recojo",
    "Direccion Entrega",
    "Detalles de la Carrera",
    "Dist. [Km]",
    "Medio Transporte",
    "Precio [Bs]",
    "Método pago pago",
    "Biker",
    "WhatsApp",
    "Fechas",
    "Hora Ini",
    "Hora Fin",
    "Duracion",
    "Tiempo de espera",
    "Estado",
    "Estado de pago",
    "Observaciones",
    "Pago biker",
    "Dia de la semana",
    "Cobro o pago",
    "Monto cobro o pago",
    "Descripcion de cobro o pago",
    "Info. Adicional Recojo",
    "Info. Adicional Entrega",
]

KEY_TO_COL = {
    "id": "ID",
    "fecha_registro": "Fecha Registro",
    "hora_registro": "Hora Registro",
    "operador": "Operador",
    "cliente": "Cliente",
    "recojo": "Recojo",
    "entrega": "Entrega",
    "direccion_recojo": "Direccion Recojo",
    "direccion_entrega": "Direccion Entrega",
    "detalles_carrera": "Detalles de la Carrera",
    "distancia_km": "Dist. [Km]",
    "medio_transporte": "Medio Transporte",
    "precio_bs": "Precio [Bs]",
    "metodo_pago": "Método pago pago",
    "biker": "Biker",
    "whatsapp": "WhatsApp",
    "fecha": "Fechas",
    "hora_ini": "Hora Ini",
    "hora_fin": "Hora Fin",
    "duracion": "Duracion",
    "tiempo_espera": "Tiempo de espera",
    "estado": "Estado",
    "estado_pago": "Estado de pago",
    "observaciones": "Observaciones",
    "pago_biker": "Pago biker",
    "dia_semana": "Dia de la semana",
    "cobro_pago": "Cobro o pago",
    "monto_cobro_pago": "Monto cobro o pago",
    "descripcion_cobro_pago": "Descripcion de cobro o pago",
    "info_direccion_recojo": "Info. Adicional Recojo",
    "info_direccion_entrega": "Info. Adicional Entrega",
}
COL_TO_KEY = {col: key for key, col in KEY_TO_COL.items()}

LAST_COLUMN = column_letter(len(HEADER_ORDER) - 1)  # AE

# колонки, которые при обновлении можно очистить пустым значением
CAN_BE_EMPTIED = {"Observaciones", "Hora Fin", "Duracion", "Tiempo de espera"}

# устаревший /api/update-order-status: поле запроса → заголовок колонки
STATUS_FIELD_MAPPING = {
    "operador": "Operador",
    "cliente": "Cliente",
    "recojo": "Recojo",
    "entrega": "Entrega",
    "direccion_recojo": "Direccion Recojo",
    "direccion_entrega": "Direccion Entrega",
    "info_direccion_recojo": "Info. Adicional Recojo",
    "info_direccion_entrega": "Info. Adicional Entrega",
    "detalles_carrera": "Detalles de la Carrera",
    "distancia": "Dist. [Km]",
    "medio_transporte": "Medio Transporte",
    "precio": "Precio [Bs]",
    "metodo_pago": "Método pago pago",
    "estado_pago": "Estado de pago",
    "biker": "Biker",
    "whatsapp": "WhatsApp",
    "fecha": "Fechas",
    "hora_ini": "Hora Ini",
    "hora_fin": "Hora Fin",
    "duracion": "Duracion",
    "tiempo_espera": "Tiempo de espera",
    "observaciones": "Observaciones",
    "pago_biker": "Pago biker",
    "dia_semana": "Dia de la semana",
    "cobro_pago": "Cobro o pago",
    "monto_cobro_pago": "Monto cobro o pago",
    "descripcion_cobro_pago": "Descripcion de cobro o pago",
}
ALWAYS_UPDATE_FIELDS = {
    "info_direccion_recojo",
    "info_direccion_entrega",
    "tiempo_espera",
    "observaciones",
    "descripcion_cobro_pago",
}

MAX_VALID_ID = 100000

INT_PREFIX_RE = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Any) -> int | None:
    """Целое из начала строки ('12abc' → 12), иначе None."""
    if value is None:
        return None
    match = INT_PREFIX_RE.match(str(value))
    return int(match.group(1)) if match else None


def normalize_number(value: Any) -> Any:
    """Убирает ведущий апостроф и первую запятую заменяет точкой."""
    text = str(value).strip()
    if text.startswith("'"):
        text = text[1:]
    return text.replace(",", ".", 1)


def normalize_fecha(value: Any) -> str:
    text = str(value).strip()
    if is_ddmmyyyy(text):
        return text
    return normalize_date_to_ddmmyyyy(value) or text


def build_row(order: dict) -> list:
    """Заказ (ключи по заголовкам или snake_case) → строка из 31 ячейки."""
    row = []
    for column in HEADER_ORDER:
        value = order.get(column)
        if value in (None, ""):
            value = order.get(COL_TO_KEY[column])
        if column == "ID" and value in (None, ""):
            value = order.get("ID") or order.get("id")

        if column == "Estado" and not value:
            value = "Pendiente"
        elif column == "Estado de pago" and not value:
            value = "Debe Cliente"
        elif column == "Fechas":
            if value in (None, ""):
                value = order.get("fecha") or order.get("Fecha") or order.get("Fechas")
            value = normalize_fecha(value) if value not in (None, "") else ""
        elif column in ("Dist. [Km]", "Precio [Bs]") and value not in (None, ""):
            value = normalize_number(value)

        row.append("" if value is None else value)
    return row


def merge_rows(new_row: list, existing_row: list) -> list:
    """Пустое новое значение не затирает сохранённое (кроме CAN_BE_EMPTIED)."""
    merged = []
    for index, column in enumerate(HEADER_ORDER):
        new_value = new_row[index] if index < len(new_row) else ""
        existing_value = existing_row[index] if index < len(existing_row) else ""
        if not new_value and column not in CAN_BE_EMPTIED and existing_value:
            merged.append(existing_value)
        else:
            merged.append(new_value)
    return merged


def row_to_order(row: list) -> dict:
    return rows_to_dicts(HEADER_ORDER, [row])[0]


def find_row(ids: list[str], order_id: Any) -> int:
    """Номер строки листа (с 1) по ID в колонке A, пропуская заголовок; -1 если нет."""
    target = str(order_id).strip()
    for index, value in enumerate(ids[1:], start=2):
        if str(value).strip() == target:
            return index
    return -1


def valid_ids(ids: list[str]) -> list[int]:
    result = []
    for value in ids[1:]:
        number = parse_int(value)
        if number is not None and 0 < number < MAX_VALID_ID:
            result.append(number)
    return result


# ────────────── сервисы ──────────────
async def ensure_header_service(request: Request) -> None:
    sheets = request.app.state.sheets
    await sheets.ensure_worksheet(settings.SHEET_ID, settings.SHEET_NAME, cols=len(HEADER_ORDER))
    header = await sheets.get_range(settings.SHEET_ID, settings.SHEET_NAME, f"A1:{LAST_COLUMN}1")
    if not header or not any(header[0]):
        await sheets.update_range(settings.SHEET_ID, settings.SHEET_NAME, f"A1:{LAST_COLUMN}1", [HEADER_ORDER])
        await request.app.state.log.log_info("order", "Заголовок вкладки заказов записан")


async def create_order_service(order: dict, request: Request) -> dict:
    """
    Создание заказа. Существующий ID никогда не перезаписывается:
    при коллизии заказ получает max(ID) + 1, а в аудит пишется предупреждение.
    """
    sheets = request.app.state.sheets
    log = request.app.state.log
    audit = request.app.state.audit

    await ensure_header_service(request)
    ids = await sheets.column_values(settings.SHEET_ID, settings.SHEET_NAME, 1)

    order = dict(order)
    order_id = order.get("id") or order.get("ID")
    existing_row = find_row(ids, order_id) if order_id not in (None, "") else -1
    metadata = request_metadata(request, operator=order.get("Operador") or order.get("operador"))

    if existing_row > 0:
        numeric = [n for n in (parse_int(v) for v in ids[1:]) if n is not None and n > 0]
        new_id = max(numeric) + 1 if numeric else 1
        await log.log_warning(
            "order",
            "ID заказа уже существует, назначен новый",
            {"id": order_id, "row": existing_row, "newId": new_id},
        )
        order["id"] = str(new_id)
        order["ID"] = str(new_id)
        metadata["warning"] = f"ID duplicado detectado. Original: {order_id}, Nuevo: {new_id}"
        metadata["existingId"] = order_id

    row = build_row(order)
    await sheets.append_row(settings.SHEET_ID, settings.SHEET_NAME, row)
    await audit.log_entry("CREAR", order, metadata)

    await log.log_info("order", "Заказ создан", {"id": row[0]})
    return {"ok": True, "updated": existing_row > 0, "id": row[0]}


async def update_order_service(id: str, order: dict, request: Request) -> dict:
    """
    Обновление заказа по ID из пути.
    ID в теле игнорируется: колонка A всегда получает ID из пути.
    """
    sheets = request.app.state.sheets
    log = request.app.state.log
    audit = request.app.state.audit

    ids = await sheets.column_values(settings.SHEET_ID, settings.SHEET_NAME, 1)
    row_index = find_row(ids, id)
    if row_index == -1:
        await log.log_warning("order", "Заказ не найден для обновления", {"id": id})
        raise HTTPException(status_code=404, detail=f"Pedido #{id} no encontrado")

    body_id = order.get("ID") or order.get("id")
    if body_id not in (None, "") and str(body_id).strip() != str(id).strip():
        await log.log_warning("order", "ID в теле не совпадает с ID в пути", {"id": id, "bodyId": body_id})

    a1 = f"A{row_index}:{LAST_COLUMN}{row_index}"
    existing = await sheets.get_range(settings.SHEET_ID, settings.SHEET_NAME, a1)
    existing_row = existing[0] if existing else []
    before = row_to_order(existing_row)

    new_row = build_row(order)
    new_row[0] = str(id)
    merged = merge_rows(new_row, existing_row)

    updated_cells = await sheets.update_range(settings.SHEET_ID, settings.SHEET_NAME, a1, [merged])

    audit_data = {**order, "ID": str(id), "id": str(id)}
    metadata = request_metadata(
        request,
        operator=order.get("Operador") or order.get("operador"),
        rowIndex=row_index,
        updatedCells=updated_cells,
    )
    await audit.log_entry("EDITAR", audit_data, metadata, before=before, after=row_to_order(merged))

    await log.log_info("order", "Заказ обновлён", {"id": id, "row": row_index})
    return {
        "success": True,
        "message": f"Pedido #{id} actualizado exitosamente",
        "rowIndex": row_index,
        "updatedCells": updated_cells,
    }


async def read_orders_service(request: Request) -> dict:
    """Все заказы; строки без ID отбрасываются, Fechas нормализуется."""
    sheets = request.app.state.sheets
    log = request.app.state.log

    rows = await sheets.get_all_values(settings.SHEET_ID, settings.SHEET_NAME) or []
    if not rows:
        return {"data": [], "headers": [], "count": 0, "message": "No hay datos en el sheet"}

    headers = rows[0]
    data = []
    for order in rows_to_dicts(headers, rows[1:]):
        if "Fechas" in order and order["Fechas"]:
            order["Fechas"] = normalize_fecha(order["Fechas"])
        if str(order.get("ID") or order.get("id") or "").strip():
            data.append(order)

    await log.log_info("order", f"{len(data)} заказов загружено")
    return {
        "data": data,
        "headers": headers,
        "count": len(data),
        "message": f"{len(data)} registros cargados desde Google Sheets API",
    }


async def next_id_service(request: Request) -> dict:
    sheets = request.app.state.sheets
    log = request.app.state.log

    ids = await sheets.column_values(settings.SHEET_ID, settings.SHEET_NAME, 1)
    numbers = valid_ids(ids)
    ignored = [v for v in ids[1:] if (n := parse_int(v)) is not None and n >= MAX_VALID_ID]
    if ignored:
        await log.log_warning("order", "Найдены недопустимые ID (вероятно timestamp)", {"count": len(ignored)})

    max_id = max(numbers) if numbers else 0
    return {
        "success": True,
        "nextId": max_id + 1,
        "totalOrders": len(numbers),
        "maxExistingId": max_id,
    }


async def verify_id_service(id: str, request: Request) -> dict:
    sheets = request.app.state.sheets

    ids = await sheets.column_values(settings.SHEET_ID, settings.SHEET_NAME, 1)
    found_at = find_row(ids, id)
    if found_at > 0:
        return {"exists": True, "id": id, "foundAt": found_at, "message": f"El ID {id} ya está en uso"}
    return {"exists": False, "id": id, "message": f"El ID {id} está disponible"}


def find_header(headers: list[str], name: str) -> int:
    wanted = " ".join(name.lower().split())
    for index, header in enumerate(headers):
        if header and " ".join(str(header).lower().split()) == wanted:
            return index
    return -1


async def update_order_status_service(
    order_id: Any, new_status: str, additional_data: dict, request: Request
) -> dict:
    """
    Устаревшее обновление статуса с дополнительными полями.
    Оставлено для старых клиентов, новые используют PUT /api/orders/{id}.
    """
    sheets = request.app.state.sheets
    log = request.app.state.log

    await log.log_warning("order", "Вызван устаревший /api/update-order-status", {"orderId": order_id})

    rows = await sheets.get_all_values(settings.SHEET_ID, settings.SHEET_NAME) or []
    if not rows:
        raise HTTPException(status_code=404, detail="No se encontraron datos en el sheet")

    headers = rows[0]
    row_index = find_row([r[0] if r else "" for r in rows], order_id)
    if row_index == -1:
        raise HTTPException(status_code=404, detail=f"Pedido #{order_id} no encontrado")

    estado_index = next((i for i, h in enumerate(headers) if h and "estado" in h.lower()), -1)
    if estado_index == -1:
        raise HTTPException(status_code=500, detail="Columna Estado no encontrada en el sheet")

    row = list(rows[row_index - 1])
    row.extend([""] * (len(headers) - len(row)))
    row[estado_index] = new_status

    for field, column in STATUS_FIELD_MAPPING.items():
        value = additional_data.get(field)
        if value is None or (value == "" and field not in ALWAYS_UPDATE_FIELDS):
            continue
        column_index = find_header(headers, column)
        if column_index == -1:
            await log.log_warning("order", "Колонка не найдена в листе", {"column": column})
            continue
        if field == "fecha" and value:
            value = normalize_date_to_ddmmyyyy(value)
            if value:
                value = f"'{value}"
        row[column_index] = value

    last = column_letter(len(headers) - 1)
    updated_cells = await sheets.update_range(
        settings.SHEET_ID, settings.SHEET_NAME, f"A{row_index}:{last}{row_index}", [row]
    )

    await log.log_info("order", "Статус заказа обновлён", {"id": order_id, "status": new_status})
    return {
        "success": True,
        "message": f"Pedido #{order_id} actualizado a {new_status}",
        "updatedCells": updated_cells,
    }
