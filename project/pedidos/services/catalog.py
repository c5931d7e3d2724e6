# pedidos/services/catalog.py
# Справочники: компании, байкеры, информация о клиентах

from datetime import date

from fastapi import HTTPException, Request

from pedidos.config import settings
from pedidos.services.order import parse_int
from pedidos.utils.dates import parse_ddmmyyyy
from pedidos.utils.sheets import rows_to_dicts

EMPRESAS_TAB = "Clientes"
BIKERS_TAB = "Bikers"


async def create_empresa_service(empresa: dict, request: Request) -> dict:
    """Новая компания в таблице клиентов: Fecha, Operador, Empresa, Mapa, Descripción."""
    row = [
        empresa.get("Fecha") or "",
        empresa.get("Operador") or "",
        empresa.get("Empresa") or "",
        empresa.get("Mapa") or "",
        empresa.get("Descripción") or "",
    ]
    await request.app.state.sheets.append_row(
        settings.EMPRESAS_SHEET_ID, EMPRESAS_TAB, row, value_input_option="USER_ENTERED"
    )
    await request.app.state.log.log_info("catalog", "Компания добавлена", {"empresa": row[2]})
    return {"ok": True, "message": f'Empresa "{row[2]}" agregada exitosamente'}


async def create_biker_service(biker: dict, request: Request) -> dict:
    row = [biker.get("Biker") or "", biker.get("Whatsapp") or ""]
    await request.app.state.sheets.append_row(
        settings.BIKERS_SHEET_ID, BIKERS_TAB, row, value_input_option="USER_ENTERED"
    )
    await request.app.state.log.log_info("catalog", "Байкер добавлен", {"biker": row[0]})
    return {"ok": True, "message": f'Biker "{row[0]}" agregado exitosamente'}


def client_matches(name: str, term: str) -> bool:
    """
    Имя содержит искомую строку, либо строка начинается
    с префикса имени той же длины.
    """
    name = name.lower().strip()
    if not name:
        return False
    return term in name or name[: len(term)] in term


async def client_info_service(client_name: str, request: Request) -> dict:
    term = (client_name or "").lower().strip()
    if not term:
        raise HTTPException(status_code=400, detail="Nombre del cliente es requerido")
    if not settings.CLIENT_INFO_SHEET_ID:
        raise HTTPException(status_code=500, detail="CLIENT_INFO_SHEET_ID no configurado")

    rows = await request.app.state.sheets.get_range(
        settings.CLIENT_INFO_SHEET_ID, settings.CLIENT_INFO_SHEET_NAME, "A:F"
    ) or []

    data = []
    for row in rows[1:]:
        cells = list(row) + [""] * (6 - len(row))
        if client_matches(cells[0], term):
            data.append(
                {
                    "nombreCliente": cells[0],
                    "cuenta": cells[1],
                    "procedimientos": cells[2],
                    "etiqueta": cells[3],
                    "envios": cells[4],
                    "tipoPago": cells[5],
                }
            )

    await request.app.state.log.log_info("catalog", "Поиск информации о клиенте", {"term": term, "count": len(data)})
    return {"data": data}


# ────────────── Plantilla Empresas ──────────────
TOTAL_ROW_MARKERS = [
    "TOTAL CARRERAS", "SUBTOTAL CARRERAS", "DESCUENTO", "TOTAL COBROS", "COBROS ADICIONALES",
    "COBROS/PAGOS", "TOTAL PAGOS", "PAGOS", "CUENTA TOTAL",
]
SUMMARY_ROW_MARKERS = ["TOTAL", "DESCUENTO", "COBROS/PAGOS", "CUENTA TOTAL"]


def summary_text(item: dict) -> str:
    """Подписи итогов стоят в колонке Entrega, иногда в Recojo."""
    entrega = str(item.get("Entrega") or "").upper().strip()
    return entrega or str(item.get("Recojo") or "").upper().strip()


def template_date(value) -> date | None:
    text = str(value or "").strip()
    if "/" in text:
        return parse_ddmmyyyy(text)
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def query_date(value: str | None, name: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{name} debe tener formato YYYY-MM-DD") from None


def in_range(item: dict, start: date | None, end: date | None) -> bool:
    day = template_date(item.get("Fecha"))
    if day is None:
        return False
    return (start is None or day >= start) and (end is None or day <= end)


async def read_template_service(fecha_inicio: str | None, fecha_fin: str | None, request: Request) -> dict:
    """
    Вкладка «Plantilla Empresas» (A:I): строки заказов с числовым ID без строк итогов,
    опционально в диапазоне дат по колонке Fecha; строки итогов отдельно.
    """
    if not settings.SHEET_ID:
        raise HTTPException(status_code=400, detail="SHEET_ID no configurado")
    start = query_date(fecha_inicio, "fechaInicio")
    end = query_date(fecha_fin, "fechaFin")
    title = settings.PLANTILLA_EMPRESAS_SHEET_NAME

    rows = await request.app.state.sheets.get_range(settings.SHEET_ID, title, "A:I") or []
    if not rows:
        return {"success": True, "data": [], "headers": [], "message": f'No hay datos en el sheet "{title}"'}

    headers = rows[0]
    items = rows_to_dicts(headers, rows[1:])

    data = []
    for item in items:
        order_id = parse_int(item.get("ID") or item.get("id"))
        is_total = any(marker in summary_text(item) for marker in TOTAL_ROW_MARKERS)
        if order_id and order_id > 0 and not is_total:
            data.append(item)
    if start or end:
        data = [item for item in data if in_range(item, start, end)]

    totals = [item for item in items if any(marker in summary_text(item) for marker in SUMMARY_ROW_MARKERS)]

    await request.app.state.log.log_info(
        "catalog", "Plantilla Empresas прочитана", {"count": len(data), "totals": len(totals), "from": fecha_inicio, "to": fecha_fin}
    )
    return {
        "success": True,
        "data": data,
        "filasTotales": totals,
        "headers": headers,
        "count": len(data),
        "message": f'{len(data)} registros cargados desde "{title}"',
    }
