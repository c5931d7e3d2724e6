# pedidos/services/client.py

"""
Портал клиента: собственные заявки и инвентарь компании.
Пользователь берётся из JWT (роль cliente).
"""

import re

from fastapi import HTTPException, Request

from pedidos.config import settings
from pedidos.services.client_order import read_client_rows
from pedidos.utils.sheets import rows_to_dicts

INVENTORY_RANGE = "A1:L100"

DRIVE_ID_PATTERNS = [
    re.compile(r"/file/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"[?&]id=([a-zA-Z0-9_-]+)"),
    re.compile(r"/d/([a-zA-Z0-9_-]+)"),
]


def drive_file_id(url: str) -> str | None:
    for pattern in DRIVE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def resolve_image_url(value: str) -> str | None:
    """
    Ссылка Google Drive → прямая ссылка на превью,
    прочие http(s) ссылки остаются как есть.
    """
    value = (value or "").strip()
    if not value:
        return None
    if "drive.google.com" in value:
        file_id = drive_file_id(value)
        return f"https://drive.google.com/thumbnail?id={file_id}&sz=w1000" if file_id else value
    if value.startswith(("http://", "https://")):
        return value
    return None


def find_column(headers: list[str], *needles: str) -> int:
    for index, header in enumerate(headers):
        if header and any(n in header.lower() for n in needles):
            return index
    return -1


def build_products(headers: list[str], rows: list[list[str]]) -> list[dict]:
    photo_index = find_column(headers, "foto", "photo")
    url_index = find_column(headers, "url_imagen", "url imagen", "imagen_url")

    products = []
    for number, row in enumerate(rows, start=2):
        product = rows_to_dicts(headers, [row])[0]

        image = None
        if url_index >= 0 and url_index < len(row):
            image = resolve_image_url(row[url_index])
        if not image and photo_index >= 0 and photo_index < len(row):
            photo = (row[photo_index] or "").strip()
            if photo.startswith(("http://", "https://")):
                image = photo
        if image and photo_index >= 0:
            product[headers[photo_index]] = image

        product["_rowNumber"] = number
        if product.get("Producto"):
            products.append(product)
    return products


async def client_orders_service(user: dict, request: Request) -> dict:
    """Заявки из вкладки Clientes, где Cliente совпадает с empresa или username."""
    log = request.app.state.log
    empresa = user.get("empresa")
    username = user.get("username")

    rows = await read_client_rows(request)
    if not rows:
        return {
            "success": True,
            "data": [],
            "headers": [],
            "count": 0,
            "empresa": empresa,
            "message": "No hay datos en la pestaña Clientes",
        }

    headers = rows[0]
    wanted = {str(v).lower() for v in (empresa, username) if v}
    data = [
        item
        for item in rows_to_dicts(headers, rows[1:])
        if str(item.get("Cliente") or item.get("cliente") or "").lower() in wanted
    ]

    await log.log_info("client", "Заявки клиента загружены", {"username": username, "count": len(data)})
    return {"success": True, "data": data, "headers": headers, "count": len(data), "empresa": empresa}


async def client_inventory_service(user: dict, request: Request) -> dict:
    sheets = request.app.state.sheets
    log = request.app.state.log

    stored = await request.app.state.users.get_user_by_username(user.get("username", ""))
    if not stored:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")
    sheet_tab = stored.get("sheetTab")
    if not sheet_tab:
        raise HTTPException(status_code=404, detail="Usuario no tiene pestaña de inventario asignada")
    if not settings.INVENTARIO_SHEET_ID:
        raise HTTPException(status_code=500, detail="INVENTARIO_SHEET_ID no configurado en el servidor")

    titles = await sheets.worksheet_titles(settings.INVENTARIO_SHEET_ID)
    if sheet_tab not in titles:
        await log.log_warning("client", "Вкладка инвентаря не найдена", {"sheetTab": sheet_tab})
        raise HTTPException(
            status_code=404,
            detail={
                "error": "Pestaña de inventario no encontrada",
                "details": (
                    f'La pestaña "{sheet_tab}" no existe. '
                    f"Pestañas disponibles: {', '.join(titles)}"
                ),
                "availableSheets": titles,
            },
        )

    rows = await sheets.get_range(settings.INVENTARIO_SHEET_ID, sheet_tab, INVENTORY_RANGE) or []
    products = build_products(rows[0], rows[1:]) if rows else []

    await log.log_info("client", "Инвентарь загружен", {"sheetTab": sheet_tab, "count": len(products)})
    return {"success": True, "data": products, "sheetTab": sheet_tab, "empresa": stored.get("empresa")}
