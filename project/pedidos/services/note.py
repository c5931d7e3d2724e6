# pedidos/services/note.py

"""
Заметки команды во вкладке Notas:
ID, Estado, Fecha Creación, Operador, Descripción, Resuelto por, Fecha Resolución, Descripción resolución.
Удаление мягкое: статус Eliminado, дата удаления в колонке G.
"""

from fastapi import HTTPException, Request

from pedidos.config import settings
from pedidos.services.order import parse_int
from pedidos.utils.dates import bolivia_date
from pedidos.utils.errors import SheetsUnavailableError

NOTE_HEADERS = [
    "ID",
    "Estado",
    "Fecha Creación",
    "Operador",
    "Descripción",
    "Resuelto por",
    "Fecha Resolución",
    "Descripción resolución",
]

PENDIENTE = "Pendiente"
RESUELTO = "Resuelto"
ELIMINADO = "Eliminado"


def normalize_key(header: str) -> str:
    return "_".join(header.lower().split()).replace(".", "")


def row_to_note(headers: list[str], row: list[str]) -> dict:
    note = {}
    for index, header in enumerate(headers):
        value = row[index] if index < len(row) else ""
        note[normalize_key(header)] = value
        note[header] = value
    return note


async def read_notes_rows(request: Request) -> list[list[str]] | None:
    return await request.app.state.sheets.get_all_values(settings.SHEET_ID, settings.NOTES_SHEET_NAME)


async def find_note_row(note_id: str, request: Request) -> tuple[int, list[str]]:
    """(номер строки листа, значения строки); 404 если заметки нет."""
    rows = await read_notes_rows(request) or []
    for number, row in enumerate(rows[1:], start=2):
        if row and str(row[0]) == str(note_id):
            return number, row
    raise HTTPException(status_code=404, detail=f"Nota #{note_id} no encontrada")


async def read_notes_service(request: Request) -> dict:
    rows = await read_notes_rows(request)
    if rows is None:
        return {
            "notes": [],
            "count": 0,
            "message": (
                f'La pestaña "{settings.NOTES_SHEET_NAME}" aún no existe en el Google Sheet. '
                f"Crea la pestaña con los headers: {', '.join(NOTE_HEADERS)}"
            ),
        }
    if not rows:
        return {"notes": [], "count": 0, "message": "No hay notas"}

    headers = rows[0]
    notes = [row_to_note(headers, row) for row in rows[1:]]
    notes = [n for n in notes if str(n.get("id") or n.get("ID") or "").strip()]

    await request.app.state.log.log_info("note", f"{len(notes)} заметок загружено")
    return {"notes": notes, "count": len(notes), "message": f"{len(notes)} notas cargadas"}


async def pending_count_service(request: Request) -> dict:
    """Счётчик для бейджа в интерфейсе: при любой недоступности листа → 0."""
    try:
        rows = await read_notes_rows(request) or []
    except SheetsUnavailableError:
        return {"count": 0}

    count = 0
    for row in rows[1:]:
        note_id = str(row[0]).strip() if row else ""
        estado = (row[1] if len(row) > 1 else "").lower()
        if note_id and estado not in ("resuelto", "eliminado"):
            count += 1
    return {"count": count}


async def create_note_service(descripcion: str, operador: str, estado: str | None, request: Request) -> dict:
    sheets = request.app.state.sheets

    ids = await sheets.column_values(settings.SHEET_ID, settings.NOTES_SHEET_NAME, 1)
    next_id = (parse_int(ids[-1]) or 0) + 1 if len(ids) > 1 else 1

    row = [next_id, estado or PENDIENTE, bolivia_date(), operador, descripcion, "", "", ""]
    await sheets.append_row(settings.SHEET_ID, settings.NOTES_SHEET_NAME, row)

    await request.app.state.log.log_info("note", "Заметка создана", {"id": next_id, "operador": operador})
    return {"success": True, "id": next_id, "message": f"Nota #{next_id} creada exitosamente"}


async def update_note_service(note_id: str, descripcion: str, request: Request) -> dict:
    row_number, row = await find_note_row(note_id, request)

    estado = row[1] if len(row) > 1 else ""
    if estado.lower() != "pendiente":
        raise HTTPException(status_code=400, detail="Solo se pueden editar notas pendientes")

    await request.app.state.sheets.update_range(
        settings.SHEET_ID, settings.NOTES_SHEET_NAME, f"E{row_number}", [[descripcion]]
    )
    await request.app.state.log.log_info("note", "Заметка обновлена", {"id": note_id})
    return {"success": True, "message": f"Nota #{note_id} actualizada exitosamente"}


async def resolve_note_service(
    note_id: str, resuelto_por: str, estado: str | None, descripcion_resolucion: str | None, request: Request
) -> dict:
    row_number, _ = await find_note_row(note_id, request)

    await request.app.state.sheets.batch_update(
        settings.SHEET_ID,
        settings.NOTES_SHEET_NAME,
        {
            f"B{row_number}": estado or RESUELTO,
            f"F{row_number}": resuelto_por,
            f"G{row_number}": bolivia_date(),
            f"H{row_number}": descripcion_resolucion or "",
        },
    )
    await request.app.state.log.log_info("note", "Заметка решена", {"id": note_id, "by": resuelto_por})
    return {"success": True, "message": f"Nota #{note_id} marcada como resuelta"}


async def unresolve_note_service(note_id: str, request: Request) -> dict:
    row_number, _ = await find_note_row(note_id, request)

    await request.app.state.sheets.batch_update(
        settings.SHEET_ID,
        settings.NOTES_SHEET_NAME,
        {f"B{row_number}": PENDIENTE, f"F{row_number}": "", f"G{row_number}": "", f"H{row_number}": ""},
    )
    await request.app.state.log.log_info("note", "Заметка возвращена в работу", {"id": note_id})
    return {"success": True, "message": f"Nota #{note_id} marcada como pendiente"}


async def delete_note_service(note_id: str, request: Request) -> dict:
    row_number, _ = await find_note_row(note_id, request)

    await request.app.state.sheets.batch_update(
        settings.SHEET_ID,
        settings.NOTES_SHEET_NAME,
        {f"B{row_number}": ELIMINADO, f"F{row_number}": "", f"G{row_number}": bolivia_date()},
    )
    await request.app.state.log.log_info("note", "Заметка удалена", {"id": note_id})
    return {"success": True, "message": f"Nota #{note_id} eliminada exitosamente"}
