# pedidos/services/horarios.py

"""
Расписания водителей и байкеров.

Данные планировщика (drivers, disponibilidades, asignaciones) хранятся JSON-строкой
в ячейке Horarios!A1 таблицы HORARIOS_SHEET_ID, локальная копия лежит в
HORARIOS_BACKUP_PATH. Доступность на сегодня читается из вкладок с сеткой
«время × день недели», по одной вкладке на человека.
"""

import json
import os
import shutil
import time
from datetime import datetime, timezone
from typing import Any

import aiofiles
from fastapi import HTTPException, Request

from pedidos.config import settings
from pedidos.utils.dates import bolivia_now

STORE_TAB = "Horarios"
STORE_CELL = "A1"
SCHEDULE_RANGE = "A1:Z80"
KEEP_BACKUPS = 5
MAX_BLANK_ROWS = 5

DAY_LABELS = ["Domingo", "Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado"]
DAY_COLUMN_INDEX = {
    "Lunes": 1,
    "Martes": 2,
    "Miércoles": 3,
    "Jueves": 4,
    "Viernes": 5,
    "Sábado": 6,
    "Domingo": 7,
}
MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]
WORK_MARKERS = {"x", "✓", "si", "sí", "1"}


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def initial_data() -> dict:
    now = bolivia_now()
    return {
        "drivers": [],
        "disponibilidades": {},
        "autosAsignados": {},
        "asignacionesFinales": {},
        "mesActual": now.month - 1,
        "añoActual": now.year,
        "lastUpdated": utc_timestamp(),
    }


def day_label(now: datetime) -> str:
    # weekday(): понедельник = 0
    return DAY_LABELS[(now.weekday() + 1) % 7]


# ────────────── разбор вкладки расписания ──────────────
def cell(row: list, index: int) -> str:
    return str(row[index]).strip() if index < len(row) and row[index] is not None else ""


def find_cell(values: list[list], text: str) -> tuple[int, int] | None:
    target = text.strip().lower()
    for r, row in enumerate(values):
        for c, value in enumerate(row or []):
            if str(value or "").strip().lower() == target:
                return r, c
    return None


def normalize_slot(slot: str) -> str:
    """'08:00 - 12:00' → '08:00-12:00'."""
    clean = "".join(slot.split())
    if "-" in clean:
        start, end = clean.split("-")[:2]
        return f"{start}-{end}"
    return slot


def slot_minutes(value: str | None) -> int | None:
    if not value:
        return None
    parts = value.split(":")
    if len(parts) < 2:
        return None
    try:
        return int(parts[0]) * 60 + int(parts[1])
    except ValueError:
        return None


def parse_schedule_sheet(values: list[list], today: str, now_minutes: int) -> dict:
    """
    Сводка по вкладке одного человека.

    - slotsToday: интервалы из колонки A с отметкой (x, ✓, si, sí, 1) в колонке дня;
    - availableNow / nextSlot: текущий интервал и ближайший следующий;
    - workingDays: дни с данными в блоке месяца (строка с названием месяца);
    - autoByDay / autoToday: блок AUTO ASIGNADO.
    """
    info = {
        "slotsToday": [],
        "workingDays": [],
        "autoByDay": {},
        "worksToday": False,
        "availableNow": False,
        "nextSlot": None,
        "autoToday": None,
    }
    if not values or today not in DAY_COLUMN_INDEX:
        return info

    day_col = DAY_COLUMN_INDEX[today]
    seen_time = False
    blank_rows = 0
    for row in values[1:]:
        row = row or []
        time_range = cell(row, 0)
        if not time_range:
            if seen_time:
                blank_rows += 1
                if blank_rows > MAX_BLANK_ROWS:
                    break
            continue
        seen_time = True
        blank_rows = 0
        if cell(row, day_col).lower() in WORK_MARKERS:
            info["slotsToday"].append(normalize_slot(time_range))

    if info["slotsToday"]:
        info["worksToday"] = True
        for slot in info["slotsToday"]:
            start_raw, _, end_raw = slot.partition("-")
            start, end = slot_minutes(start_raw), slot_minutes(end_raw)
            if start is None or end is None:
                continue
            if start <= now_minutes < end:
                info["availableNow"] = True
                break
            if now_minutes < start and not info["nextSlot"]:
                info["nextSlot"] = slot

    month_cell = next((found for found in (find_cell(values, m) for m in MONTHS_ES) if found), None)
    if month_cell:
        month_row = month_cell[0]
        header = values[month_row + 2] if month_row + 2 < len(values) else []
        data_rows = []
        for row in values[month_row + 3:]:
            row = row or []
            if "auto asignado" in cell(row, 0).lower():
                break
            if all(not str(v or "").strip() for v in row):
                break
            data_rows.append(row)

        for index, name in enumerate(header or []):
            name = str(name or "").strip()
            if name in DAY_COLUMN_INDEX and any(cell(row, index) for row in data_rows):
                info["workingDays"].append(name)
        info["worksToday"] = today in info["workingDays"]

    auto_cell = find_cell(values, "AUTO ASIGNADO")
    if auto_cell:
        auto_row = auto_cell[0]
        header = values[auto_row + 1] if auto_row + 1 < len(values) else []
        autos = values[auto_row + 2] if auto_row + 2 < len(values) else []
        for index, name in enumerate(header or []):
            name = str(name or "").strip()
            value = cell(autos or [], index)
            if name in DAY_COLUMN_INDEX and value:
                info["autoByDay"][name] = value
        info["autoToday"] = info["autoByDay"].get(today)

    return info


# ────────────── локальная копия ──────────────
def backup_path() -> str:
    return settings.HORARIOS_BACKUP_PATH


async def read_local() -> dict | None:
    path = backup_path()
    if not os.path.exists(path):
        return None
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        data = json.loads(await f.read())
    if not isinstance(data, dict):
        raise ValueError(f"{path}: ожидался JSON-объект")
    return data


async def write_local(data: dict) -> None:
    path = backup_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(json.dumps(data, indent=2, ensure_ascii=False))


def copy_local(prefix: str) -> str | None:
    """Копия текущего файла рядом с ним: {prefix}.{ms}.json."""
    path = backup_path()
    if not os.path.exists(path):
        return None
    target = os.path.join(os.path.dirname(path) or ".", f"{prefix}.{int(time.time() * 1000)}.json")
    shutil.copyfile(path, target)
    return target


def prune_backups(prefix: str = "horarios.backup.", keep: int = KEEP_BACKUPS) -> list[str]:
    folder = os.path.dirname(backup_path()) or "."
    names = sorted((f for f in os.listdir(folder) if f.startswith(prefix)), reverse=True)
    for name in names[keep:]:
        os.remove(os.path.join(folder, name))
    return names[keep:]


# ────────────── Google Sheets ──────────────
async def load_from_sheet(request: Request) -> dict:
    values = await request.app.state.sheets.get_range(settings.HORARIOS_SHEET_ID, STORE_TAB, STORE_CELL)
    if not values or not values[0] or not values[0][0]:
        return initial_data()
    data = json.loads(values[0][0])
    if not isinstance(data, dict):
        raise ValueError("Horarios!A1: ожидался JSON-объект")
    return data


async def save_to_sheet(data: dict, request: Request) -> bool:
    """Запись в Horarios!A1. Ошибка только логируется: локальная копия всё равно пишется."""
    if not settings.HORARIOS_SHEET_ID:
        return False
    try:
        await request.app.state.sheets.update_range(
            settings.HORARIOS_SHEET_ID, STORE_TAB, STORE_CELL, [[json.dumps(data, indent=2, ensure_ascii=False)]]
        )
    except Exception as e:
        await request.app.state.log.log_error("horarios", f"Ошибка сохранения расписаний в Google Sheets: {e}")
        return False
    return True


def summary(data: dict) -> dict:
    drivers = data.get("drivers")
    return {
        "drivers": len(drivers) if isinstance(drivers, list) else 0,
        "mesActual": data.get("mesActual"),
        "añoActual": data.get("añoActual"),
    }


# ────────────── операции ──────────────
async def read_horarios_service(request: Request) -> dict:
    log = request.app.state.log

    if not settings.HORARIOS_SHEET_ID:
        local = await read_local()
        return {
            "success": True,
            "data": local if local is not None else initial_data(),
            "message": "Datos de horarios cargados desde backup local",
        }

    try:
        data = await load_from_sheet(request)
    except Exception as e:
        await log.log_warning("horarios", f"Google Sheets недоступен, читаем локальную копию: {e}")
        try:
            local = await read_local()
        except (OSError, ValueError) as local_error:
            await log.log_error("horarios", f"Ошибка чтения локальной копии: {local_error}")
            local = None
        if local is None:
            raise HTTPException(
                status_code=500, detail={"error": "Error leyendo datos de horarios", "details": str(e)}
            ) from e
        return {"success": True, "data": local, "message": "Datos de horarios cargados desde backup local"}

    await write_local(data)
    await log.log_info("horarios", "Расписания загружены", summary(data))
    return {
        "success": True,
        "data": data,
        "message": "Datos de horarios cargados exitosamente desde Google Sheets",
    }


async def save_horarios_service(payload: Any, request: Request) -> dict:
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Datos de horarios inválidos")
    log = request.app.state.log

    data = {**payload, "lastUpdated": utc_timestamp()}
    backup = copy_local("horarios.backup")
    if backup:
        removed = prune_backups()
        await log.log_info("horarios", "Создана резервная копия расписаний", {"backup": backup, "removed": removed})

    await save_to_sheet(data, request)
    await write_local(data)
    await log.log_info("horarios", "Расписания сохранены", summary(data))
    return {
        "success": True,
        "message": "Datos de horarios guardados exitosamente en Google Sheets",
        "timestamp": data["lastUpdated"],
    }


async def restore_horarios_service(payload: Any, request: Request) -> dict:
    """Восстановление из загруженного JSON; текущий файл сначала копируется."""
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Datos de horarios inválidos")

    stamp = utc_timestamp()
    data = {**payload, "lastUpdated": stamp, "restoredAt": stamp}
    backup = copy_local("horarios.before-restore")
    await write_local(data)
    await save_to_sheet(data, request)
    await request.app.state.log.log_info("horarios", "Расписания восстановлены", {"backup": backup, **summary(data)})
    return {"success": True, "message": "Datos restaurados exitosamente", "timestamp": stamp}


def download_path() -> str:
    path = backup_path()
    if not os.path.exists(path):
        raise HTTPException(status_code=404, detail="Archivo horarios.json no encontrado")
    return path


async def availability_today_service(tipo: str, request: Request, now: datetime | None = None) -> dict:
    sheets = request.app.state.sheets
    log = request.app.state.log

    bikers = tipo == "bikers"
    sheet_id = settings.HORARIOS_BIKERS_SHEET_ID if bikers else settings.HORARIOS_SHEET_ID
    if not sheet_id:
        raise HTTPException(
            status_code=400,
            detail="HORARIOS_BIKERS_SHEET_ID no configurado" if bikers else "HORARIOS_SHEET_ID no configurado",
        )

    now = now or bolivia_now()
    today = day_label(now)
    now_minutes = now.hour * 60 + now.minute

    if bikers:
        tabs = [t for t in await sheets.worksheet_titles(sheet_id) if t and "copia" not in t.lower()]
    else:
        tabs = settings.as_list(settings.HORARIOS_DRIVER_TABS)

    people = []
    for tab in tabs:
        values = await sheets.get_range(sheet_id, tab, SCHEDULE_RANGE)
        if values is None:
            await log.log_warning("horarios", "Вкладка расписания не найдена", {"tab": tab})
            continue
        people.append({"driver": tab, **parse_schedule_sheet(values, today, now_minutes)})

    await log.log_info("horarios", "Доступность на сегодня", {"tipo": tipo, "day": today, "count": len(people)})
    return {
        "success": True,
        "tipo": "bikers" if bikers else "drivers",
        "label": "Bikers" if bikers else "Drivers",
        "day": today,
        "date": now.isoformat(timespec="milliseconds"),
        "drivers": people,
    }
