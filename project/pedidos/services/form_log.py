# pedidos/services/form_log.py
# Логи формы заказа из браузера → CSV (с BOM для Excel)

import json
import os

import aiofiles

from pedidos.config import settings

CSV_FIELDS = ["timestamp", "action", "status", "data", "error", "userAgent", "url"]


def csv_field(value) -> str:
    if value is None or value == "":
        return ""
    text = json.dumps(value, ensure_ascii=False) if isinstance(value, (dict, list)) else str(value)
    if any(ch in text for ch in '",\n'):
        return '"' + text.replace('"', '""') + '"'
    return text


def logs_to_csv(logs: list[dict]) -> str:
    lines = [",".join(CSV_FIELDS)]
    for entry in logs:
        entry = entry if isinstance(entry, dict) else {}
        lines.append(",".join(csv_field(entry.get(field)) for field in CSV_FIELDS))
    return "\n".join(lines) + "\n"


async def save_form_logs(logs: list[dict], path: str | None = None) -> str:
    """Перезаписывает CSV файл логов, возвращает путь."""
    path = path or settings.FORM_LOGS_PATH
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write("\ufeff" + logs_to_csv(logs))
    return path
