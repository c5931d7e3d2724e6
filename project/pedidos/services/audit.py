# pedidos/services/audit.py

"""
Журнал аудита операций с заказами.
Один JSON-файл (массив записей), при превышении лимита уходит в backup-файл.
"""

import asyncio
import json
import math
import os
import shutil
import time
from datetime import datetime, timezone
from typing import Any

import aiofiles

from pedidos.config import settings
from pedidos.utils.dates import bolivia_timestamp

LOG_FILENAME = "audit-log.json"
BACKUP_PREFIX = "audit-log-backup-"


def as_text(value: Any) -> str:
    """Строковое представление для сравнения значений до/после."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def detect_changes(before: dict | None, after: dict | None) -> dict:
    before = before or {}
    after = after or {}
    changes = {}
    for key in dict.fromkeys([*before, *after]):
        if as_text(before.get(key)) != as_text(after.get(key)):
            changes[key] = {"before": before.get(key), "after": after.get(key)}
    return changes


def request_metadata(request, operator: str | None = None, **extra) -> dict:
    """Метаданные запроса для записи аудита: оператор, IP, User-Agent."""
    metadata = {
        "operator": operator,
        "ip": request.client.host if request.client else None,
        "userAgent": request.headers.get("user-agent"),
    }
    metadata.update(extra)
    return metadata


def format_bytes(size: int) -> str:
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    return f"{round(size / 1024 ** i, 2):g} {units[i]}"


class AuditLog:
    def __init__(self, log_dir: str | None = None, max_bytes: int | None = None, log=None):
        self.log_dir = log_dir or settings.AUDIT_LOG_DIR
        self.max_bytes = max_bytes or settings.AUDIT_MAX_BYTES
        self.log = log
        self.lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return os.path.join(self.log_dir, LOG_FILENAME)

    def backup_files(self) -> list[str]:
        if not os.path.isdir(self.log_dir):
            return []
        return sorted(
            f for f in os.listdir(self.log_dir) if f.startswith(BACKUP_PREFIX) and f.endswith(".json")
        )

    async def read_entries(self, path: str) -> list[dict]:
        """
        Читает массив записей из файла.
        ValueError, если файл не UTF-8, не JSON или не массив.
        """
        if not os.path.exists(path):
            return []
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
        if not content.strip():
            return []
        entries = json.loads(content)
        if not isinstance(entries, list):
            raise ValueError(f"{path}: ожидался JSON-массив")
        return [e for e in entries if isinstance(e, dict)]

    async def all_entries(self) -> list[dict]:
        """Записи основного файла и всех backups. Повреждённые файлы пропускаются."""
        paths = [self.path] + [os.path.join(self.log_dir, f) for f in self.backup_files()]
        results = []
        for path in paths:
            try:
                results.extend(await self.read_entries(path))
            except ValueError:
                continue
        return results

    async def write_entries(self, path: str, entries: list[dict]) -> None:
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(self.dump(entries))

    @staticmethod
    def dump(entries: list[dict]) -> str:
        return json.dumps(entries, indent=2, ensure_ascii=False, default=str)

    async def log_entry(
        self,
        action: str,
        data: dict,
        metadata: dict | None = None,
        before: dict | None = None,
        after: dict | None = None,
    ) -> dict | None:
        """
        Добавляет запись аудита.
        Ошибка записи логируется и не прерывает основную операцию.
        """
        metadata = dict(metadata or {})
        action = action.upper()
        entry = {
            "timestamp": bolivia_timestamp(),
            "action": action,
            "orderId": data.get("ID") or data.get("id") or "UNKNOWN",
            "operator": metadata.get("operator") or data.get("Operador") or data.get("operador") or "SYSTEM",
            "ip": metadata.get("ip") or "UNKNOWN",
            "userAgent": metadata.get("userAgent") or "UNKNOWN",
            "data": dict(data),
            "metadata": {**metadata, "logFile": LOG_FILENAME},
        }
        if action == "EDITAR" and before:
            entry["before"] = dict(before)
            entry["changes"] = detect_changes(before, after if after is not None else data)

        try:
            async with self.lock:
                os.makedirs(self.log_dir, exist_ok=True)
                try:
                    entries = await self.read_entries(self.path)
                except ValueError:
                    corrupt = f"{self.path}.backup.{int(time.time() * 1000)}"
                    shutil.copyfile(self.path, corrupt)
                    if self.log:
                        await self.log.log_warning("audit", "Файл аудита повреждён, создан backup", {"backup": corrupt})
                    entries = []

                entries.append(entry)
                if len(self.dump(entries).encode("utf-8")) > self.max_bytes:
                    stamp = datetime.now(timezone.utc).isoformat().replace(":", "-").replace(".", "-")
                    backup = os.path.join(self.log_dir, f"{BACKUP_PREFIX}{stamp}.json")
                    await self.write_entries(backup, entries[:-1])
                    entries = [entry]
                    if self.log:
                        await self.log.log_info("audit", "Файл аудита ротирован", {"backup": backup})

                await self.write_entries(self.path, entries)
        except Exception as e:
            if self.log:
                await self.log.log_error("audit", f"Ошибка записи аудита: {e}", {"orderId": entry["orderId"]})
            return None
        return entry

    async def logs_for_order(self, order_id: str) -> list[dict]:
        """Все записи по заказу (основной файл + backups), новые первыми."""
        results = [e for e in await self.all_entries() if str(e.get("orderId")) == str(order_id)]
        results.sort(key=lambda e: e.get("timestamp", ""), reverse=True)
        return results

    async def stats(self) -> dict:
        stats = {
            "totalOperations": 0,
            "byAction": {},
            "byOperator": {},
            "byDate": {},
            "recentOverwrites": [],
            "suspiciousActivities": [],
        }
        try:
            entries = await self.read_entries(self.path)
        except ValueError:
            return stats

        stats["totalOperations"] = len(entries)
        for entry in entries:
            action = entry.get("action")
            operator = entry.get("operator")
            day = str(entry.get("timestamp", "")).split("T")[0]
            stats["byAction"][action] = stats["byAction"].get(action, 0) + 1
            stats["byOperator"][operator] = stats["byOperator"].get(operator, 0) + 1
            stats["byDate"][day] = stats["byDate"].get(day, 0) + 1

            metadata = entry.get("metadata") or {}
            if action == "CREAR" and metadata.get("existingId"):
                stats["recentOverwrites"].append(
                    {"orderId": entry.get("orderId"), "timestamp": entry.get("timestamp"), "operator": operator}
                )
            reason = metadata.get("warning") or metadata.get("suspicious")
            if reason:
                stats["suspiciousActivities"].append(
                    {
                        "orderId": entry.get("orderId"),
                        "action": action,
                        "timestamp": entry.get("timestamp"),
                        "operator": operator,
                        "reason": reason,
                    }
                )
        return stats

    async def list_files(self) -> dict:
        result = {"main": None, "backups": []}
        if os.path.exists(self.path):
            st = os.stat(self.path)
            try:
                entries = await self.read_entries(self.path)
            except ValueError:
                entries = []
            result["main"] = {
                "filename": LOG_FILENAME,
                "path": self.path,
                "size": st.st_size,
                "sizeHuman": format_bytes(st.st_size),
                "entries": len(entries),
                "modified": datetime.fromtimestamp(st.st_mtime, timezone.utc).isoformat(),
                "oldestEntry": entries[0].get("timestamp") if entries else None,
                "newestEntry": entries[-1].get("timestamp") if entries else None,
            }

        backups = []
        for name in self.backup_files():
            path = os.path.join(self.log_dir, name)
            st = os.stat(path)
            backups.append(
                {
                    "filename": name,
                    "path": path,
                    "size": st.st_size,
                    "sizeHuman": format_bytes(st.st_size),
                    "modified": datetime.fromtimestamp(st.st_mtime, timezone.utc).isoformat(),
                    "_mtime": st.st_mtime,
                }
            )
        backups.sort(key=lambda b: b["_mtime"], reverse=True)
        for b in backups:
            b.pop("_mtime")
        result["backups"] = backups
        return result
