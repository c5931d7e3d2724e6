"""compare_audit.py

Сверка журнала аудита с вкладкой заказов.
Заказы, для которых в журнале есть CREAR, но ID которых уже нет в колонке A,
считаются удалёнными из листа. Читаются основной файл журнала и все его backups.

Использование:
    pedidos-compare-audit
    pedidos-compare-audit --sheet-id <id> --sheet-name Registros --audit-dir logs/audit --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Dict, Iterable, List, Set

from pedidos.config import settings
from pedidos.services.audit import AuditLog
from pedidos.utils.sheets import SheetsGateway


def created_ids(entries: Iterable[dict]) -> Dict[str, str]:
    """ID заказа → время первой записи CREAR."""
    created: Dict[str, str] = {}
    for entry in sorted(entries, key=lambda e: str(e.get("timestamp", ""))):
        if entry.get("action") != "CREAR":
            continue
        order_id = str(entry.get("orderId", "")).strip()
        if order_id and order_id != "UNKNOWN":
            created.setdefault(order_id, entry.get("timestamp") or "")
    return created


def id_sort_key(order_id: str):
    # нечисловые ID в конце
    return (0, int(order_id), "") if order_id.isdigit() else (1, 0, order_id)


def find_missing(created: Dict[str, str], sheet_ids: Set[str]) -> List[dict]:
    missing = [order_id for order_id in created if order_id not in sheet_ids]
    return [{"orderId": order_id, "createdAt": created[order_id]} for order_id in sorted(missing, key=id_sort_key)]


async def fetch_ids(gateway: SheetsGateway, sheet_id: str, sheet_name: str) -> Set[str]:
    values = await gateway.column_values(sheet_id, sheet_name, 1)
    return {str(v).strip() for v in values[1:] if str(v).strip()}


async def compare(audit: AuditLog, gateway: SheetsGateway, sheet_id: str, sheet_name: str) -> dict:
    created = created_ids(await audit.all_entries())
    sheet_ids = await fetch_ids(gateway, sheet_id, sheet_name)
    return {
        "created": len(created),
        "inSheet": len(sheet_ids),
        "missing": find_missing(created, sheet_ids),
        "olderThanAudit": len(sheet_ids - set(created)),
    }


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Comparar el audit log con el Google Sheet")
    parser.add_argument("--sheet-id", default=settings.SHEET_ID)
    parser.add_argument("--sheet-name", default=settings.SHEET_NAME)
    parser.add_argument("--audit-dir", default=settings.AUDIT_LOG_DIR)
    parser.add_argument("--json", action="store_true", help="resultado en JSON")
    args = parser.parse_args(argv)

    report = asyncio.run(compare(AuditLog(log_dir=args.audit_dir), SheetsGateway(), args.sheet_id, args.sheet_name))
    missing = report["missing"]

    if args.json:
        print(json.dumps(report, ensure_ascii=False, indent=2))
        return 1 if missing else 0

    print(f"Carreras CREADAS (según audit log): {report['created']}")
    print(f"Carreras ACTUALES (en {args.sheet_name}): {report['inSheet']}")
    if missing:
        print(f"CARRERAS ELIMINADAS: {len(missing)}")
        for item in missing:
            print(f"  Carrera #{item['orderId']} - Creada: {item['createdAt'] or 'Desconocida'}")
        print("Revisa el historial de versiones del Sheet para ver quién eliminó estas filas.")
    else:
        print("TODAS LAS CARRERAS ESTÁN PRESENTES")
    if report["olderThanAudit"]:
        print(f"Carreras sin registro CREAR (anteriores al audit log): {report['olderThanAudit']}")
    return 1 if missing else 0


if __name__ == "__main__":
    sys.exit(main())
