"""detect_duplicate_ids.py

ID заказов, которые встречаются в колонке A вкладки заказов больше одного раза.
Для каждого дубликата выводятся номера строк листа (заголовок = строка 1),
чтобы исправить их вручную.

Использование:
    pedidos-detect-duplicates
    pedidos-detect-duplicates --sheet-id <id> --sheet-name Registros --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Dict, List

from pedidos.config import settings
from pedidos.utils.sheets import SheetsGateway


def find_duplicates(ids: List[str]) -> Dict[str, List[int]]:
    rows_by_id: Dict[str, List[int]] = {}
    for row_number, value in enumerate(ids[1:], start=2):
        key = str(value).strip()
        if key:
            rows_by_id.setdefault(key, []).append(row_number)
    return {key: rows for key, rows in rows_by_id.items() if len(rows) > 1}


async def fetch_ids(gateway: SheetsGateway, sheet_id: str, sheet_name: str) -> List[str]:
    return await gateway.column_values(sheet_id, sheet_name, 1)


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Detectar IDs de pedidos duplicados")
    parser.add_argument("--sheet-id", default=settings.SHEET_ID)
    parser.add_argument("--sheet-name", default=settings.SHEET_NAME)
    parser.add_argument("--json", action="store_true", help="resultado en JSON")
    args = parser.parse_args(argv)

    ids = asyncio.run(fetch_ids(SheetsGateway(), args.sheet_id, args.sheet_name))
    duplicates = find_duplicates(ids)

    if args.json:
        print(json.dumps({"totalIds": max(len(ids) - 1, 0), "duplicates": duplicates}, ensure_ascii=False, indent=2))
    elif not duplicates:
        print(f"No hay IDs duplicados en {args.sheet_name} ({max(len(ids) - 1, 0)} filas)")
    else:
        print(f"IDs duplicados en {args.sheet_name}: {len(duplicates)}")
        for key, rows in sorted(duplicates.items(), key=lambda item: item[1][0]):
            print(f"  ID {key}: filas {', '.join(str(r) for r in rows)}")
    return 1 if duplicates else 0


if __name__ == "__main__":
    sys.exit(main())
