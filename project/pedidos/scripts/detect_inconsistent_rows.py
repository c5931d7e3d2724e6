"""detect_inconsistent_rows.py

Поиск подозрительных строк в CSV выгрузке вкладки заказов.

Правила:
1) FECHA_VACIA / FECHA_INVALIDA: нет Fecha Registro или она не D/M/YYYY.
2) FECHA_INCONSISTENTE: дата отличается больше чем на 3 дня от медианы
   окна ±5 строк (в окне минимум 2 строки с датой).
3) FECHA_INVERTIDA: дата позже даты следующей строки больше чем на 3 дня
   (строку, вероятно, перезаписали или вставили).
4) ID_DUPLICADO: один ID в нескольких строках.

Использование:
    pedidos-detect-inconsistent --csv Registros.csv
    pedidos-detect-inconsistent --csv Registros.csv --out reporte.json
"""

from __future__ import annotations

import argparse
import csv
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pedidos.utils.dates import parse_ddmmyyyy

WINDOW_SIZE = 5
MAX_DAYS_DIFFERENCE = 3
REPORT_NAME = "filas-inconsistentes-reporte.json"


def read_csv(path: Path) -> List[List[str]]:
    with path.open(newline="", encoding="utf-8-sig") as f:
        return [row for row in csv.reader(f) if row]


def cell(row: List[str], index: int) -> str:
    return row[index].strip() if 0 <= index < len(row) else ""


def build_rows(header: List[str], data_rows: List[List[str]]) -> List[Dict[str, Any]]:
    idx = {name: header.index(name) if name in header else -1
           for name in ("ID", "Fecha Registro", "Hora Registro", "Operador", "Cliente")}
    if idx["ID"] == -1 or idx["Fecha Registro"] == -1:
        raise ValueError(f"Columnas ID o Fecha Registro no encontradas. Header: {header[:5]}")

    rows = []
    for number, row in enumerate(data_rows, start=2):
        fecha = cell(row, idx["Fecha Registro"])
        rows.append(
            {
                "rowNumber": number,
                "id": cell(row, idx["ID"]),
                "fechaRegistro": fecha,
                "horaRegistro": cell(row, idx["Hora Registro"]),
                "operador": cell(row, idx["Operador"]),
                "cliente": cell(row, idx["Cliente"]),
                "date": parse_ddmmyyyy(fecha),
            }
        )
    return rows


def window_median(rows: List[Dict[str, Any]], i: int) -> Optional[Any]:
    """Верхняя медиана дат в окне ±WINDOW_SIZE; None если дат меньше двух."""
    window = rows[max(0, i - WINDOW_SIZE): i + WINDOW_SIZE + 1]
    dates = sorted(r["date"] for r in window if r["date"])
    if len(dates) < 2:
        return None
    return dates[len(dates) // 2]


def date_reasons(rows: List[Dict[str, Any]], i: int) -> List[Dict[str, str]]:
    row = rows[i]
    if not row["date"]:
        if row["fechaRegistro"]:
            return [{"rule": "FECHA_INVALIDA", "detail": f'Fecha no parseable: "{row["fechaRegistro"]}"'}]
        return [{"rule": "FECHA_VACIA", "detail": "Sin Fecha Registro"}]

    reasons = []
    median = window_median(rows, i)
    if median is not None:
        diff = (row["date"] - median).days
        if abs(diff) > MAX_DAYS_DIFFERENCE:
            reasons.append(
                {
                    "rule": "FECHA_INCONSISTENTE",
                    "detail": (
                        f"Fecha {row['fechaRegistro']} difiere {diff} días de la mediana "
                        f"de la ventana ({WINDOW_SIZE} filas antes/después)"
                    ),
                }
            )

    following = rows[i + 1] if i + 1 < len(rows) else None
    if following and following["date"] and (row["date"] - following["date"]).days > MAX_DAYS_DIFFERENCE:
        reasons.append(
            {
                "rule": "FECHA_INVERTIDA",
                "detail": (
                    f"Fecha ({row['fechaRegistro']}) es posterior a la siguiente fila "
                    f"({following['fechaRegistro']}). Posible fila reemplazada o insertada."
                ),
            }
        )
    return reasons


def analyze(header: List[str], data_rows: List[List[str]], csv_file: str = "") -> Dict[str, Any]:
    rows = build_rows(header, data_rows)

    counts: Dict[str, int] = {}
    for row in rows:
        if row["id"]:
            counts[row["id"]] = counts.get(row["id"], 0) + 1
    duplicate_ids = [key for key, count in counts.items() if count > 1]

    inconsistent = []
    for i, row in enumerate(rows):
        reasons = date_reasons(rows, i)
        if row["id"] in duplicate_ids:
            reasons.append(
                {"rule": "ID_DUPLICADO", "detail": f"ID {row['id']} aparece {counts[row['id']]} veces en el archivo"}
            )
        if reasons:
            entry = {k: v for k, v in row.items() if k != "date"}
            entry["reasons"] = reasons
            inconsistent.append(entry)

    return {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "csvFile": csv_file,
        "totalDataRows": len(rows),
        "inconsistentCount": len(inconsistent),
        "duplicateIds": duplicate_ids,
        "rows": inconsistent,
    }


def print_report(report: Dict[str, Any]) -> None:
    print(f"Total filas de datos: {report['totalDataRows']}")
    print(f"Filas marcadas como inconsistentes: {report['inconsistentCount']}")
    if report["duplicateIds"]:
        print(f"IDs duplicados encontrados: {', '.join(report['duplicateIds'])}")
    for row in report["rows"]:
        print(
            f"Fila (Sheet): {row['rowNumber']}  |  ID: {row['id']}  |  Fecha: {row['fechaRegistro']}  |  "
            f"Operador: {row['operador']}  |  Cliente: {row['cliente']}"
        )
        for reason in row["reasons"]:
            print(f"  • [{reason['rule']}] {reason['detail']}")


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Detectar filas inconsistentes en el CSV de Registros")
    parser.add_argument("--csv", required=True, type=Path, help="CSV exportado de la pestaña de pedidos")
    parser.add_argument("--out", type=Path, default=None, help=f"reporte JSON (por defecto {REPORT_NAME})")
    args = parser.parse_args(argv)

    if not args.csv.exists():
        print(f"No se encontró el archivo: {args.csv}", file=sys.stderr)
        return 1

    raw = read_csv(args.csv)
    if not raw:
        print(f"CSV vacío: {args.csv}", file=sys.stderr)
        return 1
    try:
        report = analyze(raw[0], raw[1:], str(args.csv))
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1

    print_report(report)
    if report["rows"]:
        out = args.out or args.csv.with_name(REPORT_NAME)
        out.write_text(json.dumps(report, ensure_ascii=False, indent=2), encoding="utf-8")
        print(f"Reporte guardado en: {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
