# pedidos/utils/sheets.py

"""
Доступ к Google Sheets через gspread.
Таблица используется как база данных: вкладка = таблица, строка = запись.
gspread синхронный, поэтому все вызовы уходят в threadpool.
"""

import json
from typing import Any, Callable, Iterable

import gspread
from google.auth.exceptions import TransportError
from google.oauth2.service_account import Credentials
from starlette.concurrency import run_in_threadpool

from pedidos.config import settings
from pedidos.utils.errors import SheetsUnavailableError

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


def column_letter(index: int) -> str:
    """0 → A, 25 → Z, 26 → AA."""
    letters = ""
    while index >= 0:
        letters = chr(65 + index % 26) + letters
        index = index // 26 - 1
    return letters


def rows_to_dicts(headers: list[str], rows: Iterable[list[Any]]) -> list[dict]:
    """Строки листа → словари по заголовкам; недостающие ячейки → ''."""
    return [
        {header: (row[i] if i < len(row) and row[i] is not None else "") for i, header in enumerate(headers)}
        for row in rows
    ]


def has_credentials() -> bool:
    return bool(settings.GOOGLE_SERVICE_ACCOUNT_JSON or settings.GOOGLE_SERVICE_ACCOUNT_FILE)


def load_credentials() -> Credentials:
    """
    Учётные данные service account.
    Приоритет: JSON в переменной (или из Secrets Manager) > файл.
    """
    if settings.GOOGLE_SERVICE_ACCOUNT_JSON:
        info = json.loads(settings.GOOGLE_SERVICE_ACCOUNT_JSON)
        return Credentials.from_service_account_info(info, scopes=SCOPES)
    if settings.GOOGLE_SERVICE_ACCOUNT_FILE:
        return Credentials.from_service_account_file(settings.GOOGLE_SERVICE_ACCOUNT_FILE, scopes=SCOPES)
    raise RuntimeError("Google Service Account no configurado")


class SheetsGateway:
    def __init__(self, client: gspread.Client | None = None):
        self._client = client
        self._books: dict[str, gspread.Spreadsheet] = {}

    def client(self) -> gspread.Client:
        if self._client is None:
            self._client = gspread.authorize(load_credentials())
        return self._client

    async def _call(self, func: Callable[[], Any]) -> Any:
        try:
            return await run_in_threadpool(func)
        except (OSError, TransportError) as e:
            raise SheetsUnavailableError(str(e)) from e

    def _open(self, spreadsheet_id: str) -> gspread.Spreadsheet:
        if spreadsheet_id not in self._books:
            self._books[spreadsheet_id] = self.client().open_by_key(spreadsheet_id)
        return self._books[spreadsheet_id]

    def _worksheet(self, spreadsheet_id: str, title: str, create: bool = False, cols: int = 26):
        book = self._open(spreadsheet_id)
        try:
            return book.worksheet(title)
        except gspread.exceptions.WorksheetNotFound:
            if not create:
                return None
            return book.add_worksheet(title=title, rows=1000, cols=cols)

    # ────────────── чтение ──────────────
    async def worksheet_titles(self, spreadsheet_id: str) -> list[str]:
        return await self._call(lambda: [ws.title for ws in self._open(spreadsheet_id).worksheets()])

    async def get_all_values(self, spreadsheet_id: str, title: str) -> list[list[str]] | None:
        """Все значения вкладки; None если вкладки нет."""
        def read():
            ws = self._worksheet(spreadsheet_id, title)
            return ws.get_all_values() if ws is not None else None

        return await self._call(read)

    async def get_range(self, spreadsheet_id: str, title: str, a1: str) -> list[list[str]] | None:
        def read():
            ws = self._worksheet(spreadsheet_id, title)
            return [list(row) for row in ws.get(a1)] if ws is not None else None

        return await self._call(read)

    async def column_values(self, spreadsheet_id: str, title: str, col: int = 1) -> list[str]:
        def read():
            ws = self._worksheet(spreadsheet_id, title)
            return ws.col_values(col) if ws is not None else []

        return await self._call(read)

    async def row_values(self, spreadsheet_id: str, title: str, row: int) -> list[str]:
        def read():
            ws = self._worksheet(spreadsheet_id, title)
            return ws.row_values(row) if ws is not None else []

        return await self._call(read)

    # ────────────── запись ──────────────
    async def ensure_worksheet(self, spreadsheet_id: str, title: str, cols: int = 26) -> None:
        await self._call(lambda: self._worksheet(spreadsheet_id, title, create=True, cols=cols))

    async def append_row(
        self,
        spreadsheet_id: str,
        title: str,
        values: list[Any],
        value_input_option: str = "RAW",
    ) -> None:
        def append():
            ws = self._worksheet(spreadsheet_id, title, create=True, cols=max(len(values), 26))
            ws.append_row(
                values,
                value_input_option=value_input_option,
                insert_data_option="INSERT_ROWS",
                table_range="A1",
            )

        await self._call(append)

    async def update_range(
        self,
        spreadsheet_id: str,
        title: str,
        a1: str,
        values: list[list[Any]],
        value_input_option: str = "RAW",
    ) -> int:
        """Записывает диапазон, возвращает количество обновлённых ячеек."""
        def update():
            ws = self._worksheet(spreadsheet_id, title, create=True)
            response = ws.update(range_name=a1, values=values, value_input_option=value_input_option)
            return (response or {}).get("updatedCells", 0)

        return await self._call(update)

    async def batch_update(
        self,
        spreadsheet_id: str,
        title: str,
        cells: dict[str, Any],
        value_input_option: str = "RAW",
    ) -> None:
        """cells: {'B5': 'Resuelto', 'F5': 'ana'}"""
        def update():
            ws = self._worksheet(spreadsheet_id, title)
            ws.batch_update(
                [{"range": a1, "values": [[value]]} for a1, value in cells.items()],
                value_input_option=value_input_option,
            )

        await self._call(update)
