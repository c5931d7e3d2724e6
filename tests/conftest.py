import os
import re
import tempfile

# окружение до импорта pedidos: settings читаются при импорте
_TMP = tempfile.mkdtemp(prefix="pedidos-tests-")
os.environ["ENVIRONMENT"] = "development"
os.environ["SECRETS_ENABLED"] = "0"
os.environ["AUTH_SECRET_KEY"] = "test-secret-key"
os.environ["GOOGLE_MAPS_API_KEY"] = "test-maps-key"
os.environ["GOOGLE_SERVICE_ACCOUNT_JSON"] = ""
os.environ["GOOGLE_SERVICE_ACCOUNT_FILE"] = ""
os.environ["INVENTARIO_SHEET_ID"] = "inventario-sheet"
os.environ["CLIENT_INFO_SHEET_ID"] = "client-info-sheet"
os.environ["LOG_DIR"] = os.path.join(_TMP, "log")
os.environ["AUDIT_LOG_DIR"] = os.path.join(_TMP, "audit")
os.environ["FORM_LOGS_PATH"] = os.path.join(_TMP, "form_logs.csv")
os.environ["LOG_PRINT"] = "0"

from unittest.mock import MagicMock

import gspread
import httpx
import pytest
from fastapi.testclient import TestClient
from gspread.utils import a1_to_rowcol

from pedidos.config import settings
from pedidos.main import app
from pedidos.routes.auth import create_access_token
from pedidos.services.audit import AuditLog
from pedidos.services.maps import MapsClient
from pedidos.services.order import HEADER_ORDER
from pedidos.utils.dynamodb import UserRepository
from pedidos.utils.security import hash_password
from pedidos.utils.sheets import SheetsGateway

CELL_RE = re.compile(r"^([A-Z]+)(\d*)$")


# ────────────── fake gspread ──────────────
def parse_cell(ref: str) -> tuple[int | None, int]:
    letters, digits = CELL_RE.match(ref).groups()
    col = a1_to_rowcol(f"{letters}1")[1]
    return (int(digits) if digits else None), col


class FakeWorksheet:
    def __init__(self, title: str, rows: list[list] | None = None):
        self.title = title
        self.rows = [[str(v) for v in row] for row in (rows or [])]

    def _bounds(self, a1: str) -> tuple[int, int, int, int]:
        start, _, end = a1.partition(":")
        r1, c1 = parse_cell(start)
        r2, c2 = parse_cell(end or start)
        return r1 or 1, c1, r2 or max(len(self.rows), 1), c2

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def col_values(self, col: int):
        values = [row[col - 1] if col - 1 < len(row) else "" for row in self.rows]
        while values and values[-1] == "":
            values.pop()
        return values

    def row_values(self, row: int):
        return list(self.rows[row - 1]) if row - 1 < len(self.rows) else []

    def get(self, a1: str):
        r1, c1, r2, c2 = self._bounds(a1)
        result = []
        for row in self.rows[r1 - 1:r2]:
            cells = row[c1 - 1:c2]
            while cells and cells[-1] == "":
                cells.pop()
            result.append(cells)
        while result and not result[-1]:
            result.pop()
        return result

    def set_cell(self, row: int, col: int, value) -> None:
        while len(self.rows) < row:
            self.rows.append([])
        target = self.rows[row - 1]
        while len(target) < col:
            target.append("")
        target[col - 1] = "" if value is None else str(value)

    def append_row(self, values, value_input_option="RAW", insert_data_option=None, table_range=None):
        self.rows.append(["" if v is None else str(v) for v in values])

    def update(self, range_name=None, values=None, value_input_option="RAW"):
        r1, c1, _, _ = self._bounds(range_name)
        count = 0
        for i, row in enumerate(values):
            for j, value in enumerate(row):
                self.set_cell(r1 + i, c1 + j, value)
                count += 1
        return {"updatedCells": count}

    def batch_update(self, data, value_input_option="RAW"):
        for item in data:
            self.update(range_name=item["range"], values=item["values"])


class FakeSpreadsheet:
    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def worksheet(self, title: str):
        if title not in self.sheets:
            raise gspread.exceptions.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title: str, rows: int = 1000, cols: int = 26):
        self.sheets[title] = FakeWorksheet(title)
        return self.sheets[title]

    def worksheets(self):
        return list(self.sheets.values())


class FakeClient:
    def __init__(self):
        self.books: dict[str, FakeSpreadsheet] = {}

    def open_by_key(self, key: str):
        return self.books.setdefault(key, FakeSpreadsheet())

    def tab(self, key: str, title: str, rows: list[list] | None = None) -> FakeWorksheet:
        book = self.open_by_key(key)
        book.sheets[title] = FakeWorksheet(title, rows)
        return book.sheets[title]


def order_row(order_id, **values) -> list[str]:
    """Строка вкладки заказов: ключи snake_case → нужные колонки."""
    from pedidos.services.order import KEY_TO_COL

    row = [""] * len(HEADER_ORDER)
    row[0] = str(order_id)
    for key, value in values.items():
        row[HEADER_ORDER.index(KEY_TO_COL[key])] = str(value)
    return row


# ────────────── fixtures ──────────────
@pytest.fixture
def sheets():
    return FakeClient()


@pytest.fixture
def users_table():
    table = MagicMock()
    table.get_item.return_value = {}
    table.table_status = "ACTIVE"
    return table


@pytest.fixture
def maps_responses():
    """path-suffix → JSON ответ для MockTransport Google Maps."""
    return {}


@pytest.fixture
def client(tmp_path, sheets, users_table, maps_responses):
    def handler(request: httpx.Request) -> httpx.Response:
        for suffix, payload in maps_responses.items():
            if request.url.path.endswith(suffix):
                return httpx.Response(200, json=payload)
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    with TestClient(app) as test_client:
        app.state.sheets = SheetsGateway(client=sheets)
        app.state.users = UserRepository(table=users_table)
        app.state.maps = MapsClient(api_key="test-maps-key", transport=httpx.MockTransport(handler), log=app.state.log)
        app.state.audit = AuditLog(log_dir=str(tmp_path / "audit"), log=app.state.log)
        yield test_client


def make_token(role: str = "operador", username: str = "ana", **extra) -> str:
    sessions = app.state.sessions
    token_id = sessions.generate_token_id()
    sessions.register(token_id)
    return create_access_token({"id": 1, "username": username, "role": role, "jti": token_id, **extra})


@pytest.fixture
def staff_headers(client):
    return {"Authorization": f"Bearer {make_token('operador')}"}


@pytest.fixture
def client_headers(client):
    return {"Authorization": f"Bearer {make_token('cliente', username='acme', empresa='ACME SRL')}"}


@pytest.fixture
def stored_user():
    """Пользователь в DynamoDB с паролем secret123."""
    return {
        "username": "ana",
        "id": 1,
        "password": hash_password("secret123"),
        "name": "Ana",
        "role": "operador",
        "email": "ana@beezy.bo",
        "active": True,
    }


@pytest.fixture
def orders_tab(sheets):
    return sheets.tab(settings.SHEET_ID, settings.SHEET_NAME, [HEADER_ORDER])


@pytest.fixture(autouse=True)
def horarios_file(tmp_path, monkeypatch):
    """Локальная копия расписаний во временной папке теста."""
    path = tmp_path / "data" / "horarios.json"
    monkeypatch.setattr(settings, "HORARIOS_BACKUP_PATH", str(path))
    return path
