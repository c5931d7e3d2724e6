import json
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from pedidos.config import settings
from pedidos.services import horarios
from pedidos.services.horarios import day_label, normalize_slot, parse_schedule_sheet

SCHEDULE = [
    ["Horario", "Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"],
    ["08:00 - 12:00", "x", "", "", "", "", "", ""],
    ["12:00 - 16:00", "", "Sí", "", "", "", "", ""],
    ["16:00 - 20:00", "✓", "", "", "", "", "", "1"],
]

MONTH_BLOCK = [
    [],
    ["octubre"],
    [],
    ["Semana", "Lunes", "Martes", "Miércoles"],
    ["1", "08:00", "", ""],
    ["2", "", "", "10:00"],
    ["AUTO ASIGNADO"],
    ["", "Lunes", "Martes"],
    ["", "Auto 3", "Auto 5"],
]


@pytest.fixture
def horarios_sheet(monkeypatch):
    monkeypatch.setattr(settings, "HORARIOS_SHEET_ID", "horarios-sheet")
    return "horarios-sheet"


@pytest.fixture
def monday_morning(monkeypatch):
    monkeypatch.setattr(horarios, "bolivia_now", lambda: datetime(2026, 10, 19, 9, 30))


def test_day_label():
    assert day_label(datetime(2026, 10, 19)) == "Lunes"
    assert day_label(datetime(2026, 10, 18)) == "Domingo"
    assert day_label(datetime(2026, 10, 24)) == "Sábado"


def test_normalize_slot():
    assert normalize_slot("08:00 - 12:00") == "08:00-12:00"
    assert normalize_slot("mañana") == "mañana"


def test_parse_schedule_current_slot():
    info = parse_schedule_sheet(SCHEDULE, "Lunes", 9 * 60)
    assert info["slotsToday"] == ["08:00-12:00", "16:00-20:00"]
    assert info["worksToday"] is True
    assert info["availableNow"] is True
    assert info["nextSlot"] is None


def test_parse_schedule_next_slot():
    info = parse_schedule_sheet(SCHEDULE, "Lunes", 13 * 60)
    assert info["availableNow"] is False
    assert info["nextSlot"] == "16:00-20:00"

    sunday = parse_schedule_sheet(SCHEDULE, "Domingo", 17 * 60)
    assert sunday["slotsToday"] == ["16:00-20:00"]
    assert sunday["availableNow"] is True


def test_parse_schedule_month_and_auto_blocks():
    info = parse_schedule_sheet(SCHEDULE + MONTH_BLOCK, "Lunes", 7 * 60)
    assert info["workingDays"] == ["Lunes", "Miércoles"]
    assert info["worksToday"] is True
    assert info["autoByDay"] == {"Lunes": "Auto 3", "Martes": "Auto 5"}
    assert info["autoToday"] == "Auto 3"

    # по блоку месяца во вторник не работает, хотя в сетке есть отметка
    tuesday = parse_schedule_sheet(SCHEDULE + MONTH_BLOCK, "Martes", 13 * 60)
    assert tuesday["slotsToday"] == ["12:00-16:00"]
    assert tuesday["worksToday"] is False
    assert tuesday["autoToday"] == "Auto 5"


def test_parse_schedule_empty_values():
    info = parse_schedule_sheet([], "Lunes", 0)
    assert info["slotsToday"] == [] and info["worksToday"] is False


def test_read_without_sheet_returns_initial_data(client, staff_headers):
    body = client.get("/api/horarios", headers=staff_headers).json()
    assert body["success"] is True
    assert body["data"]["drivers"] == []
    assert body["message"] == "Datos de horarios cargados desde backup local"


def test_horarios_require_staff(client, client_headers):
    assert client.get("/api/horarios", headers=client_headers).status_code == 403


def test_save_rejects_non_object(client, staff_headers):
    response = client.post("/api/horarios", json=[1, 2], headers=staff_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Datos de horarios inválidos"


def test_save_then_read_from_sheet(client, staff_headers, sheets, horarios_sheet, horarios_file):
    payload = {"drivers": [{"nombre": "Paola"}], "mesActual": 9, "añoActual": 2026}
    saved = client.post("/api/horarios", json=payload, headers=staff_headers).json()
    assert saved["success"] is True

    stored = json.loads(sheets.books[horarios_sheet].sheets["Horarios"].rows[0][0])
    assert stored["drivers"] == [{"nombre": "Paola"}]
    assert stored["lastUpdated"] == saved["timestamp"]
    assert json.loads(horarios_file.read_text(encoding="utf-8"))["drivers"] == [{"nombre": "Paola"}]

    body = client.get("/api/horarios", headers=staff_headers).json()
    assert body["message"] == "Datos de horarios cargados exitosamente desde Google Sheets"
    assert body["data"]["añoActual"] == 2026


def test_read_offline_falls_back_to_local_copy(client, staff_headers, sheets, horarios_sheet, horarios_file):
    horarios_file.parent.mkdir(parents=True)
    horarios_file.write_text(json.dumps({"drivers": ["Thiago"]}), encoding="utf-8")
    sheets.open_by_key = MagicMock(side_effect=ConnectionError("network down"))

    body = client.get("/api/horarios", headers=staff_headers).json()
    assert body["data"] == {"drivers": ["Thiago"]}
    assert body["message"] == "Datos de horarios cargados desde backup local"


def test_read_offline_without_local_copy_is_500(client, staff_headers, sheets, horarios_sheet):
    sheets.open_by_key = MagicMock(side_effect=ConnectionError("network down"))
    response = client.get("/api/horarios", headers=staff_headers)
    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Error leyendo datos de horarios"


def test_save_keeps_last_five_backups(client, staff_headers, horarios_file):
    folder = horarios_file.parent
    folder.mkdir(parents=True)
    horarios_file.write_text("{}", encoding="utf-8")
    for n in range(1, 8):
        (folder / f"horarios.backup.170000000000{n}.json").write_text("{}", encoding="utf-8")

    assert client.post("/api/horarios", json={"drivers": []}, headers=staff_headers).status_code == 200

    backups = sorted(p.name for p in folder.iterdir() if p.name.startswith("horarios.backup."))
    assert len(backups) == 5
    assert "horarios.backup.1700000000003.json" not in backups
    assert "horarios.backup.1700000000007.json" in backups


def test_download(client, staff_headers, horarios_file):
    assert client.get("/api/horarios/download", headers=staff_headers).status_code == 404

    horarios_file.parent.mkdir(parents=True)
    horarios_file.write_text(json.dumps({"drivers": ["Ivan"]}), encoding="utf-8")
    response = client.get("/api/horarios/download", headers=staff_headers)
    assert response.status_code == 200
    assert response.json() == {"drivers": ["Ivan"]}
    assert "horarios.json" in response.headers["content-disposition"]


def test_restore_copies_current_file_and_writes_sheet(client, staff_headers, sheets, horarios_sheet, horarios_file):
    horarios_file.parent.mkdir(parents=True)
    horarios_file.write_text(json.dumps({"drivers": ["viejo"]}), encoding="utf-8")

    body = client.put("/api/horarios/restore", json={"drivers": ["nuevo"]}, headers=staff_headers).json()
    assert body["message"] == "Datos restaurados exitosamente"

    restored = json.loads(horarios_file.read_text(encoding="utf-8"))
    assert restored["drivers"] == ["nuevo"]
    assert restored["restoredAt"] == body["timestamp"]
    copies = [p for p in horarios_file.parent.iterdir() if p.name.startswith("horarios.before-restore.")]
    assert len(copies) == 1
    assert json.loads(copies[0].read_text(encoding="utf-8")) == {"drivers": ["viejo"]}
    assert json.loads(sheets.books[horarios_sheet].sheets["Horarios"].rows[0][0])["drivers"] == ["nuevo"]


def test_availability_without_sheet_is_400(client, staff_headers):
    response = client.get("/api/horarios/disponibilidad-hoy", headers=staff_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "HORARIOS_SHEET_ID no configurado"


def test_availability_drivers_skips_missing_tabs(
    client, staff_headers, sheets, horarios_sheet, monday_morning, monkeypatch
):
    monkeypatch.setattr(settings, "HORARIOS_DRIVER_TABS", "Paola Aliaga, Nadie")
    sheets.tab(horarios_sheet, "Paola Aliaga", SCHEDULE)

    body = client.get("/api/horarios/disponibilidad-hoy", headers=staff_headers).json()
    assert body["tipo"] == "drivers"
    assert body["day"] == "Lunes"
    assert body["date"].startswith("2026-10-19T09:30")
    assert [p["driver"] for p in body["drivers"]] == ["Paola Aliaga"]
    assert body["drivers"][0]["availableNow"] is True


def test_availability_bikers_ignores_copies(client, staff_headers, sheets, monday_morning):
    sheets.tab(settings.HORARIOS_BIKERS_SHEET_ID, "Carlos", SCHEDULE)
    sheets.tab(settings.HORARIOS_BIKERS_SHEET_ID, "Carlos copia", SCHEDULE)
    sheets.tab(settings.HORARIOS_BIKERS_SHEET_ID, "Luis", [SCHEDULE[0], ["10:00 - 14:00", "", "x"]])

    body = client.get("/api/horarios/disponibilidad-hoy", params={"tipo": "bikers"}, headers=staff_headers).json()
    assert body["label"] == "Bikers"
    assert [p["driver"] for p in body["drivers"]] == ["Carlos", "Luis"]
    luis = body["drivers"][1]
    assert luis["worksToday"] is False
    assert luis["slotsToday"] == []


def test_availability_offline_is_503(client, staff_headers, sheets, horarios_sheet):
    sheets.open_by_key = MagicMock(side_effect=ConnectionError("network down"))
    response = client.get("/api/horarios/disponibilidad-hoy", headers=staff_headers)
    assert response.status_code == 503
    assert response.json()["status"] == "NO_CONNECTION"
