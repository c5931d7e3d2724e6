import asyncio
import json
import os

import pytest

from pedidos.config import settings
from pedidos.services.audit import AuditLog, as_text, detect_changes, format_bytes
from pedidos.services.form_log import csv_field, logs_to_csv


def test_detect_changes_compares_text():
    before = {"ID": "3", "Precio [Bs]": "10", "Biker": "Juan", "Extra": True}
    after = {"ID": 3, "Precio [Bs]": 10.0, "Biker": "Luis", "Extra": "true", "Nuevo": "x"}
    assert detect_changes(before, after) == {
        "Biker": {"before": "Juan", "after": "Luis"},
        "Nuevo": {"before": None, "after": "x"},
    }
    assert detect_changes(None, None) == {}
    assert as_text(None) == ""


def test_format_bytes():
    assert format_bytes(0) == "0 Bytes"
    assert format_bytes(512) == "512 Bytes"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(5 * 1024 * 1024) == "5 MB"


def test_entry_fields_and_fallbacks(tmp_path):
    audit = AuditLog(log_dir=str(tmp_path))
    entry = asyncio.run(audit.log_entry("crear", {"ID": "7", "Operador": "ana"}))

    assert entry["action"] == "CREAR"
    assert entry["orderId"] == "7"
    assert entry["operator"] == "ana"
    assert entry["ip"] == "UNKNOWN"
    assert entry["metadata"]["logFile"] == "audit-log.json"
    assert "changes" not in entry

    entry = asyncio.run(audit.log_entry("EDITAR", {}, metadata={"operator": "luis"}, before={"a": "1"}))
    assert entry["orderId"] == "UNKNOWN"
    assert entry["operator"] == "luis"
    assert entry["changes"] == {"a": {"before": "1", "after": None}}


def test_rotation_moves_old_entries_to_backup(tmp_path):
    audit = AuditLog(log_dir=str(tmp_path), max_bytes=10**6)
    asyncio.run(audit.log_entry("CREAR", {"ID": "1"}))
    audit.max_bytes = os.path.getsize(audit.path) + 10

    asyncio.run(audit.log_entry("EDITAR", {"ID": "1"}, before={"ID": "1"}))

    backups = audit.backup_files()
    assert len(backups) == 1
    with open(tmp_path / backups[0], encoding="utf-8") as f:
        assert [e["action"] for e in json.load(f)] == ["CREAR"]
    with open(audit.path, encoding="utf-8") as f:
        assert [e["action"] for e in json.load(f)] == ["EDITAR"]

    logs = asyncio.run(audit.logs_for_order("1"))
    assert len(logs) == 2

    files = asyncio.run(audit.list_files())
    assert files["main"]["entries"] == 1
    assert files["backups"][0]["filename"] == backups[0]
    assert "_mtime" not in files["backups"][0]


def test_corrupt_file_is_backed_up(tmp_path):
    audit = AuditLog(log_dir=str(tmp_path))
    with open(audit.path, "w", encoding="utf-8") as f:
        f.write("{not json")

    entry = asyncio.run(audit.log_entry("CREAR", {"ID": "2"}))
    assert entry is not None
    assert any(name.startswith("audit-log.json.backup.") for name in os.listdir(tmp_path))
    with open(audit.path, encoding="utf-8") as f:
        assert len(json.load(f)) == 1


@pytest.mark.parametrize("content", [b"\xff\xfe garbage", b"{}", b"\"texto\""])
def test_unreadable_file_is_backed_up(tmp_path, content):
    audit = AuditLog(log_dir=str(tmp_path))
    with open(audit.path, "wb") as f:
        f.write(content)

    entry = asyncio.run(audit.log_entry("CREAR", {"ID": "5"}))
    assert entry is not None
    backups = [name for name in os.listdir(tmp_path) if name.startswith("audit-log.json.backup.")]
    assert len(backups) == 1
    with open(tmp_path / backups[0], "rb") as f:
        assert f.read() == content
    with open(audit.path, encoding="utf-8") as f:
        assert [e["orderId"] for e in json.load(f)] == ["5"]


def test_readers_skip_non_list_file(tmp_path):
    audit = AuditLog(log_dir=str(tmp_path))
    with open(audit.path, "w", encoding="utf-8") as f:
        f.write("{}")

    assert asyncio.run(audit.logs_for_order("1")) == []
    assert asyncio.run(audit.stats())["totalOperations"] == 0
    assert asyncio.run(audit.list_files())["main"]["entries"] == 0


def test_write_failure_returns_none(tmp_path):
    blocker = tmp_path / "ocupado"
    blocker.write_text("x")
    audit = AuditLog(log_dir=str(blocker / "audit"))
    assert asyncio.run(audit.log_entry("CREAR", {"ID": "1"})) is None


def test_stats_groups_entries(tmp_path):
    audit = AuditLog(log_dir=str(tmp_path))
    asyncio.run(audit.log_entry("CREAR", {"ID": "1"}, metadata={"operator": "ana"}))
    asyncio.run(
        audit.log_entry(
            "CREAR",
            {"ID": "5"},
            metadata={"operator": "luis", "existingId": "4", "warning": "ID duplicado: 4"},
        )
    )
    stats = asyncio.run(audit.stats())
    assert stats["totalOperations"] == 2
    assert stats["byOperator"] == {"ana": 1, "luis": 1}
    assert [o["orderId"] for o in stats["recentOverwrites"]] == ["5"]
    assert stats["suspiciousActivities"][0]["reason"] == "ID duplicado: 4"


def test_audit_files_endpoint_without_log(client, staff_headers):
    body = client.get("/api/audit/files", headers=staff_headers).json()
    assert body == {"success": True, "main": None, "backups": []}


# ────────────── логи формы ──────────────
def test_csv_quoting():
    assert csv_field(None) == ""
    assert csv_field("simple") == "simple"
    assert csv_field('dice "hola", adiós') == '"dice ""hola"", adiós"'
    assert csv_field({"a": 1}) == '"{""a"": 1}"'


def test_logs_to_csv_header_and_rows():
    text = logs_to_csv([{"timestamp": "t1", "action": "submit", "status": "ok"}, "basura"])
    lines = text.splitlines()
    assert lines[0] == "timestamp,action,status,data,error,userAgent,url"
    assert lines[1] == "t1,submit,ok,,,,"
    assert lines[2] == ",,,,,,"


def test_save_logs_endpoint_writes_bom_csv(client, staff_headers):
    response = client.post(
        "/api/save-logs",
        json={"logs": [{"timestamp": "t1", "action": "submit", "data": {"ID": 3}}]},
        headers=staff_headers,
    )
    assert response.status_code == 200
    assert response.json()["count"] == 1

    with open(settings.FORM_LOGS_PATH, encoding="utf-8") as f:
        content = f.read()
    assert content.startswith("\ufefftimestamp,action")
    assert 't1,submit,,"{""ID"": 3}",,,' in content


def test_save_logs_rejects_non_list(client, staff_headers):
    response = client.post("/api/save-logs", json={"logs": "x"}, headers=staff_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "logs debe ser un array"
