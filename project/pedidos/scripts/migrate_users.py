"""migrate_users.py

Перенос пользователей из JSON файла в таблицу DynamoDB.

Открытые пароли хэшируются через passlib, username приводится к нижнему
регистру, все пользователи сохраняются активными. У клиентов (роль cliente)
сохраняются empresa и sheetTab: по ним портал находит вкладку инвентаря.

Использование:
    pedidos-migrate-users --file users.json
    pedidos-migrate-users --file users.json --dry-run
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from pedidos.utils.dates import bolivia_timestamp
from pedidos.utils.dynamodb import UserRepository, normalize_username
from pedidos.utils.security import hash_password, is_hashed

CLIENT_FIELDS = ("empresa", "sheetTab")


def load_users(path: Path) -> List[Dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} debe contener una lista JSON de usuarios")
    return data


def build_item(user: Dict[str, Any], now: str) -> Dict[str, Any]:
    """Пользователь из файла → элемент DynamoDB."""
    username = normalize_username(user.get("username", ""))
    if not username:
        raise ValueError(f"usuario sin username: {user!r}")

    password = str(user.get("password") or "")
    item: Dict[str, Any] = {
        "username": username,
        "id": user.get("id"),
        "password": password if is_hashed(password) else hash_password(password),
        "name": user.get("name") or username,
        "role": user.get("role") or "operador",
        "email": user.get("email") or "",
        "active": True,
        "createdAt": user.get("createdAt") or now,
        "updatedAt": now,
    }
    if item["role"] == "cliente":
        for field in CLIENT_FIELDS:
            if user.get(field):
                item[field] = user[field]
    return {k: v for k, v in item.items() if v is not None}


def migrate(users: List[Dict[str, Any]], repo: UserRepository, dry_run: bool = False) -> Dict[str, int]:
    now = bolivia_timestamp()
    migrated = failed = 0
    for user in users:
        try:
            item = build_item(user, now)
        except ValueError as e:
            print(f"  ✗ {e}")
            failed += 1
            continue
        if not dry_run:
            repo.put_user(item)
        print(f"  ✓ {item['username']} ({item['role']})")
        migrated += 1
    return {"migrated": migrated, "failed": failed}


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Migrar usuarios a DynamoDB")
    parser.add_argument("--file", required=True, type=Path, help="lista JSON de usuarios")
    parser.add_argument("--table", default=None, help="tabla DynamoDB (por defecto DYNAMODB_TABLE_NAME)")
    parser.add_argument("--dry-run", action="store_true", help="solo mostrar, sin escribir")
    args = parser.parse_args(argv)

    if not args.file.exists():
        print(f"Archivo no encontrado: {args.file}", file=sys.stderr)
        return 1

    users = load_users(args.file)
    repo = UserRepository(table_name=args.table)

    if not args.dry_run:
        print(f"Usuarios en {repo.table_name} antes: {repo.count_users()}")
    result = migrate(users, repo, dry_run=args.dry_run)
    if not args.dry_run:
        print(f"Usuarios en {repo.table_name} después: {repo.count_users()}")

    print(f"Migrados: {result['migrated']}  Fallidos: {result['failed']}")
    return 0 if result["failed"] == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
