# pedidos/utils/secrets.py

"""
Секреты из AWS Secrets Manager.
Один секрет (JSON) со всеми ключами: JWT_SECRET, GOOGLE_MAPS_API_KEY, GOOGLE_SERVICE_ACCOUNT_JSON.
Значение кэшируется в процессе.
"""

import json
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from pedidos.config import Settings, settings
from pedidos.utils.errors import SecretsError

# ключ в секрете → поле Settings
SECRET_FIELDS = {
    "JWT_SECRET": "AUTH_SECRET_KEY",
    "GOOGLE_MAPS_API_KEY": "GOOGLE_MAPS_API_KEY",
    "GOOGLE_SERVICE_ACCOUNT_JSON": "GOOGLE_SERVICE_ACCOUNT_JSON",
}


class SecretsProvider:
    def __init__(self, secret_name: str | None = None, region: str | None = None, client=None):
        self.secret_name = secret_name or settings.SECRET_NAME
        self.region = region or settings.SECRETS_REGION or settings.AWS_REGION or "us-east-1"
        self._client = client
        self._cache: dict[str, Any] | None = None

    def client(self):
        if self._client is None:
            self._client = boto3.client("secretsmanager", region_name=self.region)
        return self._client

    def get_secrets(self) -> dict[str, Any]:
        if self._cache is not None:
            return self._cache
        try:
            response = self.client().get_secret_value(SecretId=self.secret_name)
        except (BotoCoreError, ClientError) as e:
            raise SecretsError(f"No se pudo leer el secreto {self.secret_name}: {e}") from e

        raw = response.get("SecretString")
        if not raw:
            raise SecretsError(f"El secreto {self.secret_name} no contiene SecretString")
        try:
            self._cache = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SecretsError(f"El secreto {self.secret_name} no es JSON válido") from e
        return self._cache

    def get(self, key: str, default: Any = None) -> Any:
        return self.get_secrets().get(key, default)

    def apply_to(self, target: Settings) -> list[str]:
        """Переносит найденные секреты в Settings, возвращает список применённых полей."""
        applied = []
        for key, field in SECRET_FIELDS.items():
            value = self.get(key)
            if not value:
                continue
            if not isinstance(value, str):
                value = json.dumps(value)
            setattr(target, field, value)
            applied.append(field)
        return applied
