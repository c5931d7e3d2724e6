import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from pedidos.config import Settings
from pedidos.utils.secrets import SecretsProvider
from pedidos.utils.errors import SecretsError


def provider_with(secret_string):
    client = MagicMock()
    client.get_secret_value.return_value = {"SecretString": secret_string}
    return SecretsProvider(secret_name="pedidos/test", region="us-east-1", client=client), client


def test_secrets_are_cached():
    provider, client = provider_with(json.dumps({"JWT_SECRET": "abc"}))
    assert provider.get("JWT_SECRET") == "abc"
    assert provider.get("OTRO", "x") == "x"
    client.get_secret_value.assert_called_once_with(SecretId="pedidos/test")


def test_apply_to_settings():
    account = {"type": "service_account", "client_email": "bot@beezy.iam.gserviceaccount.com"}
    provider, _ = provider_with(
        json.dumps({"JWT_SECRET": "abc", "GOOGLE_MAPS_API_KEY": "", "GOOGLE_SERVICE_ACCOUNT_JSON": account})
    )
    target = Settings()
    applied = provider.apply_to(target)

    assert applied == ["AUTH_SECRET_KEY", "GOOGLE_SERVICE_ACCOUNT_JSON"]
    assert target.AUTH_SECRET_KEY == "abc"
    assert json.loads(target.GOOGLE_SERVICE_ACCOUNT_JSON) == account


def test_invalid_json_raises():
    provider, _ = provider_with("no-json")
    with pytest.raises(SecretsError):
        provider.get_secrets()


def test_client_error_raises():
    client = MagicMock()
    client.get_secret_value.side_effect = ClientError(
        {"Error": {"Code": "ResourceNotFoundException", "Message": "not found"}}, "GetSecretValue"
    )
    provider = SecretsProvider(secret_name="pedidos/test", client=client)
    with pytest.raises(SecretsError, match="pedidos/test"):
        provider.get_secrets()
