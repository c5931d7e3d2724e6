# pedidos/utils/dynamodb.py
# Пользователи в DynamoDB (partition key: username)

from decimal import Decimal
from typing import Any

import boto3
from botocore.exceptions import ConnectTimeoutError, EndpointConnectionError, ReadTimeoutError
from starlette.concurrency import run_in_threadpool

from pedidos.config import settings
from pedidos.utils.errors import UsersUnavailableError

CONNECTION_ERRORS = (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)


def normalize_username(username: str) -> str:
    return str(username or "").strip().lower()


def from_dynamo(value: Any) -> Any:
    """Decimal → int/float рекурсивно."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value


class UserRepository:
    def __init__(self, table=None, table_name: str | None = None, region: str | None = None):
        self.table_name = table_name or settings.DYNAMODB_TABLE_NAME
        self.region = region or settings.AWS_REGION
        self._table = table

    def table(self):
        if self._table is None:
            dynamodb = boto3.resource("dynamodb", region_name=self.region)
            self._table = dynamodb.Table(self.table_name)
        return self._table

    def get_user_by_username_sync(self, username: str) -> dict | None:
        try:
            response = self.table().get_item(Key={"username": normalize_username(username)})
        except CONNECTION_ERRORS as e:
            raise UsersUnavailableError(str(e)) from e
        item = response.get("Item")
        return from_dynamo(item) if item else None

    async def get_user_by_username(self, username: str) -> dict | None:
        return await run_in_threadpool(self.get_user_by_username_sync, username)

    def put_user(self, item: dict) -> None:
        try:
            self.table().put_item(Item=item)
        except CONNECTION_ERRORS as e:
            raise UsersUnavailableError(str(e)) from e

    def count_users(self) -> int:
        total = 0
        kwargs: dict[str, Any] = {"Select": "COUNT"}
        try:
            while True:
                response = self.table().scan(**kwargs)
                total += response.get("Count", 0)
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return total
                kwargs["ExclusiveStartKey"] = last_key
        except CONNECTION_ERRORS as e:
            raise UsersUnavailableError(str(e)) from e

    def table_status(self) -> str:
        """DescribeTable: ACTIVE, CREATING, ..."""
        try:
            table = self.table()
            table.load()
            return table.table_status
        except CONNECTION_ERRORS as e:
            raise UsersUnavailableError(str(e)) from e
