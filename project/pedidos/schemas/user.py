# pedidos/schemas/user.py

from pydantic import BaseModel
from typing import Optional, Union


class LoginRequest(BaseModel):
    """
    Вход по логину и паролю.
    Поля необязательные, чтобы пустой запрос получал 400, а не 422.
    """
    username: Optional[str] = None
    password: Optional[str] = None


class UserInfo(BaseModel):
    """Публичные данные пользователя в ответе на вход."""
    id: Optional[Union[int, str]] = None
    username: str
    name: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None
    empresa: Optional[str] = None
    sheetTab: Optional[str] = None
