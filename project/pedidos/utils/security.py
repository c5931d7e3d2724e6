# pedidos/utils/security.py

"""
Хэширование и проверка паролей пользователей.
Основная схема bcrypt: в таблице пользователей лежат хэши `$2a$`/`$2b$`,
записанные прежним сервисом. sha256_crypt остаётся для уже выданных хэшей.
"""

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt", "sha256_crypt"], deprecated="auto", bcrypt__rounds=10)


def hash_password(password: str) -> str:
    """
    Хэширует пароль.

    :param password: строка пароля пользователя
    :return: хэшированный пароль в виде строки
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Проверяет совпадение пароля с его хэшем.
    Неизвестный формат хэша считается несовпадением.
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def is_hashed(value: str) -> bool:
    return bool(value) and pwd_context.identify(value) is not None
