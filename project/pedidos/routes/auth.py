# pedidos/routes/auth.py

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jwt import encode, decode, ExpiredSignatureError, InvalidTokenError
from datetime import datetime, timedelta, timezone
from typing import Optional

from pedidos.config import settings
from pedidos.schemas.user import LoginRequest, UserInfo
from pedidos.utils.security import verify_password

router = APIRouter()

# ────────────── JWT ──────────────
ALGORITHM = "HS256"
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Создаёт JWT токен.
    Вход: dict (например {"username": "ana", "role": "operador", "jti": "..."})
    Выход: JWT строка с iat и exp
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.AUTH_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"iat": now, "exp": expire})
    return encode(to_encode, settings.AUTH_SECRET_KEY, algorithm=ALGORITHM)


def unauthorized(error: str, code: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "code": code},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    """
    Проверяет Bearer токен и сессию, возвращает claims пользователя.

    **Коды 401:**
    - TOKEN_MISSING – нет заголовка Authorization
    - TOKEN_EXPIRED – истёк срок действия
    - TOKEN_INVALID – неверная подпись или формат
    - SESSION_INVALID – logout или токен выпущен до рестарта сервера
    """
    log = request.app.state.log
    if not token:
        raise unauthorized("Token de autenticación requerido", "TOKEN_MISSING")

    try:
        payload = decode(token, settings.AUTH_SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        await log.log_warning("auth", "Токен истёк")
        raise unauthorized("Token expirado. Inicie sesión nuevamente.", "TOKEN_EXPIRED")
    except InvalidTokenError:
        await log.log_warning("auth", "Неверный токен")
        raise unauthorized("Token inválido", "TOKEN_INVALID")

    if not request.app.state.sessions.is_token_valid(payload.get("jti"), payload.get("iat")):
        await log.log_warning("auth", "Сессия недействительна", {"username": payload.get("username")})
        raise unauthorized("Sesión inválida. Inicie sesión nuevamente.", "SESSION_INVALID")

    # для RequestLogMiddleware
    request.state.user = payload.get("username")
    return payload


def require_role(*roles: str):
    """Зависимость: пользователь с одной из ролей, иначе 403."""
    async def checker(request: Request, user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in roles:
            await request.app.state.log.log_warning(
                "auth", "Доступ запрещён", {"username": user.get("username"), "role": user.get("role"), "path": request.url.path}
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": "No tiene permisos para acceder a este recurso", "code": "FORBIDDEN"},
            )
        return user

    return checker


staff_user = require_role("admin", "operador")
client_user = require_role("cliente")


# ────────────── LOGIN ──────────────
@router.post(
    "/login",
    summary="Вход пользователя (JWT)",
    responses={
        200: {
            "description": "Токен выдан",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                        "serverStartTime": 1735689600000,
                        "user": {
                            "id": 1,
                            "username": "ana",
                            "name": "Ana",
                            "role": "operador",
                            "email": "ana@beezy.bo",
                            "empresa": None,
                            "sheetTab": None,
                        },
                    }
                }
            },
        },
        400: {"description": "Не указан логин или пароль"},
        401: {"description": "Неверный логин или пароль"},
        403: {"description": "Пользователь деактивирован"},
        503: {"description": "DynamoDB недоступен"},
    },
)
async def login(request: Request, credentials: LoginRequest):
    """
    Проверяет логин и пароль по таблице пользователей DynamoDB.
    При успехе выдаёт JWT и регистрирует его jti в менеджере сессий.
    """
    log = request.app.state.log
    sessions = request.app.state.sessions

    if not credentials.username or not credentials.password:
        raise HTTPException(status_code=400, detail="Usuario y contraseña son requeridos")

    try:
        user = await request.app.state.users.get_user_by_username(credentials.username)
    except Exception as e:
        await log.log_error("auth", f"Ошибка при чтении пользователя: {str(e)}", {"username": credentials.username})
        raise

    if not user:
        await log.log_warning("auth", "Неудачная попытка входа", {"username": credentials.username})
        raise HTTPException(status_code=401, detail="Credenciales inválidas")

    if user.get("active") is False:
        await log.log_warning("auth", "Вход деактивированного пользователя", {"username": user.get("username")})
        raise HTTPException(status_code=403, detail="Usuario desactivado. Contacte al administrador.")

    if not verify_password(credentials.password, user.get("password", "")):
        await log.log_warning("auth", "Неверный пароль", {"username": user.get("username")})
        raise HTTPException(status_code=401, detail="Credenciales inválidas")

    sessions.cleanup_expired()
    token_id = sessions.generate_token_id()
    token = create_access_token(
        data={
            "id": user.get("id"),
            "username": user.get("username"),
            "role": user.get("role"),
            "empresa": user.get("empresa"),
            "jti": token_id,
        }
    )
    sessions.register(token_id)

    await log.log_info("auth", "Пользователь успешно авторизован", {"username": user.get("username"), "role": user.get("role")})
    return {
        "success": True,
        "token": token,
        "serverStartTime": sessions.server_start_time,
        "user": UserInfo.model_validate(user).model_dump(),
    }


# ────────────── ME ──────────────
@router.get(
    "/me",
    summary="Данные текущего пользователя из токена",
    responses={401: {"description": "Токен отсутствует или недействителен"}},
)
async def me(user: dict = Depends(get_current_user)):
    return {"success": True, "user": user}


# ────────────── LOGOUT ──────────────
@router.post(
    "/logout",
    summary="Выход: токен попадает в чёрный список",
    response_description="Всегда успешный ответ, даже без токена",
)
async def logout(request: Request, token: Optional[str] = Depends(oauth2_scheme)):
    log = request.app.state.log
    if token:
        try:
            payload = decode(token, settings.AUTH_SECRET_KEY, algorithms=[ALGORITHM], options={"verify_exp": False})
        except InvalidTokenError:
            await log.log_warning("auth", "Logout с неверным токеном")
        else:
            if payload.get("jti"):
                request.app.state.sessions.invalidate(payload["jti"])
                await log.log_info("auth", "Пользователь вышел", {"username": payload.get("username")})
    return {"success": True, "message": "Sesión cerrada exitosamente"}


# ────────────── SERVER INFO ──────────────
@router.get("/server-info", summary="Время старта и uptime сервера (мс)")
async def server_info(request: Request):
    sessions = request.app.state.sessions
    return {
        "success": True,
        "serverStartTime": sessions.server_start_time,
        "serverUptime": sessions.uptime_ms(),
    }
