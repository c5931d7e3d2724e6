# pedidos/config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

VERSION = "1.0.0"


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    PORT: int = 5055
    CORS_ORIGINS: str = "*"

    # Google Sheets
    SHEET_ID: str = "1a8M19WHhfM2SWKSiWbTIpVU76gdAFCJ9uv7y0fnPA4g"
    SHEET_NAME: str = "Registros"
    CLIENTES_SHEET_NAME: str = "Clientes"
    NOTES_SHEET_NAME: str = "Notas"
    EMPRESAS_SHEET_ID: str = "1AAGin-qSutQN42SlRaIbcooec7iKBn_l1QblROrI0Ok"
    BIKERS_SHEET_ID: str = "1BM7sjDPYWYTKh93vRPkkUMZYn7g38R5IG3aJgXPc4pY"
    CLIENT_INFO_SHEET_ID: str = ""
    CLIENT_INFO_SHEET_NAME: str = "Hoja 1"
    INVENTARIO_SHEET_ID: str = ""
    INVENTARIO_ADMINS: str = "miguel,carli,ale"
    HISTORIAL_SHEET_ID: str = ""
    HISTORIAL_SHEET_NAME: str = "Historial de productos"
    PLANTILLA_EMPRESAS_SHEET_NAME: str = "Plantilla Empresas"
    GOOGLE_SERVICE_ACCOUNT_JSON: str = ""
    GOOGLE_SERVICE_ACCOUNT_FILE: str = ""

    # расписания водителей и байкеров
    HORARIOS_SHEET_ID: str = ""
    HORARIOS_BIKERS_SHEET_ID: str = "1OznBoHzpKBVLPG2zfHrtuFC7G6B8cBETnABIwof2VyM"
    HORARIOS_DRIVER_TABS: str = "Paola Aliaga,Patricia,Thiago,Ivan,Marcos,Jose,Abraham,William,Fabricio"
    HORARIOS_BACKUP_PATH: str = "data/horarios.json"

    # Google Maps
    GOOGLE_MAPS_API_KEY: str = ""

    # JWT
    AUTH_SECRET_KEY: str = ""
    AUTH_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60

    # AWS
    AWS_REGION: str = "us-east-1"
    SECRETS_REGION: Optional[str] = None
    SECRET_NAME: str = "pedidos/prod/all-secrets"
    SECRETS_ENABLED: bool = True
    DYNAMODB_TABLE_NAME: str = "pedidos-users"

    # логи и аудит
    LOG_DIR: str = "pedidos/log"
    LOG_PRINT: str = "1"
    AUDIT_LOG_DIR: str = "logs/audit"
    AUDIT_MAX_BYTES: int = 100 * 1024 * 1024
    FORM_LOGS_PATH: str = "form_logs.csv"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @staticmethod
    def as_list(value: str) -> list[str]:
        return [item.strip() for item in value.split(",") if item.strip()]


settings = Settings()
