from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuración general del servicio.
    Se lee desde variables de entorno o desde un archivo .env.
    """
    DATABASE_URL: str = "sqlite:///./caltrack.db"

    SECRET_KEY: str = "cambia-esta-clave"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Reintentos máximos al generar un recall number único
    RECALL_MAX_ATTEMPTS: int = 50
    # Ventana (días) para el listado de "próximos a vencer"
    DUE_SOON_DAYS: int = 7

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
