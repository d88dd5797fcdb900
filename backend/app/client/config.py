from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    API_BASE_URL: str = "http://localhost:8000/api/v1"
    TIMEOUT_SECONDS: float = 10.0

    # Retry policy for 5xx and transport failures: delay = base * 2**retry
    MAX_RETRIES: int = 3
    BACKOFF_BASE_SECONDS: float = 1.0

    # Persisted session
    AUTH_STORAGE_KEY: str = "vet-auth-storage"
    AUTH_STORAGE_PATH: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="CLINIC_CLIENT_", env_file=".env", extra="ignore")


settings = ClientSettings()
