from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    API_BASE_URL: str = "http://localhost:3001"
    API_TOKEN: str | None = None
    API_LOCALE: str = "en"
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    UNIQUENESS_DEBOUNCE_MS: int = 800
    AUTOSAVE_DEBOUNCE_MS: int = 2000

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BACKEND_PROVIDER: str = "http"  # "http" | "mock"
    STORE_PROVIDER: str = "memory"  # "memory" | "json"
    SESSION_DATA_DIR: str = "./data/sessions"


settings = Settings()
