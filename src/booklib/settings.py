# settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    APP_NAME: str = "Book Library API"
    ENVIRONMENT: str = "development"  # "development" | "production"
    HOST: str = "127.0.0.1"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    MONGODB_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "bookLibrary"

    SECRET_KEY: str = "change-me"
    COOKIE_NAME: str = "booklib_sid"
    COOKIE_SAMESITE: str = "lax"  # "lax" | "strict" | "none"

    SESSION_TTL_SECONDS: int = 24 * 60 * 60  # 24h, sliding
    BCRYPT_ROUNDS: int = 10

    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    OAUTH_REDIRECT_URI: str | None = None  # derived from the request when unset
    OAUTH_SUCCESS_REDIRECT: str = "/docs"
    OAUTH_STATE_MAX_AGE: int = 10 * 60

    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def cookie_secure(self) -> bool:
        return self.ENVIRONMENT.lower() != "development"

settings = Settings()
