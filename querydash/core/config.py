from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Cache backend (Upstash-style Redis REST). Both must be set to enable it
    REDIS_URL: Optional[str] = None
    REDIS_TOKEN: Optional[str] = None
    CACHE_TTL_SECONDS: int = 300

    # External query service. The sample executor is used when this is unset
    QUERY_SERVICE_URL: Optional[str] = None
    QUERY_TIMEOUT_SECONDS: float = 10.0
    MAX_QUERY_LENGTH: int = 500

    SUBSCRIBER_QUEUE_SIZE: int = 100

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "https://querydash-app.netlify.app",
    ]
    CORS_ORIGIN_REGEX: Optional[str] = r"https://.*\.netlify\.app"

    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"
    INIT_DB_ON_STARTUP: bool = True

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create a single instance of the settings to use everywhere
settings = Settings()
