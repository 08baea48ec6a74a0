# app/core/config.py

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./social.db"
    # seconds to wait for a pooled connection before giving up
    DB_POOL_TIMEOUT: int = 5

    # tokens are issued by the identity service; we only verify them
    SECRET_KEY: str = "CHANGE_THIS_TO_A_SUPER_SECRET_KEY"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DISCOVER_PAGE_SIZE: int = 10
    DISCOVER_MAX_PAGE_SIZE: int = 50
    RELATIONSHIP_MAX_RETRIES: int = 3

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    class Config:
        """
        Values come from the environment first, then from a .env file
        in the working directory.
        """
        env_file = ".env"


settings = Settings()
