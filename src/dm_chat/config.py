from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"
    FANOUT_BACKEND: Literal["local", "redis"] = "local"
    REDIS_PUBSUB_CHANNEL: str = "chat.new_message"

    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_COOKIE_NAME: str = "jwt"

    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    CLOUDINARY_FOLDER: str = "chat_images"
    CLOUDINARY_API_URL: str = "https://api.cloudinary.com/v1_1"

    UPLOAD_TIMEOUT_SECONDS: float = 15.0
    UPLOAD_MAX_BYTES: int = 10 * 1024 * 1024

    WS_HEARTBEAT_SECONDS: int = 30
    WS_SEND_QUEUE_SIZE: int = 100

    # Mirror newMessage events to the sender's other live sessions.
    ECHO_TO_SENDER: bool = False

    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 5001

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def cloudinary_upload_url(self) -> str:
        return f"{self.CLOUDINARY_API_URL}/{self.CLOUDINARY_CLOUD_NAME}/image/upload"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
