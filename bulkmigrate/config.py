from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    max_concurrent_uploads: int
    payload_transform: str
    operation_executor: str
    progress_every: int


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "bulkmigrate"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./bulkmigrate.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        max_concurrent_uploads=int(os.getenv("MAX_CONCURRENT_UPLOADS", "3")),
        payload_transform=os.getenv("PAYLOAD_TRANSFORM", "bulkmigrate.payload:input_to_payload"),
        operation_executor=os.getenv("OPERATION_EXECUTOR", ""),
        progress_every=int(os.getenv("PROGRESS_EVERY", "100")),
    )
