import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    database_url: str = Field(default=os.getenv("DATABASE_URL", "sqlite:///./docsign.db"))

    # Local blob store
    upload_dir: str = Field(default=os.getenv("UPLOAD_DIR", "uploads"))
    max_file_size: int = Field(default=int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024))))  # 10 MB
    public_base_url: str = Field(default=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000/files"))

    # Aggregate ("fast-sign") identity
    aggregate_view_token: str = Field(default=os.getenv("AGGREGATE_VIEW_TOKEN", "fast-sign-docs@view-all"))
    aggregate_recipient_email: str = Field(default=os.getenv("AGGREGATE_RECIPIENT_EMAIL", "fast-sign@local"))

    signature_write_retries: int = Field(default=int(os.getenv("SIGNATURE_WRITE_RETRIES", "3")))

    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    cors_origins: str = Field(default=os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"))


settings = Settings()
