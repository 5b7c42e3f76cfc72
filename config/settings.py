# config/settings.py
import os
import sys
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment, KVBackend
import logging


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()

_log = logging.getLogger("config.settings")


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(default=Environment.DEV.value, validation_alias="APP_ENV")
    PROJECT_NAMESPACE: str = Field(default="botc", validation_alias="PROJECT_NAMESPACE")
    NAMESPACE_CONFIG_FILE: str | None = Field(
        default=None, validation_alias="NAMESPACE_CONFIG_FILE"
    )

    # Key-value store
    KV_BACKEND: KVBackend = Field(default=KVBackend.HTTP, validation_alias="KV_BACKEND")
    KV_BASE_URL: str = Field(
        default="http://localhost:54321/functions/v1/make-server-2f4adc16",
        validation_alias="KV_BASE_URL",
    )
    KV_ANON_KEY: str = Field(default="", validation_alias="KV_ANON_KEY")
    KV_TIMEOUT_SECONDS: float = Field(default=15.0, validation_alias="KV_TIMEOUT_SECONDS")

    # Redis (rate limiting and the redis store backend)
    REDIS_URL: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    REDIS_KEY_ROOT: str = Field(default="kv:", validation_alias="REDIS_KEY_ROOT")

    # CORS & Limits
    ALLOWED_ORIGIN: str = Field(
        default="http://localhost:5173", validation_alias="ALLOWED_ORIGIN"
    )
    RATE_LIMIT_TIMES: int = Field(default=60, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(default=60, validation_alias="RATE_LIMIT_SECONDS")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")

    # Logging knobs
    LOGGER_NAME: str = "clocktower-share"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
