"""Simple configuration management.

This module defines a ``Settings`` class that reads configuration
values from environment variables and provides sensible defaults.
``.env`` support is implemented by loading files from the repository
root in a defined order.  You can override any value via environment
variables.

Extraction backends are enabled purely by the presence of their
credentials: ``OPENAI_API_KEY`` turns on the structured vision backend
and the three ``GOOGLE_CLOUD_*`` values turn on the OCR vision backend.
Local Tesseract OCR is always available as the last resort.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv, find_dotenv

# -----------------------------------------------------------------------------
# .env loading
#
# Prefer a .env in the repository root but allow fallback to whatever
# python-dotenv discovers from the current working directory.  Files are
# loaded in order without overriding already-set variables.

_THIS_FILE = Path(__file__).resolve()
_REPO_ROOT = _THIS_FILE.parents[3]
_ROOT_ENV = _REPO_ROOT / ".env"

_candidate_envs: list[str] = []
if _ROOT_ENV.exists():
    _candidate_envs.append(str(_ROOT_ENV))

_FOUND_ENV = find_dotenv(usecwd=True)
if _FOUND_ENV and _FOUND_ENV not in _candidate_envs:
    _candidate_envs.append(_FOUND_ENV)

for _env_path in _candidate_envs:
    load_dotenv(dotenv_path=_env_path, override=False)


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from the environment with sensible defaults.  Any
    attribute defined here can be overridden by setting the corresponding
    environment variable.
    """

    model_config = SettingsConfigDict(
        env_file=tuple(_candidate_envs) if _candidate_envs else (".env",),
        case_sensitive=True,
        extra="allow",
    )

    # API Settings
    PROJECT_NAME: str = "Receipt Scanner"
    ENVIRONMENT: str = Field(default="development")
    PORT: int = Field(default=3001)
    LOG_LEVEL: str = Field(default="INFO")

    # Database
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./receipts.db")
    DATABASE_ECHO: bool = Field(default=False)

    # Storage
    STORAGE_BACKEND: str = Field(default="filesystem")
    UPLOAD_DEST: str = Field(default="./uploads")
    MINIO_ENDPOINT: str = Field(default="localhost:9000")
    MINIO_ACCESS_KEY: str = Field(default="minioadmin")
    MINIO_SECRET_KEY: str = Field(default="minioadmin")
    MINIO_BUCKET_NAME: str = Field(default="receipts")
    MINIO_USE_SSL: bool = Field(default=False)

    # File Upload
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB
    ALLOWED_MIME_TYPES: list[str] = Field(default=["image/jpeg", "image/jpg", "image/png"])
    ALLOWED_EXTENSIONS: list[str] = Field(default=[".jpg", ".jpeg", ".png"])

    # OpenAI (structured vision backend)
    OPENAI_API_KEY: Optional[str] = Field(default=None)
    OPENAI_MODEL: str = Field(default="gpt-4o")
    OPENAI_MAX_TOKENS: int = Field(default=1000)

    # Google Cloud Vision (OCR vision backend)
    GOOGLE_CLOUD_PROJECT_ID: Optional[str] = Field(default=None)
    GOOGLE_CLOUD_PRIVATE_KEY: Optional[str] = Field(default=None)
    GOOGLE_CLOUD_CLIENT_EMAIL: Optional[str] = Field(default=None)

    # Tesseract (local OCR backend)
    TESSERACT_CMD: Optional[str] = Field(default=None)
    TESSERACT_LANGUAGES: str = Field(default="eng+deu")

    # CORS
    BACKEND_CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
    )

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0)
    SENTRY_RELEASE: Optional[str] = Field(default=None)

    @property
    def has_openai_credentials(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    @property
    def has_google_credentials(self) -> bool:
        return bool(
            self.GOOGLE_CLOUD_PROJECT_ID
            and self.GOOGLE_CLOUD_PRIVATE_KEY
            and self.GOOGLE_CLOUD_CLIENT_EMAIL
        )


# Instantiate global settings
settings = Settings()


def get_google_private_key(config: Optional[Settings] = None) -> Optional[str]:
    """Return the Google service-account key with escaped newlines restored.

    Keys pasted into ``.env`` files usually carry literal ``\\n``
    sequences instead of real line breaks, which the PEM parser rejects.
    """
    key = (config or settings).GOOGLE_CLOUD_PRIVATE_KEY
    if not key:
        return None
    return key.replace("\\n", "\n")
