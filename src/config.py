from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root; the bundled response artifacts live next to the src/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and defaults.

    This class defines all the configurable parameters for the mock server:
    where it listens, which origins may call it cross-origin, where the static
    response artifacts are read from and how logs are rendered. Settings are
    read once at startup and are immutable afterwards; components receive the
    values they need explicitly instead of looking up the environment.
    """

    # Listener
    host: str = Field(
        default="0.0.0.0",
        description="Interface address the HTTP server binds to.",
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="TCP port the HTTP server listens on.",
    )

    # Cross-origin access control
    allowed_origins: str = Field(
        default="",
        description="Comma-separated list of origins allowed to make cross-origin requests. Empty means every origin is allowed.",
    )
    allow_credentials: bool = Field(
        default=False,
        description="When true, the request origin is echoed back together with Access-Control-Allow-Credentials. Only the literal string 'true' enables it.",
    )

    # Response artifacts
    responses_dir: Path = Field(
        default=BASE_DIR / "responses",
        description="Directory holding the static JSON response artifacts, one '<name>.json' file per artifact.",
    )
    server_name: str = Field(
        default="dummy-logger-server",
        description="Identity reported in the X-Served-By header and by the health check.",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Level of the application logger (DEBUG, INFO, WARNING, ...).",
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="'text' renders request and response records as multi-line blocks, 'json' emits one JSON document per record.",
    )

    # Pydantic Configuration
    model_config = SettingsConfigDict(
        env_file=".env",  # Load settings from a .env file
        env_file_encoding="utf-8",  # Encoding for the .env file
        case_sensitive=False,  # PORT, ALLOWED_ORIGINS, ... map onto the lowercase fields
        frozen=True,  # Configuration never changes after startup
        extra="ignore",
    )

    @field_validator("allow_credentials", mode="before")
    @classmethod
    def _credentials_flag(cls, value: Any) -> Any:
        # Anything other than the exact string "true" leaves credentials disabled
        if isinstance(value, str):
            return value == "true"
        return value


# Instantiate the Settings class, which will load configurations from the environment
# and use the default values defined above.
settings = Settings()
