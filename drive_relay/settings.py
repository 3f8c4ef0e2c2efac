# drive_relay/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# This settings.py file is at <project>/drive_relay/settings.py
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DOTENV_PATH = PROJECT_ROOT / ".env"

DRIVE_FILE_SCOPE = "https://www.googleapis.com/auth/drive.file"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    app_name: str = "Drive Relay"
    debug_mode: bool = False
    log_level: str = "INFO"
    storage_backend: str = "sqlite"

    # Redis configuration
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_ssl: bool = False

    # SQLite configuration
    sqlite_db_path: str = "./drive_relay_data.sqlite3"

    # Unconsumed handshake states older than this are garbage
    oauth_state_ttl_seconds: int = 600

    # Google OAuth client
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_redirect_url: str = "http://localhost:8000/oauth/callback"
    google_scopes: List[str] = Field(default_factory=lambda: [DRIVE_FILE_SCOPE])

    # LINE channel
    line_channel_secret: Optional[str] = Field(
        default=None,
        description="Channel secret used to verify webhook signatures."
    )
    line_channel_access_token: Optional[str] = None
    line_rich_menu_connected_id: Optional[str] = Field(
        default=None,
        description="Rich menu linked to users with a stored Drive credential."
    )
    line_rich_menu_disconnected_id: Optional[str] = Field(
        default=None,
        description="Rich menu linked to users without a Drive credential."
    )

    # Upload layout
    drive_root_folder_name: str = "LINE Bot Uploads"
    folder_timezone: str = "UTC"
    recent_files_limit: int = 5

    encryption_key: Optional[str] = Field(
        default=None,
        description="Fernet key for encrypting stored credentials. Strongly recommended in production."
    )
    http_timeout_seconds: float = 30.0

    model_config = SettingsConfigDict(
        env_file=DOTENV_PATH if DOTENV_PATH.exists() else None,
        extra="ignore",
        env_file_encoding='utf-8'
    )

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level.upper()


def log_settings_summary(settings: Settings) -> None:
    """Log the loaded configuration with secrets masked."""
    logger.info(f"Settings: storage_backend='{settings.storage_backend}', debug_mode={settings.debug_mode}")
    logger.info(
        f"Settings: google_client_id={'SET' if settings.google_client_id else 'None'}, "
        f"google_client_secret={'********' if settings.google_client_secret else 'None'}, "
        f"google_redirect_url='{settings.google_redirect_url}'"
    )
    logger.info(
        f"Settings: line_channel_secret={'********' if settings.line_channel_secret else 'None'}, "
        f"line_channel_access_token={'********' if settings.line_channel_access_token else 'None'}"
    )
    logger.info(
        f"Settings: encryption_key={'********' if settings.encryption_key else 'None'}, "
        f"drive_root_folder_name='{settings.drive_root_folder_name}', folder_timezone='{settings.folder_timezone}'"
    )
    if not settings.encryption_key:
        logger.warning("Settings: ENCRYPTION_KEY is not set. Drive credentials will be stored unencrypted.")
