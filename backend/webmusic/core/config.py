from typing import List, Optional
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Try to load .env file if it exists
env_path = Path(__file__).parent.parent.parent.parent / '.env'
if env_path.exists():
    load_dotenv(str(env_path))

# Base directory is the backend directory
BASE_DIR: Path = Path(__file__).parent.parent.parent

class Settings(BaseSettings):
    PROJECT_NAME: str = "WebMusic"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8082

    # CORS Settings
    CORS_ALLOW_ORIGINS: str = "*"
    CORS_ALLOW_METHODS: str = "GET,OPTIONS"
    CORS_ALLOW_HEADERS: str = "Content-Type"

    # Directory Settings
    BASE_DIR: Path = BASE_DIR
    STATIC_DIR: Path = BASE_DIR / "static"
    TEMPLATES_DIR: Path = BASE_DIR / "templates"

    # Search Settings
    DEFAULT_SOURCES: str = "qq,netease,kuwo"
    SEARCH_LIMIT: int = 20

    # Provider HTTP Settings
    HTTP_TIMEOUT: float = 15.0
    QQ_TIMEOUT: float = 30.0
    QQ_SEARCH_RETRIES: int = 3
    QQ_RETRY_WAIT: float = 2.0  # seconds, grows linearly per attempt
    KUWO_TOKEN_TTL: int = 30 * 60
    KUWO_DEFAULT_TOKEN: str = "JQOEP7QK8RS"
    WARM_UP_SESSIONS: bool = True

    # Third-party fallback endpoints
    NETEASE_BACKUP_API: str = "https://musicapi.leanapp.cn"
    QQ_FALLBACK_API: str = "https://api.zhuolin.wang/api.php"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        json_schema_extra={
            "title": "API Settings",
            "description": "Configuration settings for the music aggregation API"
        },
    )

    @property
    def cors_origins(self) -> List[str]:
        return parse_comma_separated_list(self.CORS_ALLOW_ORIGINS)

    @property
    def cors_methods(self) -> List[str]:
        return parse_comma_separated_list(self.CORS_ALLOW_METHODS)

    @property
    def cors_headers(self) -> List[str]:
        return parse_comma_separated_list(self.CORS_ALLOW_HEADERS)

    @property
    def default_sources(self) -> List[str]:
        return [source.lower() for source in parse_comma_separated_list(self.DEFAULT_SOURCES)]

def parse_comma_separated_list(value: Optional[str | List[str]]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if value == "*":
        return ["*"]
    return [item.strip() for item in value.split(",") if item.strip()]

# Create global settings object
settings = Settings()

# Export constants
PROJECT_NAME = settings.PROJECT_NAME
API_PREFIX = settings.API_PREFIX
DEBUG = settings.DEBUG
ENVIRONMENT = settings.ENVIRONMENT
