from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from enum import Enum
from pathlib import Path

class EnvironmentType(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"

class Settings(BaseSettings):
    # Basic Settings
    APP_NAME: str = "Audition Platform"
    ENVIRONMENT: EnvironmentType = EnvironmentType.DEVELOPMENT
    DEBUG: bool = True
    API_PREFIX: str = "/api"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 4000
    LOG_LEVEL: str = "DEBUG"

    # Backend the audition client talks to
    BACKEND_URL: str = "http://localhost:4000"
    UPLOAD_TIMEOUT_SECONDS: float = 30.0

    # Audition timing
    GLOBAL_TIME_LIMIT_SECONDS: int = 1800
    DEFAULT_HARD_LIMIT_SECONDS: int = 90
    OVERTIME_WARNING_SECONDS: int = 30
    TRANSITION_DELAY_SECONDS: float = 2.0
    FINAL_UPLOAD_GRACE_SECONDS: float = 10.0
    AUTO_START_RECORDING: bool = True
    # Lets a session run without a working microphone (testing only)
    ALLOW_NO_DEVICE: bool = False

    # Audio Capture
    AUDIO_SAMPLE_RATE: int = 16000
    AUDIO_CHANNELS: int = 1
    AUDIO_CHUNK_SIZE: int = 1024

    # Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    UPLOAD_DIR: Path = BASE_DIR / "uploads"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra='ignore'
    )

@lru_cache
def get_settings() -> Settings:
    return Settings()
