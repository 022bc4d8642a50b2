from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BACKEND_BASE_URL: str = "http://localhost:8080/api"
    BACKEND_ACCESS_TOKEN: str | None = None
    HTTP_TIMEOUT_SECONDS: float = 30.0

    ANALYZER_INTERVAL_MS: int = 100
    STABILITY_THRESHOLD: int = 15

    GUIDANCE_CENTER_TOLERANCE: float = 0.15
    GUIDANCE_MIN_FACE_AREA: float = 0.08
    GUIDANCE_MAX_FACE_AREA: float = 0.35

    CAMERA_INDEX: int = 0
    CAMERA_WIDTH: int = 1280
    CAMERA_HEIGHT: int = 720
    JPEG_QUALITY: int = 90

    MIN_BIOMETRIC_SAMPLES: int = 3

    CONSISTENCY_DELAY_MS: int = 500
    REQUIRE_ENROLLMENT_BEFORE_ORDER: bool = False


settings = Settings()
