"""Configuration management for labelscan."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Recognition engine
    ocr_languages: str = "kor+eng"
    tesseract_psm: int = 6
    tesseract_oem: int = 1

    # Cache
    ocr_cache_ttl_seconds: float = 600.0
    pipeline_version: str = "v1"

    # Pipeline geometry
    low_res_max_dim: int = 1100
    roi_target_width: int = 3000
    rotation_accept_score: float = 120.0

    # Preview
    preview_jpeg_quality: int = 85

    # Logging
    log_level: str = "INFO"

    @property
    def language_list(self) -> list[str]:
        """Split the configured language set into engine language codes."""
        return [part.strip() for part in self.ocr_languages.split("+") if part.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
