from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "GeoConvert Coordinate Converter"
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    # Security
    allowed_origins: List[str] = ["*"]  # In production, specify your domain
    max_upload_bytes: int = 10 * 1024 * 1024

    # Column detection samples this many leading rows
    detection_sample_size: int = 5

    # History store keeps the most recent N conversions
    history_limit: int = 50

    model_config = SettingsConfigDict(env_file=".env", env_prefix="GEOCONVERT_")


settings = Settings()
