"""
API 설정
"""
from pydantic_settings import BaseSettings
from typing import List, Optional
from pathlib import Path


class Settings(BaseSettings):
    """API 설정"""
    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS 설정
    CORS_ORIGINS: List[str] = ["*"]

    # 파일 저장 경로
    DATA_DIR: str = str(Path(__file__).parent.parent.parent / "data")
    FACES_DIR: str = str(Path(__file__).parent.parent.parent / "faces")
    PROFILES_FILE: Optional[str] = None  # 기본값: DATA_DIR/profiles.json

    # 인식 설정
    EXTRACTOR_BACKEND: str = "histogram"  # histogram | model
    MODEL_PATH: Optional[str] = None
    DESCRIPTOR_SIZE: int = 128
    MATCH_THRESHOLD: float = 0.7

    # 파일 업로드 설정
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB
    MAX_UPLOAD_FILES: int = 10
    ALLOWED_EXTENSIONS: List[str] = [".jpg", ".jpeg", ".png", ".webp"]

    class Config:
        env_file = ".env"


settings = Settings()
