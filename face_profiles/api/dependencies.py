"""
의존성 주입
"""
from typing import Optional

from .config import settings
from ..config import ExtractorConfig, MatcherConfig, PipelineConfig, StorageConfig
from ..pipeline import FaceProfilePipeline
from ..utils.log import get_logger

logger = get_logger(__name__)

# 전역 파이프라인 인스턴스
_pipeline: Optional[FaceProfilePipeline] = None


def init_pipeline() -> FaceProfilePipeline:
    """파이프라인 초기화"""
    global _pipeline

    config = PipelineConfig(
        extractor=ExtractorConfig(
            backend=settings.EXTRACTOR_BACKEND,
            descriptor_size=settings.DESCRIPTOR_SIZE,
            model_path=settings.MODEL_PATH,
        ),
        matcher=MatcherConfig(
            threshold=settings.MATCH_THRESHOLD,
        ),
        storage=StorageConfig(
            data_dir=settings.DATA_DIR,
            faces_dir=settings.FACES_DIR,
            profiles_file=settings.PROFILES_FILE,
        ),
    )

    _pipeline = FaceProfilePipeline(config=config)

    logger.info("파이프라인 초기화 완료")
    logger.info("프로필 문서: %s", config.storage.profiles_path)
    logger.info("얼굴 이미지 저장소: %s", config.storage.faces_dir)
    return _pipeline


def get_pipeline() -> FaceProfilePipeline:
    """파이프라인 인스턴스 반환"""
    global _pipeline
    if _pipeline is None:
        init_pipeline()
    return _pipeline
