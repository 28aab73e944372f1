"""
얼굴 프로필 관리 시스템 (Face Profiles)

프로필 저장소 + 얼굴 특징 추출/매칭 파이프라인
"""
from .config import PipelineConfig, ExtractorConfig, MatcherConfig, StorageConfig
from .models import AssetRef, ImageUpload, MatchResult, Profile, SearchHit
from .recognition import DescriptorExtractor, HistogramDescriptorExtractor, NearestDescriptorMatcher
from .storage import FaceAssetManager, ProfileRepository
from .pipeline import FaceProfilePipeline

__version__ = "1.0.0"
__all__ = [
    "PipelineConfig",
    "ExtractorConfig",
    "MatcherConfig",
    "StorageConfig",
    "AssetRef",
    "ImageUpload",
    "MatchResult",
    "Profile",
    "SearchHit",
    "DescriptorExtractor",
    "HistogramDescriptorExtractor",
    "NearestDescriptorMatcher",
    "FaceAssetManager",
    "ProfileRepository",
    "FaceProfilePipeline",
]
