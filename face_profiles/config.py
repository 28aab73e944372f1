"""
얼굴 프로필 시스템 설정
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple
from pathlib import Path


def get_device() -> str:
    """사용 가능한 디바이스 자동 감지"""
    try:
        import torch
        if torch.cuda.is_available():
            return "cuda:0"
        elif hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
            return "mps"  # Apple Silicon
    except ImportError:
        pass
    return "cpu"


@dataclass
class ExtractorConfig:
    """특징 추출 설정"""
    backend: str = "histogram"  # histogram | model
    descriptor_size: int = 128
    image_size: Tuple[int, int] = (112, 112)
    model_path: Optional[str] = None  # model 백엔드용 체크포인트 (.pt)
    device: str = "auto"


@dataclass
class MatcherConfig:
    """매칭 설정"""
    # confidence = 1 - distance / 2, 0.7 은 정규화 벡터 간 거리 0.6 에 해당
    threshold: float = 0.7
    tie_tolerance: float = 1e-6
    search_limit: int = 5


@dataclass
class StorageConfig:
    """저장소 설정"""
    data_dir: str = "./data"
    faces_dir: str = "./faces"
    profiles_file: Optional[str] = None  # None 이면 data_dir/profiles.json
    faces_url_prefix: str = "/faces"

    @property
    def profiles_path(self) -> Path:
        if self.profiles_file:
            return Path(self.profiles_file)
        return Path(self.data_dir) / "profiles.json"

    def ensure_dirs(self):
        Path(self.data_dir).mkdir(parents=True, exist_ok=True)
        Path(self.faces_dir).mkdir(parents=True, exist_ok=True)
        self.profiles_path.parent.mkdir(parents=True, exist_ok=True)


@dataclass
class PipelineConfig:
    """전체 파이프라인 설정"""
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    matcher: MatcherConfig = field(default_factory=MatcherConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def __post_init__(self):
        self.storage.ensure_dirs()
