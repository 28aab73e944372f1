"""
얼굴 임베딩 모델 (ResNet 백본 + Embedding Layer)
ModelDescriptorExtractor 에서 사용하는 추론용 모델과 체크포인트 입출력
"""
from pathlib import Path
from typing import Tuple, Union

import torch
import torch.nn as nn
import torch.nn.functional as F
from torchvision import models

from ..config import get_device
from ..errors import StorageError
from ..utils.log import get_logger

logger = get_logger(__name__)

BACKBONES = {
    "resnet18": (models.resnet18, 512),
    "resnet34": (models.resnet34, 512),
    "resnet50": (models.resnet50, 2048),
}


class FaceEmbedder(nn.Module):
    """
    얼굴 특징 추출 모델 (추론용)
    ResNet 백본 + Embedding Layer
    """
    def __init__(self, backbone: str = "resnet18", embedding_size: int = 128):
        super().__init__()

        if backbone not in BACKBONES:
            raise ValueError(f"지원하지 않는 백본: {backbone}")
        factory, in_features = BACKBONES[backbone]
        base = factory(weights=None)

        # 마지막 FC 레이어 제거
        self.backbone = nn.Sequential(*list(base.children())[:-1])

        self.embedding = nn.Sequential(
            nn.Flatten(),
            nn.Linear(in_features, embedding_size),
            nn.BatchNorm1d(embedding_size),
        )

        self.backbone_name = backbone
        self.embedding_size = embedding_size

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        features = self.backbone(x)
        return self.embedding(features)

    def extract(self, x: torch.Tensor) -> torch.Tensor:
        """추론용: 정규화된 임베딩 반환"""
        embeddings = self.forward(x)
        return F.normalize(embeddings, p=2, dim=1)


def save_embedder(model: FaceEmbedder, path: Union[str, Path]) -> Path:
    """체크포인트 저장 (load_embedder 와 같은 형식)"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    torch.save({
        "model_state_dict": model.state_dict(),
        "embedding_size": model.embedding_size,
        "backbone": model.backbone_name,
    }, path)
    return path


def load_embedder(
    model_path: Union[str, Path],
    embedding_size: int,
    device: str = "auto",
) -> Tuple[FaceEmbedder, torch.device]:
    """
    체크포인트에서 모델 로드

    Args:
        model_path: 체크포인트 경로 (.pt)
        embedding_size: 파이프라인 특징 벡터 크기 (체크포인트와 일치해야 함)
        device: 실행 디바이스 (auto, cuda, mps, cpu)

    Returns:
        (eval 모드 모델, torch 디바이스)
    """
    model_path = Path(model_path)
    if not model_path.exists():
        raise StorageError(f"모델 파일이 없습니다: {model_path}")

    torch_device = torch.device(get_device() if device == "auto" else device)

    try:
        checkpoint = torch.load(model_path, map_location=torch_device, weights_only=False)
    except (OSError, RuntimeError) as e:
        raise StorageError(f"모델 로드 실패: {model_path}: {e}") from e

    backbone = checkpoint.get('backbone', 'resnet18')
    checkpoint_size = int(checkpoint.get('embedding_size', embedding_size))
    if checkpoint_size != embedding_size:
        raise StorageError(
            f"모델 임베딩 크기 불일치: {checkpoint_size} != {embedding_size} ({model_path})"
        )

    model = FaceEmbedder(backbone=backbone, embedding_size=checkpoint_size)
    model.load_state_dict(checkpoint['model_state_dict'])
    model.to(torch_device)
    model.eval()

    logger.info("자체 학습 모델 로드됨: %s (백본=%s, 디바이스=%s)", model_path, backbone, torch_device)
    return model, torch_device
