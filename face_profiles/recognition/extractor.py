"""
얼굴 특징 추출 모듈
이미지 바이트 → 고정 길이 특징 벡터 (descriptor)

추출기는 순수 함수처럼 동작해야 합니다: 주어진 바이트 외의 디스크/네트워크 접근 없음.
"""
from abc import ABC, abstractmethod
from typing import Tuple

import cv2
import numpy as np

from ..config import ExtractorConfig
from ..utils.helpers import decode_image, l2_normalize
from ..utils.log import get_logger

logger = get_logger(__name__)


class DescriptorExtractor(ABC):
    """특징 추출기 인터페이스"""

    descriptor_size: int = 128

    @abstractmethod
    def extract(self, image_bytes: bytes) -> np.ndarray:
        """
        이미지에서 특징 벡터 추출

        Args:
            image_bytes: 인코딩된 이미지

        Returns:
            특징 벡터 (descriptor_size 차원, float32)

        Raises:
            UnreadableImage: 이미지를 읽을 수 없는 경우
        """

    def _check(self, descriptor: np.ndarray) -> np.ndarray:
        descriptor = np.asarray(descriptor, dtype=np.float32).reshape(-1)
        if descriptor.shape[0] != self.descriptor_size:
            raise ValueError(
                f"특징 벡터 크기 불일치: {descriptor.shape[0]} != {self.descriptor_size}"
            )
        return descriptor


class HistogramDescriptorExtractor(DescriptorExtractor):
    """
    히스토그램 + 그래디언트 방향 특징 추출기

    모델 없이 동작하는 결정적(deterministic) 추출기입니다.
    같은 입력에는 항상 같은 벡터를 반환합니다.
    """

    def __init__(
        self,
        descriptor_size: int = 128,
        image_size: Tuple[int, int] = (112, 112),
    ):
        self.descriptor_size = descriptor_size
        self.image_size = image_size

    def extract(self, image_bytes: bytes) -> np.ndarray:
        img = decode_image(image_bytes)

        resized = cv2.resize(img, self.image_size)
        gray = cv2.cvtColor(resized, cv2.COLOR_BGR2GRAY)

        bins = max(1, self.descriptor_size // 2)

        # 밝기 히스토그램
        hist = cv2.calcHist([gray], [0], None, [bins], [0, 256])
        hist = hist.flatten() / (hist.sum() + 1e-6)

        # 그래디언트 방향 히스토그램 (크기 가중)
        gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
        gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
        mag, ang = cv2.cartToPolar(gx, gy)
        hog_hist = np.histogram(ang.flatten(), bins=bins, range=(0, 2 * np.pi), weights=mag.flatten())[0]
        hog_hist = hog_hist / (hog_hist.sum() + 1e-6)

        # 결합하여 descriptor_size 차원으로 맞춤
        descriptor = np.concatenate([hist, hog_hist]).astype(np.float32)
        descriptor = np.resize(descriptor, self.descriptor_size)

        return self._check(l2_normalize(descriptor))


class ModelDescriptorExtractor(DescriptorExtractor):
    """
    자체 학습 모델 (ResNet + Embedding) 특징 추출기

    torch / torchvision 이 필요합니다 (pip install face-profiles[model]).
    """

    def __init__(
        self,
        model_path: str,
        descriptor_size: int = 128,
        image_size: Tuple[int, int] = (112, 112),
        device: str = "auto",
    ):
        from .embedder import load_embedder

        self.descriptor_size = descriptor_size
        self.image_size = image_size
        self.model, self.torch_device = load_embedder(model_path, descriptor_size, device)
        self.transform = self._build_transform()

    def _build_transform(self):
        from torchvision import transforms

        return transforms.Compose([
            transforms.ToPILImage(),
            transforms.Resize(self.image_size),
            transforms.ToTensor(),
            transforms.Normalize(mean=[0.485, 0.456, 0.406], std=[0.229, 0.224, 0.225]),
        ])

    def extract(self, image_bytes: bytes) -> np.ndarray:
        import torch

        img = decode_image(image_bytes)
        rgb_image = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)

        input_tensor = self.transform(rgb_image).unsqueeze(0).to(self.torch_device)

        with torch.no_grad():
            embedding = self.model.extract(input_tensor)

        return self._check(embedding.cpu().numpy().flatten())


def build_extractor(config: ExtractorConfig) -> DescriptorExtractor:
    """설정에 맞는 특징 추출기 생성"""
    if config.backend == "histogram":
        extractor = HistogramDescriptorExtractor(
            descriptor_size=config.descriptor_size,
            image_size=config.image_size,
        )
    elif config.backend == "model":
        if not config.model_path:
            raise ValueError("model 백엔드에는 model_path 가 필요합니다")
        extractor = ModelDescriptorExtractor(
            model_path=config.model_path,
            descriptor_size=config.descriptor_size,
            image_size=config.image_size,
            device=config.device,
        )
    else:
        raise ValueError(f"지원하지 않는 추출기: {config.backend}")

    logger.info("특징 추출기: %s (%d차원)", config.backend, config.descriptor_size)
    return extractor


__all__ = [
    "DescriptorExtractor",
    "HistogramDescriptorExtractor",
    "ModelDescriptorExtractor",
    "build_extractor",
]
