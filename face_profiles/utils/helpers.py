"""
헬퍼 유틸리티
이미지 디코딩, 벡터 정규화, 거리/신뢰도 변환 등
"""
import cv2
import numpy as np

from ..errors import UnreadableImage


def decode_image(data: bytes) -> np.ndarray:
    """
    이미지 바이트를 BGR 배열로 디코딩

    Args:
        data: 인코딩된 이미지 (jpg, png, webp 등)

    Returns:
        BGR 이미지 [H, W, 3]

    Raises:
        UnreadableImage: 디코딩 실패
    """
    if not data:
        raise UnreadableImage("빈 이미지입니다")

    nparr = np.frombuffer(data, np.uint8)
    img = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if img is None or img.size == 0:
        raise UnreadableImage()

    return img


def l2_normalize(vec: np.ndarray, eps: float = 1e-12, dtype=np.float32) -> np.ndarray:
    """L2 정규화 (1D 벡터 또는 2D 행렬의 각 행)"""
    arr = np.asarray(vec, dtype=dtype)
    if arr.ndim == 1:
        norm = float(np.linalg.norm(arr))
        if norm < eps:
            return arr
        return arr / norm
    if arr.ndim == 2:
        norms = np.linalg.norm(arr, axis=1, keepdims=True)
        return arr / np.maximum(norms, eps)
    raise ValueError(f"지원하지 않는 차원: ndim={arr.ndim}")




def distance_to_confidence(distance: float) -> float:
    """
    정규화 벡터 간 거리 (0~2) 를 신뢰도 (0~1) 로 변환

    거리가 멀수록 신뢰도는 단조 감소합니다.
    """
    return float(np.clip(1.0 - distance / 2.0, 0.0, 1.0))
