from __future__ import annotations

import hashlib
from pathlib import Path

import cv2
import numpy as np
import pytest

from face_profiles.config import ExtractorConfig, MatcherConfig, PipelineConfig, StorageConfig
from face_profiles.errors import UnreadableImage
from face_profiles.pipeline import FaceProfilePipeline
from face_profiles.recognition.extractor import DescriptorExtractor


def make_image(seed: int = 0, size: int = 64, ext: str = ".png") -> bytes:
    """Encode a reproducible noise image."""
    rng = np.random.default_rng(seed)
    img = rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8)
    ok, buf = cv2.imencode(ext, img)
    assert ok
    return buf.tobytes()


class _StubExtractor(DescriptorExtractor):
    """Deterministic extractor: descriptor derived from a hash of the bytes.

    Images registered through `assign` get a fixed descriptor instead.
    """

    descriptor_size = 8

    def __init__(self) -> None:
        self.assigned: dict[bytes, np.ndarray] = {}
        self.calls = 0

    def assign(self, data: bytes, vector) -> bytes:
        self.assigned[data] = np.asarray(vector, dtype=np.float32)
        return data

    def extract(self, image_bytes: bytes) -> np.ndarray:
        self.calls += 1
        if not image_bytes or image_bytes.startswith(b"not-an-image"):
            raise UnreadableImage()
        if image_bytes in self.assigned:
            return self.assigned[image_bytes]
        digest = hashlib.sha256(image_bytes).digest()
        vec = np.frombuffer(digest[: self.descriptor_size], dtype=np.uint8).astype(np.float32) + 1.0
        return vec / np.linalg.norm(vec)


@pytest.fixture
def stub_extractor() -> _StubExtractor:
    return _StubExtractor()


def build_config(root: Path) -> PipelineConfig:
    return PipelineConfig(
        extractor=ExtractorConfig(descriptor_size=_StubExtractor.descriptor_size),
        matcher=MatcherConfig(threshold=0.7),
        storage=StorageConfig(data_dir=str(root / "data"), faces_dir=str(root / "faces")),
    )


@pytest.fixture
def pipeline(tmp_path: Path, stub_extractor: _StubExtractor) -> FaceProfilePipeline:
    return FaceProfilePipeline(config=build_config(tmp_path), extractor=stub_extractor)


def stored_files(faces_dir) -> set[str]:
    return {p.name for p in Path(faces_dir).iterdir() if p.is_file()}


def referenced_files(pipeline: FaceProfilePipeline) -> set[str]:
    return {ref.name for p in pipeline.list_profiles() for ref in p.faces}
