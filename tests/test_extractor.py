from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from conftest import make_image
from face_profiles.config import ExtractorConfig
from face_profiles.errors import StorageError, UnreadableImage
from face_profiles.recognition.extractor import HistogramDescriptorExtractor, build_extractor


def test_histogram_descriptor_has_fixed_length():
    extractor = HistogramDescriptorExtractor(descriptor_size=128)
    for seed, ext in [(0, ".png"), (1, ".jpg"), (2, ".png")]:
        vec = extractor.extract(make_image(seed, size=48 + seed * 30, ext=ext))
        assert vec.shape == (128,)
        assert vec.dtype == np.float32
        assert np.linalg.norm(vec) == pytest.approx(1.0, abs=1e-5)


def test_histogram_descriptor_is_deterministic():
    extractor = HistogramDescriptorExtractor()
    data = make_image(3)
    np.testing.assert_array_equal(extractor.extract(data), extractor.extract(data))


def test_odd_descriptor_size():
    extractor = HistogramDescriptorExtractor(descriptor_size=33)
    assert extractor.extract(make_image(4)).shape == (33,)


@pytest.mark.parametrize("data", [b"", b"definitely not an image"])
def test_unreadable_image(data):
    extractor = HistogramDescriptorExtractor()
    with pytest.raises(UnreadableImage):
        extractor.extract(data)


def test_build_extractor_selects_backend():
    extractor = build_extractor(ExtractorConfig(backend="histogram", descriptor_size=64))
    assert isinstance(extractor, HistogramDescriptorExtractor)
    assert extractor.descriptor_size == 64

    with pytest.raises(ValueError):
        build_extractor(ExtractorConfig(backend="unknown"))
    with pytest.raises(ValueError):
        build_extractor(ExtractorConfig(backend="model", model_path=None))


def test_model_extractor_from_checkpoint(tmp_path: Path):
    pytest.importorskip("torch")
    pytest.importorskip("torchvision")
    from face_profiles.recognition.embedder import FaceEmbedder, save_embedder

    path = save_embedder(FaceEmbedder(backbone="resnet18", embedding_size=32), tmp_path / "embedder.pt")

    extractor = build_extractor(
        ExtractorConfig(backend="model", descriptor_size=32, model_path=str(path), device="cpu")
    )
    data = make_image(5)
    vec = extractor.extract(data)

    assert vec.shape == (32,)
    np.testing.assert_allclose(vec, extractor.extract(data), rtol=1e-5, atol=1e-6)

    with pytest.raises(StorageError):
        build_extractor(ExtractorConfig(backend="model", descriptor_size=64, model_path=str(path), device="cpu"))


def test_model_extractor_missing_checkpoint(tmp_path: Path):
    pytest.importorskip("torch")
    pytest.importorskip("torchvision")

    with pytest.raises(StorageError):
        build_extractor(
            ExtractorConfig(backend="model", model_path=str(tmp_path / "missing.pt"), device="cpu")
        )
