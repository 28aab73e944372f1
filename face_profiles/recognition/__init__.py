from .extractor import (
    DescriptorExtractor,
    HistogramDescriptorExtractor,
    ModelDescriptorExtractor,
    build_extractor,
)
from .matcher import Matcher, NearestDescriptorMatcher

__all__ = [
    "DescriptorExtractor",
    "HistogramDescriptorExtractor",
    "ModelDescriptorExtractor",
    "build_extractor",
    "Matcher",
    "NearestDescriptorMatcher",
]
