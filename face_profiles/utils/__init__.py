from .helpers import decode_image, l2_normalize, distance_to_confidence
from .log import get_logger, setup_logging

__all__ = [
    "decode_image",
    "l2_normalize",
    "distance_to_confidence",
    "get_logger",
    "setup_logging",
]
