"""로그 설정"""
import logging
from typing import Union

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO):
    """루트 로거 설정 (앱 시작 시 1회)"""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def get_logger(name):
    """로거 반환"""
    return logging.getLogger(name)
