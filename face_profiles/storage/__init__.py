from .assets import FaceAssetManager
from .repository import ProfileRepository

__all__ = ["FaceAssetManager", "ProfileRepository"]
