from . import health, profiles, recognition

__all__ = ["health", "profiles", "recognition"]
