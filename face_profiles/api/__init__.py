"""
얼굴 프로필 REST API (FastAPI)
"""
