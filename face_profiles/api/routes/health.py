"""
상태 확인 API 라우터
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_pipeline

router = APIRouter()


@router.get("/health")
async def health(
    pipeline=Depends(get_pipeline)
):
    """서버 상태"""
    return {
        "status": "ok",
        "profiles": len(pipeline.repository),
    }
