"""
얼굴 인식 API 라우터
"""
from typing import List, Optional

from fastapi import APIRouter, File, Query, UploadFile, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from ..dependencies import get_pipeline
from ...errors import NoImageProvided
from .profiles import ProfileResponse, read_uploads, to_response

router = APIRouter()


class RecognizeResponse(BaseModel):
    """인식 응답"""
    matched: bool
    profile: Optional[ProfileResponse] = None
    confidence: Optional[float] = None
    message: Optional[str] = None


class SearchResult(BaseModel):
    """검색 결과"""
    profile: ProfileResponse
    confidence: float


class StatsResponse(BaseModel):
    total_profiles: int
    total_faces: int
    descriptor_size: int


async def read_query_image(image: Optional[UploadFile]) -> bytes:
    """질의 이미지 읽기 (저장하지 않음)"""
    uploads = await read_uploads([image] if image is not None else None)
    if not uploads:
        raise NoImageProvided("이미지가 없습니다")
    return uploads[0].data


@router.post("/recognize", response_model=RecognizeResponse, response_model_exclude_none=True)
async def recognize_face(
    image: Optional[UploadFile] = File(None),
    threshold: Optional[float] = Query(None),
    pipeline=Depends(get_pipeline)
):
    """이미지에서 프로필 인식"""
    data = await read_query_image(image)

    result = await run_in_threadpool(pipeline.recognize, data, threshold)

    if not result.matched:
        return RecognizeResponse(matched=False, message="일치하는 프로필이 없습니다")

    return RecognizeResponse(
        matched=True,
        profile=to_response(result.profile, pipeline),
        confidence=result.confidence,
    )


@router.post("/search", response_model=List[SearchResult])
async def search_similar(
    image: Optional[UploadFile] = File(None),
    threshold: Optional[float] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=100),
    pipeline=Depends(get_pipeline)
):
    """유사한 프로필 검색"""
    data = await read_query_image(image)

    hits = await run_in_threadpool(pipeline.search, data, threshold, limit)

    return [
        SearchResult(profile=to_response(hit.profile, pipeline), confidence=hit.confidence)
        for hit in hits
    ]


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    pipeline=Depends(get_pipeline)
):
    """통계 정보"""
    return StatsResponse(**pipeline.stats())
