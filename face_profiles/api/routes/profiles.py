"""
프로필 등록/관리 API 라우터
"""
import json
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, File, Form, UploadFile, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..config import settings
from ..dependencies import get_pipeline
from ...errors import ValidationError
from ...models import ImageUpload, Profile

router = APIRouter()


# Pydantic 모델
class ProfileResponse(BaseModel):
    """프로필 응답 (camelCase)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    contact: str
    place: str = ""
    faces: List[str] = []
    descriptors: List[List[float]] = []
    images: List[str] = []
    created_at: str
    updated_at: str


class MessageResponse(BaseModel):
    message: str
    id: Optional[str] = None


def to_response(profile: Profile, pipeline) -> ProfileResponse:
    data = profile.to_dict()
    return ProfileResponse(
        id=data['id'],
        name=data['name'],
        contact=data['contact'],
        place=data['place'],
        faces=data['faces'],
        descriptors=data['descriptors'],
        images=pipeline.face_urls(profile),
        created_at=data['createdAt'],
        updated_at=data['updatedAt'],
    )


async def read_uploads(files: Optional[List[UploadFile]]) -> List[ImageUpload]:
    """업로드 파일 읽기 + 형식/크기 검사 (파일은 읽은 뒤 닫음)"""
    uploads: List[ImageUpload] = []
    files = [f for f in (files or []) if f is not None and f.filename]

    if len(files) > settings.MAX_UPLOAD_FILES:
        raise ValidationError(f"이미지는 최대 {settings.MAX_UPLOAD_FILES}개까지 업로드할 수 있습니다")

    try:
        for upload_file in files:
            # 파일 확장자 확인
            ext = Path(upload_file.filename).suffix.lower()
            if ext not in settings.ALLOWED_EXTENSIONS:
                raise ValidationError(f"허용되지 않는 파일 형식입니다: {ext or upload_file.filename}")

            contents = await upload_file.read()
            if len(contents) > settings.MAX_FILE_SIZE:
                raise ValidationError(f"파일이 너무 큽니다: {upload_file.filename}")

            uploads.append(ImageUpload(data=contents, filename=upload_file.filename))
    finally:
        for upload_file in files:
            await upload_file.close()

    return uploads


def parse_faces_to_remove(values: Optional[List[str]]) -> List[str]:
    """반복 필드 또는 JSON 배열 문자열 모두 허용"""
    names: List[str] = []
    for value in values or []:
        value = value.strip()
        if not value:
            continue
        if value.startswith("["):
            try:
                parsed = json.loads(value)
            except ValueError:
                raise ValidationError("facesToRemove 형식이 잘못되었습니다")
            names.extend(str(v) for v in parsed if v)
        else:
            names.append(value)
    return names


@router.get("", response_model=List[ProfileResponse])
async def list_profiles(
    pipeline=Depends(get_pipeline)
):
    """등록된 모든 프로필 조회"""
    return [to_response(p, pipeline) for p in pipeline.list_profiles()]


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: str,
    pipeline=Depends(get_pipeline)
):
    """특정 프로필 조회"""
    return to_response(pipeline.get_profile(profile_id), pipeline)


@router.post("", response_model=ProfileResponse, status_code=201)
async def create_profile(
    name: Optional[str] = Form(None),
    contact: Optional[str] = Form(None),
    place: Optional[str] = Form(None),
    faces: Optional[List[UploadFile]] = File(None),
    pipeline=Depends(get_pipeline)
):
    """새 프로필 등록"""
    images = await read_uploads(faces)

    profile = await run_in_threadpool(pipeline.create_profile, name, contact, place, images)
    return to_response(profile, pipeline)


@router.put("/{profile_id}", response_model=ProfileResponse)
async def update_profile(
    profile_id: str,
    name: Optional[str] = Form(None),
    contact: Optional[str] = Form(None),
    place: Optional[str] = Form(None),
    faces_to_remove: Optional[List[str]] = Form(None, alias="facesToRemove"),
    new_faces: Optional[List[UploadFile]] = File(None, alias="newFaces"),
    pipeline=Depends(get_pipeline)
):
    """프로필 수정 (빈 값은 기존 값 유지)"""
    images = await read_uploads(new_faces)

    profile = await run_in_threadpool(
        pipeline.update_profile,
        profile_id,
        name=name,
        contact=contact,
        place=place,
        faces_to_remove=parse_faces_to_remove(faces_to_remove),
        new_images=images,
    )
    return to_response(profile, pipeline)


@router.delete("/{profile_id}", response_model=MessageResponse)
async def delete_profile(
    profile_id: str,
    pipeline=Depends(get_pipeline)
):
    """프로필 삭제 (얼굴 이미지 포함)"""
    await run_in_threadpool(pipeline.delete_profile, profile_id)
    return MessageResponse(message="프로필이 삭제되었습니다", id=profile_id)
