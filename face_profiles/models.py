"""
얼굴 프로필 도메인 모델
프로필, 얼굴 이미지 참조, 매칭 결과
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import numpy as np


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_timestamp(previous: Optional[datetime] = None) -> datetime:
    """현재 시각 반환 (previous 보다 항상 뒤)"""
    now = utc_now()
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


@dataclass(frozen=True)
class AssetRef:
    """저장된 얼굴 이미지 참조 (파일 경로는 FaceAssetManager 가 해석)"""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass
class Profile:
    """인물 프로필"""
    id: str                                                     # 고유 ID
    name: str                                                   # 이름
    contact: str                                                # 연락처
    place: str = ""                                             # 장소 (선택)
    faces: List[AssetRef] = field(default_factory=list)         # 얼굴 이미지 참조들 (업로드 순)
    descriptors: List[np.ndarray] = field(default_factory=list) # faces 와 1:1 대응하는 특징 벡터들
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = self.created_at
        if len(self.faces) != len(self.descriptors):
            raise ValueError(
                f"faces/descriptors 길이 불일치: {len(self.faces)} != {len(self.descriptors)} (id={self.id})"
            )

    def to_dict(self) -> Dict:
        """직렬화 가능한 형태로 변환"""
        return {
            'id': self.id,
            'name': self.name,
            'contact': self.contact,
            'place': self.place,
            'faces': [ref.name for ref in self.faces],
            'descriptors': [np.asarray(d, dtype=np.float32).tolist() for d in self.descriptors],
            'createdAt': self.created_at.isoformat(timespec="microseconds"),
            'updatedAt': self.updated_at.isoformat(timespec="microseconds"),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Profile":
        created_at = _parse_timestamp(data.get('createdAt'))
        return cls(
            id=str(data['id']),
            name=data['name'],
            contact=data['contact'],
            place=data.get('place') or "",
            faces=[AssetRef(name) for name in data.get('faces', [])],
            descriptors=[np.asarray(d, dtype=np.float32) for d in data.get('descriptors', [])],
            created_at=created_at,
            updated_at=_parse_timestamp(data.get('updatedAt')) if data.get('updatedAt') else created_at,
        )


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return utc_now()
    # JavaScript toISOString() 형식 ("...Z") 도 허용
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class NewFace:
    """저장 대기 중인 얼굴 (이미지 바이트 + 추출된 특징 벡터)"""
    data: bytes
    descriptor: np.ndarray
    suffix: str = ".jpg"


@dataclass
class ImageUpload:
    """업로드된 이미지"""
    data: bytes
    filename: Optional[str] = None

    @property
    def suffix(self) -> str:
        if self.filename and "." in self.filename:
            return "." + self.filename.rsplit(".", 1)[1].lower()
        return ".jpg"


@dataclass
class MatchResult:
    """인식 결과"""
    matched: bool
    profile: Optional[Profile] = None
    confidence: Optional[float] = None


@dataclass
class SearchHit:
    """검색 결과"""
    profile: Profile
    confidence: float
