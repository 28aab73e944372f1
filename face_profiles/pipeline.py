"""
얼굴 프로필 전체 파이프라인
특징 추출 → 저장소 / 매칭 통합
"""
from typing import Dict, Iterable, List, Optional, Sequence

from .config import PipelineConfig
from .errors import NoImageProvided, ValidationError
from .models import AssetRef, ImageUpload, MatchResult, NewFace, Profile, SearchHit
from .recognition import DescriptorExtractor, Matcher, NearestDescriptorMatcher, build_extractor
from .storage import FaceAssetManager, ProfileRepository
from .utils.log import get_logger

logger = get_logger(__name__)


class FaceProfilePipeline:
    """
    얼굴 프로필 파이프라인

    사용법:
        # 초기화
        pipeline = FaceProfilePipeline()

        # 프로필 등록
        profile = pipeline.create_profile("Alice", "alice@x", None, [ImageUpload(data, "a.jpg")])

        # 이미지로 인식
        result = pipeline.recognize(image_bytes)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        extractor: Optional[DescriptorExtractor] = None,
        matcher: Optional[Matcher] = None,
    ):
        """
        Args:
            config: 파이프라인 설정
            extractor: 특징 추출기 (None 이면 설정에 따라 생성)
            matcher: 매처 (None 이면 NearestDescriptorMatcher)
        """
        self.config = config or PipelineConfig()

        self.extractor = extractor or build_extractor(self.config.extractor)
        self.matcher = matcher or NearestDescriptorMatcher(self.config.matcher)

        self.assets = FaceAssetManager(
            self.config.storage.faces_dir,
            url_prefix=self.config.storage.faces_url_prefix,
        )
        self.repository = ProfileRepository(self.config.storage.profiles_path, self.assets)
        self.repository.load()

    def _extract_faces(self, images: Sequence[ImageUpload]) -> List[NewFace]:
        """모든 이미지의 특징 벡터를 먼저 추출 (하나라도 실패하면 아무것도 저장하지 않음)"""
        return [
            NewFace(data=image.data, descriptor=self.extractor.extract(image.data), suffix=image.suffix)
            for image in images
        ]

    def list_profiles(self) -> List[Profile]:
        """등록된 모든 프로필"""
        return self.repository.list()

    def get_profile(self, profile_id: str) -> Profile:
        return self.repository.get(profile_id)

    def create_profile(
        self,
        name: Optional[str],
        contact: Optional[str],
        place: Optional[str],
        images: Sequence[ImageUpload],
    ) -> Profile:
        """
        새 프로필 등록

        Args:
            name: 이름 (필수)
            contact: 연락처 (필수)
            place: 장소
            images: 얼굴 이미지들 (1개 이상)

        Returns:
            등록된 Profile
        """
        if not images:
            raise NoImageProvided()
        if not name or not contact:
            raise ValidationError("이름과 연락처는 필수입니다")

        faces = self._extract_faces(images)
        return self.repository.create(name, contact, place, faces)

    def update_profile(
        self,
        profile_id: str,
        name: Optional[str] = None,
        contact: Optional[str] = None,
        place: Optional[str] = None,
        faces_to_remove: Iterable[str] = (),
        new_images: Sequence[ImageUpload] = (),
    ) -> Profile:
        """
        프로필 수정

        Args:
            profile_id: 프로필 ID
            name, contact, place: 비어 있지 않은 값만 반영
            faces_to_remove: 제거할 이미지 이름들
            new_images: 추가할 얼굴 이미지들

        Returns:
            수정된 Profile
        """
        # 없는 프로필이면 특징 추출 전에 404
        self.repository.get(profile_id)

        faces = self._extract_faces(new_images)
        return self.repository.update(
            profile_id,
            name=name,
            contact=contact,
            place=place,
            faces_to_remove=[AssetRef(str(ref_name)) for ref_name in faces_to_remove],
            new_faces=faces,
        )

    def delete_profile(self, profile_id: str) -> Profile:
        return self.repository.delete(profile_id)

    def recognize(self, image_bytes: bytes, threshold: Optional[float] = None) -> MatchResult:
        """
        이미지로 프로필 인식 (질의 이미지/특징 벡터는 저장하지 않음)

        Args:
            image_bytes: 질의 이미지
            threshold: 신뢰도 임계값 (None 이면 설정값)

        Returns:
            MatchResult
        """
        if threshold is None:
            threshold = self.config.matcher.threshold

        descriptor = self.extractor.extract(image_bytes)
        profiles = list(self.repository.snapshot().values())
        result = self.matcher.match(descriptor, profiles, threshold)

        if result.matched:
            logger.info("인식 성공: %s (confidence=%.3f)", result.profile.id, result.confidence)
        else:
            logger.info("일치하는 프로필 없음 (후보 %d개)", len(profiles))
        return result

    def search(
        self,
        image_bytes: bytes,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[SearchHit]:
        """이미지와 유사한 프로필 검색 (신뢰도 내림차순)"""
        if threshold is None:
            threshold = self.config.matcher.threshold
        if limit is None:
            limit = self.config.matcher.search_limit

        descriptor = self.extractor.extract(image_bytes)
        profiles = list(self.repository.snapshot().values())
        return self.matcher.rank(descriptor, profiles, threshold, limit)

    def stats(self) -> Dict:
        """통계 정보"""
        profiles = self.repository.list()
        return {
            "total_profiles": len(profiles),
            "total_faces": sum(len(p.faces) for p in profiles),
            "descriptor_size": self.extractor.descriptor_size,
        }

    def face_urls(self, profile: Profile) -> List[str]:
        return [self.assets.url_for(ref) for ref in profile.faces]
