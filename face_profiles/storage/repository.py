"""
프로필 저장소
전체 프로필 컬렉션을 메모리에 보관하고, 변경 시 JSON 문서 하나로 통째로 다시 씁니다.

동시성:
    - 변경 작업(create/update/delete)은 하나의 쓰기 잠금으로 직렬화됩니다.
    - 변경은 새 스냅샷(dict)을 만들어 참조 하나만 바꿔 공개하므로,
      읽기(list/get)는 잠금 없이 항상 완전한 스냅샷을 봅니다.
"""
import json
import os
import tempfile
import threading
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..errors import NoImageProvided, ProfileNotFound, StorageError, ValidationError
from ..models import AssetRef, NewFace, Profile, next_timestamp
from ..utils.log import get_logger
from .assets import FaceAssetManager

logger = get_logger(__name__)

SCHEMA_VERSION = 1


def _provided(value: Optional[str]) -> bool:
    # 빈 문자열은 "값 없음" 으로 취급
    return value is not None and str(value).strip() != ""


class ProfileRepository:
    """
    프로필 컬렉션 저장소

    사용법:
        repo = ProfileRepository("./data/profiles.json", FaceAssetManager("./faces"))
        repo.load()
        profile = repo.create("Alice", "alice@x", "", [NewFace(data, descriptor)])
    """

    def __init__(
        self,
        profiles_path: Union[str, Path],
        assets: FaceAssetManager,
    ):
        self.profiles_path = Path(profiles_path)
        self.assets = assets
        self._lock = threading.Lock()
        self._profiles: Dict[str, Profile] = {}

    # ---------- 영속화 ----------

    def load(self):
        """프로필 문서 로드 (없으면 빈 문서 생성)"""
        with self._lock:
            if not self.profiles_path.exists():
                self._profiles = {}
                self._save(self._profiles)
                logger.info("프로필 문서 생성: %s", self.profiles_path)
                return

            try:
                with open(self.profiles_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                raise StorageError(f"프로필 문서 로드 실패: {self.profiles_path}: {e}") from e

            self._profiles = self._decode(data)

        logger.info("프로필 로드됨: %s (%d개)", self.profiles_path, len(self._profiles))

        orphans, dangling = self.assets.audit(self._all_refs(self._profiles))
        if orphans:
            logger.warning("참조되지 않는 이미지 파일 %d개: %s", len(orphans), [r.name for r in orphans[:10]])
        if dangling:
            logger.warning("파일이 없는 이미지 참조 %d개: %s", len(dangling), [r.name for r in dangling[:10]])

    def _decode(self, data) -> Dict[str, Profile]:
        if isinstance(data, list):
            records = data
            version = 0
        elif isinstance(data, dict):
            records = data.get('profiles', [])
            # version 이 없는 문서는 이전 형식 ({"profiles": [...]})
            try:
                version = int(data.get('version', 0))
            except (TypeError, ValueError) as e:
                raise StorageError(f"잘못된 문서 버전: {data.get('version')!r}") from e
        else:
            raise StorageError(f"알 수 없는 프로필 문서 형식: {type(data).__name__}")

        if not isinstance(records, list):
            raise StorageError(f"프로필 목록 형식이 잘못되었습니다: {type(records).__name__}")

        if version > SCHEMA_VERSION:
            raise StorageError(f"지원하지 않는 문서 버전: {version}")

        profiles: Dict[str, Profile] = {}
        for record in records:
            try:
                profile = Profile.from_dict(record)
            except (KeyError, TypeError, ValueError) as e:
                raise StorageError(f"잘못된 프로필 레코드: {e}") from e
            if profile.id in profiles:
                raise StorageError(f"중복된 프로필 ID: {profile.id}")
            profiles[profile.id] = profile

        if version < SCHEMA_VERSION:
            logger.info("이전 형식 문서 (version=%d), 다음 저장 시 version=%d 로 변환됩니다", version, SCHEMA_VERSION)
        return profiles

    def _save(self, profiles: Mapping[str, Profile]):
        """문서 전체를 임시 파일에 쓴 뒤 교체"""
        document = {
            'version': SCHEMA_VERSION,
            'profiles': [p.to_dict() for p in profiles.values()],
        }
        directory = self.profiles_path.parent
        tmp_path = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".profiles-", suffix=".json", dir=str(directory))
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.profiles_path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError(f"프로필 문서 저장 실패: {self.profiles_path}: {e}") from e

    def _commit(self, profiles: Dict[str, Profile]):
        """
        새 스냅샷 공개 + 저장 (쓰기 잠금 안에서 호출)

        저장에 실패해도 메모리 상태는 되돌리지 않습니다. 다음 저장 성공까지 디스크와 다를 수 있습니다.
        """
        try:
            self._save(profiles)
        finally:
            self._profiles = profiles

    @staticmethod
    def _all_refs(profiles: Mapping[str, Profile]) -> List[AssetRef]:
        return [ref for p in profiles.values() for ref in p.faces]

    def _store_faces(self, profile_id: str, faces: Sequence[NewFace]) -> List[AssetRef]:
        """이미지 저장, 도중에 실패하면 이번에 저장한 파일을 지우고 예외 전달"""
        stored: List[AssetRef] = []
        try:
            for face in faces:
                stored.append(self.assets.store(profile_id, face.data, face.suffix))
        except StorageError:
            self.assets.discard_all(stored)
            raise
        return stored

    # ---------- 조회 ----------

    def snapshot(self) -> Mapping[str, Profile]:
        """현재 스냅샷 (수정하지 말 것)"""
        return self._profiles

    def list(self) -> List[Profile]:
        return list(self._profiles.values())

    def get(self, profile_id: str) -> Profile:
        profile = self._profiles.get(profile_id)
        if profile is None:
            raise ProfileNotFound()
        return profile

    def __len__(self) -> int:
        return len(self._profiles)

    # ---------- 변경 ----------

    def create(
        self,
        name: str,
        contact: str,
        place: Optional[str],
        faces: Sequence[NewFace],
    ) -> Profile:
        """
        새 프로필 생성

        Args:
            name: 이름 (필수)
            contact: 연락처 (필수)
            place: 장소 (선택)
            faces: 얼굴 이미지 + 특징 벡터 (1개 이상)

        Returns:
            생성된 Profile
        """
        if not faces:
            raise NoImageProvided()
        if not _provided(name) or not _provided(contact):
            raise ValidationError("이름과 연락처는 필수입니다")

        with self._lock:
            profile_id = str(uuid.uuid4())
            while profile_id in self._profiles:
                profile_id = str(uuid.uuid4())

            refs = self._store_faces(profile_id, faces)
            now = next_timestamp()
            profile = Profile(
                id=profile_id,
                name=name,
                contact=contact,
                place=place or "",
                faces=refs,
                descriptors=[face.descriptor for face in faces],
                created_at=now,
                updated_at=now,
            )

            profiles = dict(self._profiles)
            profiles[profile_id] = profile
            self._commit(profiles)

        logger.info("프로필 생성: %s (%s, 얼굴 %d개)", profile.id, profile.name, len(profile.faces))
        return profile

    def update(
        self,
        profile_id: str,
        name: Optional[str] = None,
        contact: Optional[str] = None,
        place: Optional[str] = None,
        faces_to_remove: Iterable[AssetRef] = (),
        new_faces: Sequence[NewFace] = (),
    ) -> Profile:
        """
        프로필 수정

        텍스트 필드는 비어 있지 않은 값이 주어졌을 때만 덮어씁니다.
        faces_to_remove 중 이 프로필이 가진 이미지만 (특징 벡터와 함께) 제거하고,
        new_faces 를 뒤에 추가합니다.
        """
        with self._lock:
            current = self._profiles.get(profile_id)
            if current is None:
                raise ProfileNotFound()

            added = self._store_faces(profile_id, new_faces)

            remove_set = set(faces_to_remove)
            faces: List[AssetRef] = []
            descriptors = []
            removed: List[AssetRef] = []
            for ref, descriptor in zip(current.faces, current.descriptors):
                if ref in remove_set:
                    removed.append(ref)
                    continue
                faces.append(ref)
                descriptors.append(descriptor)

            self.assets.discard_all(removed)

            faces.extend(added)
            descriptors.extend(face.descriptor for face in new_faces)

            profile = replace(
                current,
                name=name if _provided(name) else current.name,
                contact=contact if _provided(contact) else current.contact,
                place=place if _provided(place) else current.place,
                faces=faces,
                descriptors=descriptors,
                updated_at=next_timestamp(current.updated_at),
            )

            profiles = dict(self._profiles)
            profiles[profile_id] = profile
            self._commit(profiles)

        logger.info(
            "프로필 수정: %s (제거 %d, 추가 %d, 얼굴 %d개)",
            profile_id, len(removed), len(added), len(profile.faces),
        )
        return profile

    def delete(self, profile_id: str) -> Profile:
        """프로필 삭제 (이미지 파일은 최선 노력 삭제)"""
        with self._lock:
            current = self._profiles.get(profile_id)
            if current is None:
                raise ProfileNotFound()

            removed = self.assets.discard_all(current.faces)

            profiles = dict(self._profiles)
            del profiles[profile_id]
            self._commit(profiles)

        logger.info("프로필 삭제: %s (이미지 %d/%d개 삭제)", profile_id, removed, len(current.faces))
        return current
