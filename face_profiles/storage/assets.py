"""
얼굴 이미지 파일 관리
AssetRef ↔ 디스크 파일 매핑, 저장/삭제, 고아 파일 점검
"""
import secrets
import time
from pathlib import Path
from typing import Iterable, List, Set, Tuple, Union

from ..errors import AssetNotFound, StorageError
from ..models import AssetRef
from ..utils.log import get_logger

logger = get_logger(__name__)

ALLOWED_SUFFIXES = (".jpg", ".jpeg", ".png", ".webp")
MAX_NAME_ATTEMPTS = 8


class FaceAssetManager:
    """
    얼굴 이미지 저장소

    이미지 파일은 faces_dir 한 곳에 고유한 이름으로 저장됩니다.
    프로필 레코드는 파일 경로 대신 AssetRef 만 가지고, 경로/URL 변환은 여기서 합니다.

    사용법:
        assets = FaceAssetManager("./faces")
        ref = assets.store(profile_id, image_bytes, ".jpg")
        assets.discard(ref)
    """

    def __init__(self, faces_dir: Union[str, Path], url_prefix: str = "/faces"):
        self.faces_dir = Path(faces_dir)
        self.faces_dir.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    def _new_name(self, suffix: str) -> str:
        suffix = suffix.lower() if suffix else ".jpg"
        if suffix not in ALLOWED_SUFFIXES:
            suffix = ".jpg"
        return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{suffix}"

    def path_for(self, ref: AssetRef) -> Path:
        """AssetRef → 파일 경로"""
        name = ref.name
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise AssetNotFound(f"잘못된 이미지 참조: {name!r}")
        return self.faces_dir / name

    def url_for(self, ref: AssetRef) -> str:
        """AssetRef → 공개 URL"""
        return f"{self.url_prefix}/{ref.name}"

    def exists(self, ref: AssetRef) -> bool:
        try:
            return self.path_for(ref).is_file()
        except AssetNotFound:
            return False

    def store(self, profile_id: str, image_bytes: bytes, suffix: str = ".jpg") -> AssetRef:
        """
        이미지 저장

        Args:
            profile_id: 소유 프로필 ID (로그용)
            image_bytes: 이미지 데이터
            suffix: 파일 확장자

        Returns:
            저장된 이미지의 AssetRef
        """
        for _ in range(MAX_NAME_ATTEMPTS):
            ref = AssetRef(self._new_name(suffix))
            path = self.path_for(ref)
            try:
                # 배타적 생성: 동시에 같은 이름이 만들어지면 다시 시도
                with open(path, "xb") as f:
                    f.write(image_bytes)
            except FileExistsError:
                continue
            except OSError as e:
                path.unlink(missing_ok=True)
                raise StorageError(f"이미지 저장 실패: {path}: {e}") from e

            logger.debug("이미지 저장: %s (profile=%s, %d bytes)", ref, profile_id, len(image_bytes))
            return ref

        raise StorageError(f"고유한 파일 이름을 만들 수 없습니다 (profile={profile_id})")

    def remove(self, ref: AssetRef):
        """이미지 파일 삭제 (없으면 AssetNotFound)"""
        path = self.path_for(ref)
        try:
            path.unlink()
        except FileNotFoundError:
            raise AssetNotFound(f"이미지 파일이 없습니다: {ref}")
        except OSError as e:
            raise StorageError(f"이미지 삭제 실패: {path}: {e}") from e
        logger.debug("이미지 삭제: %s", ref)

    def discard(self, ref: AssetRef) -> bool:
        """
        최선 노력 삭제

        이미 없는 파일이거나 삭제에 실패해도 예외를 던지지 않고 로그만 남깁니다.
        (파일 없음 + 참조 없음 이라는 최종 상태는 어느 쪽이든 같음)

        Returns:
            실제로 파일을 지웠으면 True
        """
        try:
            self.remove(ref)
            return True
        except AssetNotFound:
            logger.warning("이미 삭제된 이미지: %s", ref)
        except StorageError as e:
            logger.error("이미지 삭제 실패 (무시): %s", e.message)
        return False

    def discard_all(self, refs: Iterable[AssetRef]) -> int:
        """여러 이미지 최선 노력 삭제, 실제로 지운 개수 반환"""
        return sum(1 for ref in list(refs) if self.discard(ref))

    def stored_refs(self) -> Set[AssetRef]:
        """저장소에 있는 모든 이미지"""
        return {
            AssetRef(p.name)
            for p in self.faces_dir.iterdir()
            if p.is_file() and not p.name.startswith(".")
        }

    def audit(self, referenced: Iterable[AssetRef]) -> Tuple[List[AssetRef], List[AssetRef]]:
        """
        레코드와 파일 불일치 점검 (수정하지 않음)

        Returns:
            (고아 파일 목록, 파일이 없는 참조 목록)
        """
        referenced = set(referenced)
        stored = self.stored_refs()
        orphans = sorted(stored - referenced, key=lambda r: r.name)
        dangling = sorted(referenced - stored, key=lambda r: r.name)
        return orphans, dangling
