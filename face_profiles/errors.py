"""
얼굴 프로필 시스템 예외 정의

각 예외는 HTTP 상태 코드와 사용자에게 보여줄 짧은 메시지를 가집니다.
내부 상세 정보는 로그에만 남깁니다.
"""
from typing import Optional


class FaceProfileError(Exception):
    """모든 도메인 예외의 기본 클래스"""
    status_code: int = 500
    default_message: str = "요청을 처리할 수 없습니다"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(FaceProfileError):
    """필수 입력 누락/잘못된 입력"""
    status_code = 400
    default_message = "잘못된 요청입니다"


class NoImageProvided(ValidationError):
    default_message = "최소 1개의 얼굴 이미지가 필요합니다"


class UnreadableImage(ValidationError):
    default_message = "이미지를 읽을 수 없습니다"


class InvalidThreshold(ValidationError):
    default_message = "임계값은 0 과 1 사이여야 합니다"


class NotFound(FaceProfileError):
    status_code = 404
    default_message = "찾을 수 없습니다"


class ProfileNotFound(NotFound):
    default_message = "프로필을 찾을 수 없습니다"


class AssetNotFound(NotFound):
    default_message = "이미지를 찾을 수 없습니다"


class StorageError(FaceProfileError):
    """저장소(프로필 문서, 이미지 파일) I/O 실패

    상세 원인은 message 에 남기고, 호출자에게는 일반 메시지만 노출합니다.
    """
    status_code = 500
    default_message = "저장소 오류가 발생했습니다"

    @property
    def public_message(self) -> str:
        return self.default_message
