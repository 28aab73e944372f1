"""
얼굴 프로필 관리 API 서버
FastAPI 기반 REST API
"""
from pathlib import Path
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .routes import health, profiles, recognition
from .config import settings
from .dependencies import init_pipeline
from ..errors import FaceProfileError, StorageError
from ..utils.log import get_logger, setup_logging

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 시작/종료 시 실행"""
    # 시작 시
    logger.info("얼굴 프로필 API 서버 시작...")

    # 저장 디렉토리 생성
    Path(settings.DATA_DIR).mkdir(parents=True, exist_ok=True)
    Path(settings.FACES_DIR).mkdir(parents=True, exist_ok=True)

    pipeline = init_pipeline()
    logger.info("등록된 프로필: %d개", len(pipeline.repository))

    yield

    # 종료 시
    logger.info("서버 종료...")


app = FastAPI(
    title="얼굴 프로필 API",
    description="프로필 등록/관리 및 얼굴 인식을 위한 REST API",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FaceProfileError)
async def face_profile_error_handler(request: Request, exc: FaceProfileError):
    """도메인 예외 → 상태 코드 + 짧은 메시지"""
    if isinstance(exc, StorageError):
        logger.error("%s %s 저장소 오류: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """예상하지 못한 예외 (상세 내용은 로그에만)"""
    logger.exception("%s %s 처리 중 오류", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "서버 내부 오류가 발생했습니다"})


# 정적 파일 서빙 (얼굴 이미지)
app.mount("/faces", StaticFiles(directory=settings.FACES_DIR, check_dir=False), name="faces")

# 라우터 등록
app.include_router(health.router, tags=["Health"])
app.include_router(profiles.router, prefix="/api/profiles", tags=["Profiles"])
app.include_router(recognition.router, prefix="/api", tags=["Recognition"])


@app.get("/")
async def root():
    """API 정보"""
    return {
        "name": "얼굴 프로필 API",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
    }


def run():
    """uvicorn 실행 (face-profiles 명령)"""
    import uvicorn
    uvicorn.run(
        "face_profiles.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
