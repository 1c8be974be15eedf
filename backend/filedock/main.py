import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from filedock.api.uploads import router as uploads_router
from filedock.core.config import (
    CORS_ORIGINS,
    HOST,
    LOG_LEVEL,
    PORT,
    PUBLIC_BASE_URL,
    PUBLIC_DIR,
    UPLOAD_LIMITS,
    UPLOAD_ROOT,
)

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # 모든 실패는 같은 모양: {"success": false, "msg": ...}
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "msg": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def create_app(upload_root=None, limits=None, public_base_url=None) -> FastAPI:
    upload_root = Path(upload_root if upload_root is not None else UPLOAD_ROOT)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 저장 루트는 import 시점이 아니라 서버 시작 시 생성
        upload_root.mkdir(parents=True, exist_ok=True)
        logger.info("Storage root: %s", upload_root.resolve())
        yield

    app = FastAPI(title="filedock API", version="0.1.0", lifespan=lifespan)
    app.state.upload_root = upload_root
    app.state.upload_limits = limits or UPLOAD_LIMITS
    app.state.public_base_url = (
        public_base_url if public_base_url is not None else PUBLIC_BASE_URL
    ).rstrip("/")

    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health_check():
        return {"status": "ok", "service": "filedock"}

    app.include_router(uploads_router)  # 업로드

    # 다운로드 경로 노출 (디렉터리 목록은 제공하지 않음)
    app.mount("/uploads", StaticFiles(directory=upload_root, check_dir=False), name="uploads")
    if PUBLIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=PUBLIC_DIR, html=True), name="public")

    return app


app = create_app()


def run():
    logger.info("Serving on http://%s:%d", HOST, PORT)
    logger.info("Upload page: http://localhost:%d", PORT)
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
