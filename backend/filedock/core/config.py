import os
from pathlib import Path

# 정적 페이지 위치 (프로젝트 내 backend/public)
BASE_DIR = Path(__file__).resolve().parents[2]  # backend/
PUBLIC_DIR = BASE_DIR / "public"

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))

# 저장 루트: 절대경로 또는 실행 위치 기준 상대경로 (예: D:\file-uploads, uploads)
UPLOAD_ROOT = Path(os.getenv("UPLOAD_ROOT", "uploads"))

# 다운로드 URL 앞부분. 비어 있으면 요청의 base URL 사용
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

MB = 1024 * 1024

# 카테고리별 제한: 파일 최대 150개/50MB, 영상 최대 25개/100MB
UPLOAD_LIMITS = {
    "files": {
        "field": "files",
        "max_files": 150,
        "max_size": 50 * MB,
        "label": "files",
    },
    "videos": {
        "field": "videos",
        "max_files": 25,
        "max_size": 100 * MB,
        "label": "videos",
    },
}
