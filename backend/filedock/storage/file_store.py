import logging
import re
import shutil
import time
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from fastapi import HTTPException
from starlette.datastructures import UploadFile

logger = logging.getLogger(__name__)

# 경로에 쓸 수 없는 문자: / : * ? " < > |
_FORBIDDEN_RE = re.compile(r'[/:*?"<>|]')

# 같은 이름이 이미 있을 때 타임스탬프를 올려 재시도하는 횟수
MAX_NAME_ATTEMPTS = 1000


def category_for(field_name: str) -> str:
    return "videos" if field_name == "videos" else "files"


def resolve_directory(root: Path, field_name: str) -> Path:
    directory = Path(root) / category_for(field_name)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def sanitize_filename(name: str) -> str:
    """금지 문자만 '-'로 바꾸고 나머지(한글/중국어 등)는 그대로 둔다."""
    return _FORBIDDEN_RE.sub("-", name or "")


def generate_name(original_name: str, timestamp_ms: int) -> str:
    return f"{timestamp_ms}-{sanitize_filename(original_name)}"


def format_size_mb(size: int) -> str:
    # 0.125 -> 0.13 처럼 반올림 (toFixed와 동일)
    mb = (Decimal(size) / Decimal(1024 * 1024)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{mb}MB"


def upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    # size를 모르는 경우 스트림 끝으로 이동해서 계산
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _write_exclusive(directory: Path, upload: UploadFile) -> Path:
    timestamp = _now_ms()
    for _ in range(MAX_NAME_ATTEMPTS):
        stored_path = directory / generate_name(upload.filename, timestamp)
        try:
            f = open(stored_path, "xb")
        except FileExistsError:
            timestamp += 1
            continue
        try:
            with f:
                upload.file.seek(0)
                shutil.copyfileobj(upload.file, f)
        except Exception:
            # 중간에 실패한 파일은 /uploads로 노출되지 않도록 삭제
            stored_path.unlink(missing_ok=True)
            raise
        return stored_path
    raise FileExistsError(f"No free name for {upload.filename!r} in {directory}")


def save_upload(root: Path, field_name: str, upload: UploadFile) -> dict:
    """
    파트 하나를 <root>/<category>/ 아래에 저장하고 메타데이터 반환
    """
    category = category_for(field_name)
    try:
        directory = resolve_directory(root, field_name)
        stored_path = _write_exclusive(directory, upload)
    except OSError as e:
        logger.exception("Failed to store %r under %s", upload.filename, root)
        raise HTTPException(status_code=500, detail=f"Could not save file: {e}")

    size = stored_path.stat().st_size
    logger.info("Stored %s (%d bytes)", stored_path, size)
    return {
        "originalName": upload.filename,
        "storedName": stored_path.name,
        "storedPath": str(stored_path.resolve()),
        "size": size,
        "category": category,
    }
