import logging
import re
from typing import List
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from filedock.storage.file_store import format_size_mb, save_upload, upload_size

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])

_BOUNDARY_RE = re.compile(r'boundary=(?:"([^"]+)"|([^\s;]+))', re.IGNORECASE)

# 종료 경계 뒤 epilogue 여유분
_TAIL_SLACK = 1024


class UploadedFile(BaseModel):
    name: str
    size: str
    downloadUrl: str


def multipart_boundary(content_type: str) -> bytes:
    if content_type.split(";", 1)[0].strip().lower() != "multipart/form-data":
        raise HTTPException(status_code=400, detail="Content-Type must be multipart/form-data.")
    m = _BOUNDARY_RE.search(content_type)
    if not m:
        raise HTTPException(status_code=400, detail="Missing boundary in multipart.")
    return (m.group(1) or m.group(2)).encode("latin-1")


class MultipartGuard:
    """
    ASGI receive 래퍼.
    본문이 --<boundary>로 시작하는지 파서보다 먼저 확인하고,
    마지막 바이트를 보관해 --<boundary>-- 로 끝났는지 나중에 확인한다.
    (Starlette 파서는 잘린 본문을 빈 폼으로 돌려준다)
    """

    def __init__(self, receive, boundary: bytes):
        self._receive = receive
        self._opening = b"--" + boundary
        self._closing = b"--" + boundary + b"--"
        self._head = b""
        self._head_checked = False
        self._tail = b""

    async def __call__(self):
        message = await self._receive()
        if message["type"] == "http.request":
            chunk = message.get("body", b"")
            if not self._head_checked:
                self._check_head(chunk, more=message.get("more_body", False))
            self._tail = (self._tail + chunk)[-(len(self._closing) + _TAIL_SLACK):]
        return message

    def _check_head(self, chunk: bytes, more: bool) -> None:
        self._head += chunk
        head = self._head.lstrip(b"\r\n")
        if len(head) < len(self._opening) and more:
            return
        self._head_checked = True
        if not head.startswith(self._opening):
            raise HTTPException(status_code=400, detail="Malformed multipart body: boundary not found.")

    @property
    def complete(self) -> bool:
        return self._closing in self._tail


def download_url(request: Request, category: str, stored_name: str) -> str:
    base = request.app.state.public_base_url or str(request.base_url).rstrip("/")
    return f"{base}/uploads/{category}/{quote(stored_name)}"


def collect_parts(form, field: str, max_files: int, max_size: int) -> List[UploadFile]:
    """폼에서 파일 파트를 꺼내고, 쓰기 전에 필드명/개수/크기를 모두 검증"""
    parts = []
    for key, value in form.multi_items():
        if not isinstance(value, UploadFile):
            continue
        if key != field:
            raise HTTPException(status_code=400, detail=f"Unexpected field: {key}")
        parts.append(value)

    if len(parts) > max_files:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files. Maximum number of files is {max_files}.",
        )

    for part in parts:
        if upload_size(part) > max_size:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: {part.filename}. Max {max_size} bytes.",
            )
    return parts


async def handle_upload(request: Request, category: str) -> dict:
    limits = request.app.state.upload_limits[category]
    root = request.app.state.upload_root

    try:
        boundary = multipart_boundary(request.headers.get("content-type", ""))
        guard = MultipartGuard(request.receive, boundary)
        async with Request(request.scope, guard).form() as form:
            if not guard.complete:
                raise HTTPException(
                    status_code=400,
                    detail="Malformed multipart body: missing closing boundary.",
                )
            parts = collect_parts(form, limits["field"], limits["max_files"], limits["max_size"])

            uploaded = []
            for part in parts:
                meta = await run_in_threadpool(save_upload, root, limits["field"], part)
                uploaded.append(
                    UploadedFile(
                        name=meta["originalName"],
                        size=format_size_mb(meta["size"]),
                        downloadUrl=download_url(request, meta["category"], meta["storedName"]),
                    ).model_dump()
                )
    except HTTPException as e:
        # 저장 실패(5xx)는 file_store에서 이미 기록
        if e.status_code < 500:
            logger.warning("Rejected %s upload: %s", category, e.detail)
        raise

    return {
        "success": True,
        "msg": f"Uploaded {len(uploaded)} {limits['label']}",
        category: uploaded,
    }


# 파일 일괄 업로드
@router.post("/files")
async def upload_files(request: Request):
    return await handle_upload(request, "files")


# 영상 일괄 업로드
@router.post("/videos")
async def upload_videos(request: Request):
    return await handle_upload(request, "videos")
