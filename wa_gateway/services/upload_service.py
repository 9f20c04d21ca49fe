"""Client for the external media-upload service."""

from dataclasses import dataclass
from typing import Optional

import httpx

from wa_gateway.config import Settings
from wa_gateway.logging_config import get_logger

logger = get_logger("upload_service")

ALLOWED_TYPES = {
    "image": ("image/jpeg", "image/png", "image/gif", "image/webp"),
    "video": ("video/mp4", "video/avi", "video/mov", "video/wmv"),
    "document": (
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/plain",
    ),
    "audio": ("audio/mpeg", "audio/wav", "audio/ogg", "audio/mp4"),
}


class UploadError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass
class UploadedMedia:
    url: str
    file_id: Optional[str] = None
    thumbnail_url: Optional[str] = None
    filename: Optional[str] = None
    original_name: Optional[str] = None
    mime_type: Optional[str] = None
    original_size: Optional[int] = None
    optimized_size: Optional[int] = None
    message: Optional[str] = None


def _base_mimetype(mimetype: str) -> str:
    # "audio/ogg; codecs=opus" -> "audio/ogg"
    return (mimetype or "").split(";")[0].strip().lower()


class UploadService:
    def __init__(self, settings: Settings):
        self.settings = settings

    async def upload(self, data: bytes, *, filename: str, mimetype: str, category: Optional[str] = None) -> UploadedMedia:
        """Upload ``data`` and return its public URL. ``category`` restricts the MIME type."""
        base_type = _base_mimetype(mimetype)
        if category is not None:
            allowed = ALLOWED_TYPES.get(category, ())
            if base_type not in allowed:
                raise UploadError(f"Unsupported {category} type: {mimetype}")
        if not data:
            raise UploadError("Empty media buffer")
        if len(data) > self.settings.max_file_size:
            raise UploadError(f"Media too large: {len(data)} bytes (max {self.settings.max_file_size})")
        if not self.settings.upload_endpoint:
            raise UploadError("Upload endpoint not configured")

        logger.info(
            "Uploading media",
            extra={"context": {"filename": filename, "mimetype": base_type, "size": len(data)}},
        )
        try:
            async with httpx.AsyncClient(timeout=self.settings.upload_timeout) as client:
                response = await client.post(
                    self.settings.upload_endpoint,
                    files={"file": (filename, data, base_type or "application/octet-stream")},
                    headers={"X-API-Key": self.settings.upload_api_key},
                )
            body = response.json()
        except Exception as e:
            logger.error(f"Error uploading media: {e}", extra={"context": {"filename": filename}})
            raise UploadError(f"Upload failed: {e}") from e

        if response.status_code >= 400 or not body.get("success"):
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.error(f"Upload rejected: {message}")
            raise UploadError(f"Upload failed: {message}")

        info = body.get("data") or {}
        if not info.get("publicUrl"):
            raise UploadError("Upload response has no public URL")

        uploaded = UploadedMedia(
            url=info["publicUrl"],
            file_id=info.get("id"),
            thumbnail_url=info.get("thumbnailUrl"),
            filename=info.get("filename"),
            original_name=info.get("originalName"),
            mime_type=info.get("mimeType"),
            original_size=len(data),
            optimized_size=info.get("size"),
            message=body.get("message"),
        )
        logger.info("Media uploaded", extra={"context": {"url": uploaded.url, "file_id": uploaded.file_id}})
        return uploaded

    async def upload_image(self, data: bytes, *, filename: str, mimetype: str) -> UploadedMedia:
        return await self.upload(data, filename=filename, mimetype=mimetype, category="image")

    async def upload_audio(self, data: bytes, *, filename: str, mimetype: str) -> UploadedMedia:
        return await self.upload(data, filename=filename, mimetype=mimetype, category="audio")
