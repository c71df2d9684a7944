"""Image upload route and storage providers.

Images go to ImgBB when an API key is configured; otherwise, or when
ImgBB fails, they are returned inline as a data URL.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx
from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from dancehub.auth.dependencies import require_identity
from dancehub.auth.types import Identity
from dancehub.crud.errors import Internal, ValidationError, ValidationIssue
from dancehub.crud.responses import success_response

logger = logging.getLogger(__name__)

MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5 MB


class ImageStorageError(Exception):
    """Raised when a provider cannot store an image."""

    pass


@dataclass
class StoredImage:
    url: str
    provider: str


@runtime_checkable
class ImageStorage(Protocol):
    """A place images can be stored, returning a public URL."""

    name: str

    async def store(self, content: bytes, filename: str, content_type: str) -> StoredImage: ...


class ImgBBStorage:
    """Uploads images to the ImgBB API."""

    name = "imgbb"
    ENDPOINT = "https://api.imgbb.com/1/upload"

    def __init__(
        self,
        api_key: str | None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._api_key = api_key
        self._client = client
        self._timeout = timeout

    async def store(self, content: bytes, filename: str, content_type: str) -> StoredImage:
        if not self._api_key:
            raise ImageStorageError("ImgBB API key not configured (set IMGBB_API_KEY)")

        form = {
            "key": self._api_key,
            "image": base64.b64encode(content).decode("ascii"),
            "name": filename,
        }

        close_client = self._client is None
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            response = await client.post(self.ENDPOINT, data=form)
        except httpx.HTTPError as e:
            raise ImageStorageError(f"ImgBB request failed: {e}") from e
        finally:
            if close_client:
                await client.aclose()

        if response.status_code != 200:
            raise ImageStorageError(
                f"ImgBB returned HTTP {response.status_code}: {response.text[:200]}"
            )

        body = response.json()
        url = (body.get("data") or {}).get("url")
        if not body.get("success") or not url:
            raise ImageStorageError("ImgBB response did not contain an image URL")

        return StoredImage(url=url, provider=self.name)


class DataUrlStorage:
    """Returns the image inline as a base64 data URL. Never fails."""

    name = "data-url"

    async def store(self, content: bytes, filename: str, content_type: str) -> StoredImage:
        encoded = base64.b64encode(content).decode("ascii")
        return StoredImage(url=f"data:{content_type};base64,{encoded}", provider=self.name)


class FallbackImageStorage:
    """Tries a primary provider, then a secondary one.

    The first success wins. When both fail, the primary's error is
    raised.
    """

    def __init__(self, primary: ImageStorage, secondary: ImageStorage):
        self.primary = primary
        self.secondary = secondary

    @property
    def name(self) -> str:
        return f"{self.primary.name}+{self.secondary.name}"

    async def store(self, content: bytes, filename: str, content_type: str) -> StoredImage:
        try:
            return await self.primary.store(content, filename, content_type)
        except Exception as primary_error:
            logger.warning(
                "Image provider '%s' failed, falling back to '%s': %s",
                self.primary.name,
                self.secondary.name,
                primary_error,
            )
            try:
                return await self.secondary.store(content, filename, content_type)
            except Exception:
                logger.exception("Image provider '%s' failed", self.secondary.name)
                raise primary_error


def _too_large() -> ValidationError:
    return ValidationError(
        [ValidationIssue(path="file", message="File size must be less than 5MB")]
    )


def create_upload_router(storage: ImageStorage) -> APIRouter:
    """Create the router for POST /api/upload-image."""
    router = APIRouter(prefix="/api", tags=["uploads"])

    @router.post("/upload-image")
    async def upload_image(
        file: UploadFile = File(...),
        identity: Identity = Depends(require_identity),
    ) -> JSONResponse:
        """Store an uploaded image and return its URL."""
        content_type = file.content_type or ""
        if not content_type.startswith("image/"):
            raise ValidationError(
                [ValidationIssue(path="file", message="File must be an image")]
            )

        # Reject by declared size first; never read more than one byte past the limit
        if file.size is not None and file.size > MAX_IMAGE_SIZE:
            raise _too_large()
        content = await file.read(MAX_IMAGE_SIZE + 1)
        if len(content) > MAX_IMAGE_SIZE:
            raise _too_large()

        filename = file.filename or "image"
        try:
            stored = await storage.store(content, filename, content_type)
        except Exception as e:
            logger.error("Upload by %s failed: %s", identity.subject, e)
            raise Internal("Upload failed") from e

        return success_response(
            {
                "url": stored.url,
                "filename": filename,
                "size": len(content),
                "type": content_type,
                "provider": stored.provider,
            }
        ).to_json_response()

    return router
