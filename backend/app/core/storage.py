"""
Supabase Storage helper for scene image assets.

Handles all interactions with the asset bucket:
- Accepts raw image bytes, an embedded data URL (data:image/png;base64,...)
  or a remote http(s) image, which is downloaded and re-hosted
- Verifies the payload is an image Pillow can read, within the size limit
- Uploads it under a unique name and returns its public URL

URLs that already point into the bucket are returned without a new upload.
No retry happens here; callers decide whether to resubmit.
"""

import base64
import binascii
import io
import uuid
from typing import Optional, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.core.errors import UploadError
from app.core.logger import get_logger
from app.core.supabase_client import get_supabase

logger = get_logger(__name__)

ImageInput = Union[bytes, str]

ALLOWED_FORMATS = {
    "PNG": "png",
    "JPEG": "jpg",
    "GIF": "gif",
    "WEBP": "webp",
    "BMP": "bmp",
}


def is_remote_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def is_data_url(value: str) -> bool:
    return value.startswith("data:")


def strip_cache_buster(url: str) -> str:
    """Drop the viewer's ``cb`` parameter so it is never persisted."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "cb"]
    return urlunsplit(parts._replace(query=urlencode(query)))


def decode_data_url(data_url: str) -> bytes:
    """
    Decode an embedded ``data:<mime>;base64,<payload>`` image.

    Raises:
        UploadError: If the URL is not base64 image data
    """
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:image/") or ";base64" not in header:
        raise UploadError("Unsupported data URL; expected base64-encoded image data")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise UploadError(f"Invalid base64 image data: {e}") from e


class AssetStore:
    """Uploads scene images to a Supabase Storage bucket."""

    def __init__(
        self,
        bucket: str = None,
        folder: str = None,
        max_bytes: int = None,
        allow_local_fallback: bool = None,
    ):
        self.bucket = bucket or settings.ASSET_BUCKET
        self.folder = folder or settings.ASSET_FOLDER
        self.max_bytes = max_bytes or settings.MAX_IMAGE_BYTES
        if allow_local_fallback is None:
            allow_local_fallback = settings.ALLOW_LOCAL_IMAGE_FALLBACK
        self.allow_local_fallback = allow_local_fallback

    def store(self, image: ImageInput) -> str:
        """
        Store an image and return a stable public URL.

        Args:
            image: Raw bytes, a data URL, or an http(s) URL. URLs already in
                this bucket are kept (minus any ``cb`` parameter); other
                remote images are downloaded and re-hosted.

        Returns:
            Public URL of the stored image

        Raises:
            UploadError: If the payload is rejected or the upload fails
        """
        if isinstance(image, str) and is_remote_url(image):
            if self.is_hosted(image):
                return strip_cache_buster(image)
            data = self._download(image)
        else:
            data = decode_data_url(image) if isinstance(image, str) else image

        extension, content_type = self._inspect(data)
        file_path = f"{self.folder}/{uuid.uuid4().hex}.{extension}"
        try:
            return self.upload_file(file_path, data, content_type)
        except UploadError as e:
            if self.allow_local_fallback and isinstance(image, str) and is_data_url(image):
                logger.warning(f"Upload failed ({e.detail}); local image fallback is enabled, keeping data URL")
                return image
            raise

    def is_hosted(self, url: str) -> bool:
        """True when ``url`` already points into this bucket's public folder."""
        try:
            prefix = self._get_public_url(f"{self.folder}/").split("?", 1)[0]
        except Exception as e:
            raise UploadError(str(e)) from e
        return url.split("?", 1)[0].startswith(prefix)

    def _download(self, url: str) -> bytes:
        """Fetch a remote image, stopping as soon as it exceeds the size limit."""
        try:
            with requests.get(url, timeout=settings.REMOTE_IMAGE_TIMEOUT, stream=True) as response:
                response.raise_for_status()
                data = bytearray()
                for chunk in response.iter_content(chunk_size=64 * 1024):
                    data.extend(chunk)
                    if len(data) > self.max_bytes:
                        raise UploadError(
                            f"Remote image {url} is larger than the {self.max_bytes} byte limit"
                        )
        except requests.RequestException as e:
            logger.error(f"Failed to download remote image {url}: {str(e)}")
            raise UploadError(f"Could not download remote image: {e}") from e

        logger.info(f"Downloaded remote image {url} ({len(data)} bytes)")
        return bytes(data)

    def _inspect(self, data: bytes):
        """Check size and image format; returns (extension, content type)."""
        if not data:
            raise UploadError("No image data provided")
        if len(data) > self.max_bytes:
            raise UploadError(
                f"Image is {len(data)} bytes, larger than the {self.max_bytes} byte limit"
            )

        try:
            with Image.open(io.BytesIO(data)) as img:
                image_format = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise UploadError(f"Payload is not a readable image: {e}") from e

        extension = ALLOWED_FORMATS.get(image_format)
        if extension is None:
            raise UploadError(f"Unsupported image format: {image_format}")
        return extension, Image.MIME.get(image_format, "application/octet-stream")

    def _get_public_url(self, file_path: str) -> str:
        supabase = get_supabase()
        return supabase.storage.from_(self.bucket).get_public_url(file_path)

    def upload_file(self, file_path: str, data: bytes, content_type: str) -> str:
        """
        Upload bytes to the bucket.

        Returns:
            Public URL of the uploaded file
        """
        try:
            supabase = get_supabase()
            supabase.storage.from_(self.bucket).upload(
                path=file_path,
                file=data,
                file_options={"content-type": content_type, "upsert": "false"},
            )
            public_url = self._get_public_url(file_path)
        except Exception as e:
            logger.error(f"Failed to upload file to {self.bucket}/{file_path}: {str(e)}")
            raise UploadError(str(e)) from e

        logger.info(f"Uploaded file to {self.bucket}/{file_path}")
        return public_url


_asset_store: Optional[AssetStore] = None


def get_asset_store() -> AssetStore:
    """FastAPI dependency returning the process-wide asset store."""
    global _asset_store
    if _asset_store is None:
        _asset_store = AssetStore()
    return _asset_store
