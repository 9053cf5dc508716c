"""Resolve image references to bytes and persist generated images."""

import base64
import binascii
import io
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image

from ..config import StorageConfig
from ..exceptions import ImageReadError, UploadTooLargeError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodedImage:
    """Raw image bytes plus their MIME type, ready for an inline request part."""
    data: bytes
    mime_type: str

    def to_data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def detect_mime_type(data: bytes, name: str | None = None) -> str:
    """Detect the image format from magic bytes, falling back to the file name."""
    if data[:3] == b'\xff\xd8\xff':
        return "image/jpeg"
    if data[:8] == b'\x89PNG\r\n\x1a\n':
        return "image/png"
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return "image/webp"
    if data[:6] in (b'GIF87a', b'GIF89a'):
        return "image/gif"

    if name:
        guessed, _ = mimetypes.guess_type(name)
        if guessed and guessed.startswith("image/"):
            return guessed
    return "image/jpeg"


def decode_data_uri(data: str) -> bytes:
    """Decode a base64 data URL (or bare base64) into bytes."""
    if data.startswith("data:"):
        # Remove data URL prefix (e.g., "data:image/png;base64,")
        _, _, encoded = data.partition(",")
    else:
        encoded = data
    try:
        return base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ImageReadError(f"Invalid base64 image data: {exc}") from exc


class ImageStore:
    """Reads original photos and stores generated variations."""

    def __init__(
        self,
        config: StorageConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client used for remote references."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0, follow_redirects=True)
        return self._client

    async def read(self, image_ref: str) -> EncodedImage:
        """Load the bytes behind a path, file://, data: or http(s) reference."""
        if not image_ref:
            raise ImageReadError("Empty image reference")

        if image_ref.startswith("data:"):
            data = decode_data_uri(image_ref)
            name = None
        elif image_ref.startswith(("http://", "https://")):
            data = await self._download(image_ref)
            name = urlparse(image_ref).path
        else:
            path = self._local_path(image_ref)
            try:
                data = path.read_bytes()
            except OSError as exc:
                raise ImageReadError(f"Cannot read image '{image_ref}': {exc}") from exc
            name = path.name

        if not data:
            raise ImageReadError(f"Image '{image_ref[:80]}' is empty")

        return EncodedImage(data=data, mime_type=detect_mime_type(data, name))

    async def _download(self, url: str) -> bytes:
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ImageReadError(f"Cannot download image '{url}': {exc}") from exc
        return response.content

    @staticmethod
    def _local_path(image_ref: str) -> Path:
        if image_ref.startswith("file://"):
            return Path(unquote(urlparse(image_ref).path))
        return Path(image_ref)

    def save_generated(self, data: bytes, mime_type: str | None = None) -> str:
        """Persist generated image bytes and return a reference the UI can load."""
        mime_type = mime_type or detect_mime_type(data)
        if self.config.inline_images:
            return EncodedImage(data=data, mime_type=mime_type).to_data_uri()

        output_dir = self.config.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        ext = mimetypes.guess_extension(mime_type) or ".png"
        path = output_dir / f"generated_{timestamp}_{uuid.uuid4().hex[:8]}{ext}"
        path.write_bytes(data)
        return str(path)

    def save_upload(self, photo: str | bytes) -> Path:
        """Store an uploaded photo (raw bytes or base64 data URL) as a local JPEG.

        Raises:
            UploadTooLargeError: when the decoded photo exceeds the size ceiling.
        """
        raw_bytes = decode_data_uri(photo) if isinstance(photo, str) else photo
        if not raw_bytes:
            raise ImageReadError("Uploaded photo is empty")

        limit = self.config.max_upload_bytes
        if len(raw_bytes) > limit:
            raise UploadTooLargeError(
                f"Photo is {len(raw_bytes) / 1024 / 1024:.1f}MB; the limit is {limit / 1024 / 1024:.0f}MB"
            )

        data, ext = self._normalize(raw_bytes)

        upload_dir = self.config.upload_dir
        upload_dir.mkdir(parents=True, exist_ok=True)
        path = upload_dir / f"upload_{uuid.uuid4().hex[:12]}{ext}"
        path.write_bytes(data)
        return path

    @staticmethod
    def _normalize(raw_bytes: bytes) -> tuple[bytes, str]:
        """Convert to RGB JPEG; keep the original bytes if Pillow cannot decode them."""
        try:
            img = Image.open(io.BytesIO(raw_bytes))
            if img.mode in ("RGBA", "P", "LA"):
                img = img.convert("RGB")
            output = io.BytesIO()
            img.save(output, format="JPEG", quality=90)
            return output.getvalue(), ".jpg"
        except Exception as exc:
            logger.debug("Keeping upload as-is, Pillow could not re-encode it: %s", exc)
            mime_type = detect_mime_type(raw_bytes)
            return raw_bytes, mimetypes.guess_extension(mime_type) or ".img"

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
