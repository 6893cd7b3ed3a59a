from __future__ import annotations

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from src.domain.services.image_collection import PendingFile

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ("JPEG", "jpg"),
    "image/png": ("PNG", "png"),
    "image/webp": ("WEBP", "webp"),
}
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}
COMPRESS_THRESHOLD_BYTES = int(0.95 * 1024 * 1024)
MAX_FILE_BYTES = 5 * 1024 * 1024
MAX_DIMENSION = 1200
COMPRESS_QUALITY = 80


class ImagePreparationService:
    """Validates uploaded listing photos and shrinks the large ones."""

    def prepare(self, data: bytes, filename: str | None, content_type: str | None) -> PendingFile:
        """
        Turn raw upload bytes into a PendingFile ready for the image collection.

        Raises:
            ValueError: unsupported type, unreadable image, or still too large
                after compression.
        """
        content_type = (content_type or "").lower()
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValueError("Invalid file type")
        fmt, default_ext = ALLOWED_CONTENT_TYPES[content_type]
        try:
            img = Image.open(BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError(f"Invalid image file: {exc}") from exc

        filename = filename or f"upload.{default_ext}"
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else default_ext
        if ext not in ALLOWED_EXTENSIONS:
            ext = default_ext

        if len(data) > COMPRESS_THRESHOLD_BYTES:
            data = self.compress(img, fmt)
            if len(data) > MAX_FILE_BYTES:
                raise ValueError("File too large")
        return PendingFile(data=data, filename=filename, content_type=content_type, ext=ext)

    @staticmethod
    def compress(img: Image.Image, fmt: str) -> bytes:
        img = img.copy()
        img.thumbnail((MAX_DIMENSION, MAX_DIMENSION))
        if fmt == "JPEG" and img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        buf = BytesIO()
        if fmt == "PNG":
            img.save(buf, format=fmt, optimize=True)
        else:
            img.save(buf, format=fmt, quality=COMPRESS_QUALITY)
        return buf.getvalue()
