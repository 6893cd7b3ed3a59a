from __future__ import annotations

import io
import os

import pytest
from PIL import Image

from src.domain.services.image_preparation import (
    COMPRESS_THRESHOLD_BYTES,
    MAX_DIMENSION,
    ImagePreparationService,
)


def _encode(img, fmt):
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def service():
    return ImagePreparationService()


def test_small_png_passes_through(service):
    data = _encode(Image.new("RGB", (8, 8), (10, 20, 30)), "PNG")
    pending = service.prepare(data, "part.png", "image/png")
    assert pending.data == data
    assert pending.ext == "png"
    assert pending.content_type == "image/png"
    assert pending.size == len(data)


def test_rejects_unsupported_type(service):
    data = _encode(Image.new("RGB", (8, 8)), "GIF")
    with pytest.raises(ValueError, match="Invalid file type"):
        service.prepare(data, "part.gif", "image/gif")


def test_rejects_undecodable_bytes(service):
    with pytest.raises(ValueError, match="Invalid image file"):
        service.prepare(b"not an image", "part.jpg", "image/jpeg")


def test_large_image_is_compressed(service):
    # random noise does not compress, so the PNG is well above the threshold
    img = Image.frombytes("RGB", (1600, 1000), os.urandom(1600 * 1000 * 3))
    data = _encode(img, "PNG")
    assert len(data) > COMPRESS_THRESHOLD_BYTES

    pending = service.prepare(data, "noise.jpg", "image/jpeg")
    out = Image.open(io.BytesIO(pending.data))
    assert max(out.size) <= MAX_DIMENSION
    assert out.format == "JPEG"
    assert pending.ext == "jpg"


def test_missing_filename_uses_type_extension(service):
    data = _encode(Image.new("RGB", (8, 8)), "WEBP")
    pending = service.prepare(data, None, "image/webp")
    assert pending.ext == "webp"
    assert pending.filename == "upload.webp"


@pytest.mark.parametrize("filename", ["photo.exe", "photo.php", "photo.", "photo.png/../x"])
def test_untrusted_extension_falls_back_to_type_extension(service, filename):
    data = _encode(Image.new("RGB", (8, 8)), "PNG")
    pending = service.prepare(data, filename, "image/png")
    assert pending.ext == "png"


def test_allowed_extension_is_kept(service):
    data = _encode(Image.new("RGB", (8, 8)), "JPEG")
    assert service.prepare(data, "PHOTO.JPEG", "image/jpeg").ext == "jpeg"
