"""
Image normalization before upload: bound the width and re-encode as JPEG.
"""
import base64
import binascii
import io
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from app.core.settings import settings

DATA_URI_PREFIX = "data:"


class ImageDecodeError(ValueError):
    pass


def encode_data_uri(raw: bytes, mime_type: str = "image/jpeg") -> str:
    return f"{DATA_URI_PREFIX}{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


def decode_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into (mime_type, raw bytes)."""
    if not data_uri or not data_uri.startswith(DATA_URI_PREFIX) or "," not in data_uri:
        raise ImageDecodeError("Not a data URI")
    header, payload = data_uri.split(",", 1)
    mime_type = header[len(DATA_URI_PREFIX):].split(";", 1)[0] or "application/octet-stream"
    if ";base64" not in header:
        raise ImageDecodeError("Only base64 data URIs are supported")
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError("Invalid base64 payload") from exc


def _open(raw: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError("Could not decode image") from exc
    return img


def image_size(data_uri: str) -> tuple[int, int]:
    """Displayed (width, height), with any EXIF orientation applied."""
    _, raw = decode_data_uri(data_uri)
    with _open(raw) as img:
        return ImageOps.exif_transpose(img).size


def normalize_image(
    data_uri: str,
    max_width: int | None = None,
    quality: int | None = None,
) -> str:
    """Clamp width to ``max_width`` (height scaled to match) and re-encode as JPEG.

    EXIF orientation is applied first, so the clamp works on the displayed
    width and the re-encoded pixels need no orientation tag.
    """
    max_width = max_width or settings.image_max_width
    quality = quality or settings.image_jpeg_quality
    _, raw = decode_data_uri(data_uri)

    with _open(raw) as img:
        img = ImageOps.exif_transpose(img)
        width, height = img.size
        if width > max_width:
            height = max(1, round(height * max_width / width))
            width = max_width
            img = img.resize((width, height), Image.Resampling.LANCZOS)
        # JPEG has no alpha channel or palette.
        if img.mode != "RGB":
            img = img.convert("RGB")
        buffered = io.BytesIO()
        img.save(buffered, format="JPEG", quality=quality)

    return encode_data_uri(buffered.getvalue(), "image/jpeg")


def encode_frame(frame: Image.Image | bytes, quality: int | None = None) -> str:
    """Encode a captured camera frame as a JPEG data URI."""
    quality = quality or settings.camera_jpeg_quality
    if isinstance(frame, (bytes, bytearray)):
        frame = _open(bytes(frame))
    if frame.mode != "RGB":
        frame = frame.convert("RGB")
    buffered = io.BytesIO()
    frame.save(buffered, format="JPEG", quality=quality)
    return encode_data_uri(buffered.getvalue(), "image/jpeg")


def load_image_file(path: str | Path) -> str:
    """Read an uploaded image file into a data URI (the file-picker path of the input screen)."""
    file_path = Path(path)
    raw = file_path.read_bytes()
    with _open(raw) as img:
        fmt = (img.format or "JPEG").lower()
    mime_type = "image/jpeg" if fmt in {"jpeg", "jpg", "mpo"} else f"image/{fmt}"
    return encode_data_uri(raw, mime_type)
