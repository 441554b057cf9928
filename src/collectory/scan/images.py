"""Photo loading and encoding for transport to the vision model."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .errors import ScanError


@dataclass(frozen=True, slots=True)
class EncodedImage:
    """A photo ready to be sent and stored.

    Attributes:
        data: Base64-encoded file bytes.
        mime_type: MIME type reported by Pillow for the image format.
        width: Image width in pixels.
        height: Image height in pixels.
    """

    data: str
    mime_type: str
    width: int
    height: int

    @property
    def data_url(self) -> str:
        """Return the image as a ``data:`` URI."""
        return f"data:{self.mime_type};base64,{self.data}"


def encode_image(path: Path) -> EncodedImage:
    """Read ``path``, confirm it is an image, and base64-encode its bytes.

    Raises:
        ScanError: If the file cannot be read or is not a recognised image.
    """
    try:
        with Image.open(path) as img:
            img.verify()
            image_format = img.format or ""
            width, height = img.size
        raw = path.read_bytes()
    except Image.DecompressionBombError as exc:
        raise ScanError(f"Image {path.name} is too large to scan: {exc}") from exc
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ScanError(f"Unable to read image {path.name}: {exc}") from exc

    mime_type = Image.MIME.get(image_format.upper(), "image/jpeg")
    return EncodedImage(
        data=base64.b64encode(raw).decode("ascii"),
        mime_type=mime_type,
        width=width,
        height=height,
    )


__all__ = ["EncodedImage", "encode_image"]
