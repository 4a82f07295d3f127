import io
from pathlib import Path
from typing import BinaryIO, Union

from PIL import Image, UnidentifiedImageError

from .WatermarkConfig import ImageDecodeError

ImageSource = Union[bytes, bytearray, str, Path, BinaryIO, Image.Image]


def decode_image(source: ImageSource) -> Image.Image:
    """
    Decodes an image watermark into an RGBA pixel buffer.

    Accepts raw bytes, a file path, a binary stream or an already opened
    PIL image (which is copied, never modified).
    """
    if source is None:
        raise ImageDecodeError("No image was given.")

    if isinstance(source, Image.Image):
        return source.convert("RGBA")

    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(bytes(source))

    try:
        with Image.open(source) as img:
            img.load()
            return img.convert("RGBA")
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise ImageDecodeError(f"Failed to decode watermark image: {e}") from e
