import io
from typing import List, Tuple

import fitz  # PyMuPDF
import pytest
from PIL import Image
from pypdf import PdfReader, PdfWriter

LETTER = (612, 792)


def make_pdf(sizes: List[Tuple[float, float]]) -> bytes:
    writer = PdfWriter()
    for width, height in sizes:
        writer.add_blank_page(width=width, height=height)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def page_content(data: bytes, index: int = 0) -> bytes:
    """Decoded content stream of one page of a PDF."""
    contents = PdfReader(io.BytesIO(data)).pages[index].get_contents()
    return contents.get_data() if contents is not None else b""


def pixel_at(data: bytes, x: float, y: float, index: int = 0) -> Tuple[int, int, int]:
    """RGB of the rendered page at (x, y) points, y measured from the top."""
    with fitz.open(stream=data, filetype="pdf") as doc:
        pix = doc.load_page(index).get_pixmap(dpi=72, alpha=False)
        return pix.pixel(int(x), int(y))


def displayed_size(data: bytes, index: int = 0) -> Tuple[float, float]:
    with fitz.open(stream=data, filetype="pdf") as doc:
        rect = doc.load_page(index).rect
        return rect.width, rect.height


@pytest.fixture
def blank_pdf() -> bytes:
    """Three blank letter-sized pages."""
    return make_pdf([LETTER] * 3)


@pytest.fixture
def red_png() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (100, 100), (255, 0, 0, 255)).save(buffer, format="PNG")
    return buffer.getvalue()
