import io

import pytest
from PIL import Image
from pypdf import PdfReader, PdfWriter
from pypdf.generic import RectangleObject
from reportlab.pdfbase import pdfmetrics

from conftest import make_pdf
from watermarker import (
    DocumentIOError,
    ImageDecodeError,
    PDFDocument,
    WatermarkConfig,
    WatermarkingMethod,
    WatermarkRenderer,
    decode_image,
    measure_text,
)

# ---------------------------------------------------------------------------
# Image decoding
# ---------------------------------------------------------------------------

def test_decode_image_from_bytes(red_png):
    img = decode_image(red_png)
    assert img.mode == "RGBA"
    assert img.size == (100, 100)


def test_decode_image_from_path(tmp_path, red_png):
    path = tmp_path / "mark.png"
    path.write_bytes(red_png)
    assert decode_image(path).size == (100, 100)
    assert decode_image(str(path)).size == (100, 100)


def test_decode_image_copies_pil_images():
    source = Image.new("RGB", (4, 3), "blue")
    decoded = decode_image(source)
    assert decoded.mode == "RGBA"
    assert decoded is not source


def test_decode_image_rejects_garbage(tmp_path):
    with pytest.raises(ImageDecodeError):
        decode_image(b"definitely not an image")
    with pytest.raises(ImageDecodeError):
        decode_image(tmp_path / "missing.png")

# ---------------------------------------------------------------------------
# Document service
# ---------------------------------------------------------------------------

def test_document_pages_and_dimensions():
    document = PDFDocument(make_pdf([(200, 300), (400, 500)]))
    assert document.page_count == 2
    assert document.page_dimensions(0) == (200, 300)
    assert document.page_dimensions(1) == (400, 500)


def test_document_serializes_pages_in_given_order():
    document = PDFDocument(make_pdf([(200, 300), (400, 500)]))
    data = document.serialize([document.page_bytes(1), document.page_bytes(0)])
    pages = PdfReader(io.BytesIO(data)).pages
    assert [float(p.mediabox.width) for p in pages] == [400, 200]


def test_document_from_path_and_reader(tmp_path):
    path = tmp_path / "in.pdf"
    path.write_bytes(make_pdf([(100, 100)]))
    assert PDFDocument(path).page_count == 1
    assert PDFDocument(PdfReader(path)).page_count == 1


def test_document_load_failures(tmp_path):
    with pytest.raises(DocumentIOError):
        PDFDocument(b"%PDF-1.7 broken")
    with pytest.raises(DocumentIOError):
        PDFDocument(tmp_path / "missing.pdf")


def test_encrypted_document_needs_password():
    writer = PdfWriter()
    writer.add_blank_page(width=100, height=100)
    writer.encrypt("secret")
    buffer = io.BytesIO()
    writer.write(buffer)

    with pytest.raises(DocumentIOError):
        PDFDocument(buffer.getvalue())
    assert PDFDocument(buffer.getvalue(), password="secret").page_count == 1


def test_blank_document():
    document = PDFDocument.blank([(120, 80)] * 2)
    assert document.page_count == 2
    assert document.page_dimensions(1) == (120, 80)


def test_page_dimensions_follow_rotation_and_crop():
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=300).rotate(90)
    cropped = writer.add_blank_page(width=200, height=300)
    cropped.cropbox = RectangleObject((10, 20, 110, 220))
    buffer = io.BytesIO()
    writer.write(buffer)

    document = PDFDocument(buffer.getvalue())
    assert document.page_dimensions(0) == (300, 200)
    assert document.page_dimensions(1) == (100, 200)


@pytest.mark.parametrize(
    "rotation, corner",
    [(0, (10, 20)), (90, (110, 20)), (180, (110, 220)), (270, (10, 220))],
)
def test_display_transform_maps_the_shown_origin(rotation, corner):
    writer = PdfWriter()
    page = writer.add_blank_page(width=200, height=300)
    page.cropbox = RectangleObject((10, 20, 110, 220))
    page.rotate(rotation)
    a, b, c, d, e, f = PDFDocument.display_transform(page)
    assert (e, f) == corner
    # Displayed (0, 0) to (w, h) spans the whole CropBox
    width, height = PDFDocument.display_size(page)
    x, y = a * width + c * height + e, b * width + d * height + f
    assert {x, e} == {10, 110} and {y, f} == {20, 220}


def test_editable_page_is_owned_by_a_writer():
    page = PDFDocument.editable_page(make_pdf([(100, 100)]))
    assert isinstance(page.indirect_reference.pdf, PdfWriter)

# ---------------------------------------------------------------------------
# Drawing service
# ---------------------------------------------------------------------------

def test_measure_text_uses_font_metrics():
    width, height = measure_text("Watermark", "Helvetica", 40)
    ascent, descent = pdfmetrics.getAscentDescent("Helvetica", 40)
    assert width == pdfmetrics.stringWidth("Watermark", "Helvetica", 40)
    assert height == ascent - descent


def test_image_extent_depends_on_method():
    image = Image.new("RGBA", (300, 150))
    overlay = WatermarkRenderer(WatermarkConfig(image=image, size=50))
    draw = WatermarkRenderer(WatermarkConfig(image=image, method=WatermarkingMethod.DRAW, dpi=144))
    assert overlay.content_size() == (150, 75)
    assert draw.content_size() == (150, 75)


def test_trademark_widens_text_extent():
    plain = WatermarkRenderer(WatermarkConfig(text="ACME")).content_size()
    marked = WatermarkRenderer(WatermarkConfig(text="ACME", trademark=True)).content_size()
    assert marked[0] > plain[0]
    assert marked[1] == plain[1]
