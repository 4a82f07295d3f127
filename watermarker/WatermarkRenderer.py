import io
import threading
from typing import Dict, Iterator, Optional, Tuple

import fitz  # PyMuPDF
import numpy as np
from PIL import Image
from pypdf import PageObject
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from .PDFDocument import PDFDocument
from .PositionResolver import resolve
from .WatermarkConfig import (
    RenderError,
    WatermarkConfig,
    WatermarkingMethod,
    WatermarkType,
)

# MuPDF contexts must not be driven from several threads at once
_FITZ_LOCK = threading.Lock()


def measure_text(text: str, font_name: str, font_size: float) -> Tuple[float, float]:
    """Returns the (width, height) of the text box in points."""
    ascent, descent = pdfmetrics.getAscentDescent(font_name, font_size)
    return pdfmetrics.stringWidth(text, font_name, font_size), ascent - descent

# ==========================================
# Watermark Renderer
# ==========================================

class WatermarkRenderer:
    """
    Draws one watermark onto pages.

    This class is responsible for:
    1. Measuring the watermark content (text metrics or image size).
    2. Resolving its placements on a page of a given size.
    3. OVERLAY: building a vector stamp page with ReportLab and merging it.
    4. DRAW: rasterizing the page with PyMuPDF and compositing with Pillow.
    5. Caching stamps so uniform page sizes are rendered once.

    Instances are shared by the pages of one run; the caches are guarded by
    a lock and only ever hold immutable results.
    """

    def __init__(self, config: WatermarkConfig):
        self.config = config
        self._lock = threading.Lock()
        # Cache key: (width, height), Value: one-page stamp PDF bytes
        self._overlay_cache: Dict[Tuple[float, float], bytes] = {}
        self._raster_stamp: Optional[Image.Image] = None

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    def content_size(self) -> Tuple[float, float]:
        """Intrinsic extent of the watermark on the page, in points."""
        config = self.config
        if config.watermark_type == WatermarkType.TEXT:
            return measure_text(config.display_text, config.font_name, config.font_size)

        width, height = config.image.size
        scale = config.image_scale
        if config.method == WatermarkingMethod.DRAW:
            # Pixels are laid out at the raster resolution
            scale *= 72.0 / config.dpi
        return width * scale, height * scale

    def placements(self, page_width: float, page_height: float) -> Iterator[Tuple[float, float]]:
        content_w, content_h = self.content_size()
        return resolve(
            self.config.position,
            page_width,
            page_height,
            content_w,
            content_h,
            adjustment=self.config.adjustment,
            horizontal_spacing=self.config.horizontal_spacing,
            vertical_spacing=self.config.vertical_spacing,
        )

    # ------------------------------------------------------------------
    # OVERLAY
    # ------------------------------------------------------------------
    def overlay(self, page: PageObject) -> None:
        """Merges the vector watermark ON TOP of the page content."""
        page_width, page_height = PDFDocument.display_size(page)
        stamp = self._get_overlay_stamp(page_width, page_height)
        try:
            page.merge_transformed_page(
                PDFDocument.load_page(stamp), PDFDocument.display_transform(page)
            )
        except Exception as e:
            raise RenderError(f"Failed to merge watermark stamp: {e}") from e

    def _get_overlay_stamp(self, page_width: float, page_height: float) -> bytes:
        # Round dimensions to avoid cache misses on negligible float differences
        key = (round(page_width, 2), round(page_height, 2))
        with self._lock:
            if key not in self._overlay_cache:
                self._overlay_cache[key] = self._render_overlay_page(page_width, page_height)
            return self._overlay_cache[key]

    def _render_overlay_page(self, width: float, height: float) -> bytes:
        """Draws every placement of the watermark on a fresh PDF page."""
        packet = io.BytesIO()
        try:
            # invariant=1 keeps the output free of timestamps and random ids
            c = canvas.Canvas(packet, pagesize=(width, height), invariant=1)
            c.setFillAlpha(self.config.opacity)
            c.setStrokeAlpha(self.config.opacity)

            content_w, content_h = self.content_size()
            for x, y in self.placements(width, height):
                c.saveState()
                # Rotate around the center of the content box
                c.translate(x + content_w / 2, y + content_h / 2)
                c.rotate(self.config.rotation)
                if self.config.watermark_type == WatermarkType.TEXT:
                    self._draw_text(c)
                else:
                    self._draw_image(c, content_w, content_h)
                c.restoreState()

            c.save()
        except Exception as e:
            raise RenderError(f"Failed to render watermark stamp: {e}") from e
        return packet.getvalue()

    def _draw_text(self, c: canvas.Canvas):
        config = self.config
        ascent, descent = pdfmetrics.getAscentDescent(config.font_name, config.font_size)
        c.setFont(config.font_name, config.font_size)
        # The color carries its own alpha, which would override the fill alpha
        c.setFillColor(config.color, alpha=config.opacity)
        c.drawCentredString(0, -(ascent + descent) / 2, config.display_text)

    def _draw_image(self, c: canvas.Canvas, width: float, height: float):
        c.drawImage(
            ImageReader(self.config.image),
            -width / 2,
            -height / 2,
            width=width,
            height=height,
            mask="auto",
        )

    # ------------------------------------------------------------------
    # DRAW
    # ------------------------------------------------------------------
    def draw(self, page_data: bytes) -> bytes:
        """
        Rasterizes a one-page PDF as displayed, composites every placement
        of the watermark into the raster and returns the re-embedded page as
        a one-page PDF of the displayed size.
        """
        zoom = self.config.dpi / 72.0
        try:
            with _FITZ_LOCK, fitz.open(stream=page_data, filetype="pdf") as doc:
                page = doc.load_page(0)
                # page.rect has the CropBox and /Rotate applied
                page_width, page_height = page.rect.width, page.rect.height
                pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
                raster = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

            stamp = self._get_raster_stamp()
            content_w, content_h = self.content_size()
            for x, y in self.placements(page_width, page_height):
                # Raster rows run top-down
                center_x = (x + content_w / 2) * zoom
                center_y = (page_height - (y + content_h / 2)) * zoom
                origin = (round(center_x - stamp.width / 2), round(center_y - stamp.height / 2))
                raster.paste(stamp, origin, stamp)

            return self._embed_raster(raster, page_width, page_height)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"Failed to draw watermark into page raster: {e}") from e

    def _get_raster_stamp(self) -> Image.Image:
        with self._lock:
            if self._raster_stamp is None:
                self._raster_stamp = self._render_raster_stamp()
            return self._raster_stamp

    def _render_raster_stamp(self) -> Image.Image:
        """RGBA stamp at raster resolution, rotated and faded."""
        config = self.config
        if config.watermark_type == WatermarkType.TEXT:
            stamp = self._rasterize_text()
        else:
            content_w, content_h = self.content_size()
            zoom = config.dpi / 72.0
            size = (max(1, round(content_w * zoom)), max(1, round(content_h * zoom)))
            stamp = config.image.convert("RGBA").resize(size, Image.Resampling.LANCZOS)

        alpha = np.asarray(stamp.getchannel("A"), dtype=np.float32) * config.opacity
        stamp.putalpha(Image.fromarray(alpha.round().astype(np.uint8)))

        if config.rotation:
            stamp = stamp.rotate(config.rotation, resample=Image.Resampling.BICUBIC, expand=True)
        return stamp

    def _rasterize_text(self) -> Image.Image:
        """
        Renders the text box with ReportLab, rasterizes it with PyMuPDF and
        uses the coverage as alpha over a solid color layer.
        """
        config = self.config
        content_w, content_h = self.content_size()
        _, descent = pdfmetrics.getAscentDescent(config.font_name, config.font_size)

        packet = io.BytesIO()
        c = canvas.Canvas(packet, pagesize=(content_w, content_h), invariant=1)
        c.setFont(config.font_name, config.font_size)
        c.setFillColor((0, 0, 0))
        c.drawString(0, -descent, config.display_text)
        c.save()

        zoom = config.dpi / 72.0
        with _FITZ_LOCK, fitz.open(stream=packet.getvalue(), filetype="pdf") as doc:
            pix = doc.load_page(0).get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=True)
            coverage = Image.frombytes("RGBA", (pix.width, pix.height), pix.samples).getchannel("A")

        red, green, blue = (round(channel * 255) for channel in config.color.rgb())
        stamp = Image.new("RGBA", coverage.size, (red, green, blue, 0))
        stamp.putalpha(coverage)
        return stamp

    @staticmethod
    def _embed_raster(raster: Image.Image, page_width: float, page_height: float) -> bytes:
        """Inserts the raster into a new page with the same size in points."""
        img_bytes = io.BytesIO()
        raster.save(img_bytes, format="PNG")

        with _FITZ_LOCK, fitz.open() as new_doc:
            new_page = new_doc.new_page(width=page_width, height=page_height)
            new_page.insert_image(
                fitz.Rect(0, 0, page_width, page_height),
                stream=img_bytes.getvalue(),
                keep_proportion=False,
            )
            return new_doc.tobytes(garbage=3, deflate=True)
